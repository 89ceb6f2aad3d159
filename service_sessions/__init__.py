"""ISPyB Sessions service."""
