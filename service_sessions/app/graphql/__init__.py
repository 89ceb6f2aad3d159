"""GraphQL schema, resolvers and HTTP transport."""
