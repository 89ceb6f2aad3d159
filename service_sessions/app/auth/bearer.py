"""
Bearer credential extraction for inbound requests.
"""

import re
from typing import Mapping, Optional

from shared.logging import get_logger

logger = get_logger("sessions.auth.bearer")

AUTHORIZATION_HEADER = "Authorization"
BEARER_SCHEME = "bearer"

# token68 from RFC 7235, as used by RFC 6750
_TOKEN68 = re.compile(r"^[A-Za-z0-9\-._~+/]+=*$")


def extract_bearer_token(headers: Mapping[str, str]) -> Optional[str]:
    """Return the bearer token carried by ``headers``, if any.

    A missing header or another authentication scheme yields ``None``. So
    does a malformed Bearer credential: the request carries on without a
    token and the policy decision deals with the consequences.
    """
    header = headers.get(AUTHORIZATION_HEADER)
    if header is None:
        header = headers.get(AUTHORIZATION_HEADER.lower())
    if not header:
        return None

    scheme, _, credentials = header.strip().partition(" ")
    if scheme.lower() != BEARER_SCHEME:
        return None

    credentials = credentials.strip()
    if not _TOKEN68.match(credentials):
        logger.debug("Malformed bearer credential ignored", scheme=scheme)
        return None

    return credentials
