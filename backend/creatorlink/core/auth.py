"""
Credential verification seam.

Token issuance and validation live outside the messaging core. The
application is given a CredentialVerifier at construction time and only
ever asks it to turn a presented token into an identity id.
"""

from typing import Optional, Protocol


class CredentialVerifier(Protocol):
    def verify(self, token: str) -> Optional[str]:
        """Return the verified identity id, or None when the token is not valid."""
        ...


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Pull the token out of an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
