# backend/creatorlink/api/dependencies/auth.py
"""
Authentication dependencies.

Credentials are opaque to the messaging core: the application holds a
CredentialVerifier (app.state.credential_verifier) that turns a bearer
token into an identity id, and the directory confirms that identity exists.
"""

import logging
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from ...core.auth import CredentialVerifier, extract_bearer_token
from ...core.exceptions import DomainException
from ...services.directory_service import DirectoryService, IdentityRecord
from .database import get_db

logger = logging.getLogger(__name__)


def get_credential_verifier(request: Request) -> Optional[CredentialVerifier]:
    return getattr(request.app.state, "credential_verifier", None)


def get_current_identity(
    request: Request,
    db: Session = Depends(get_db),
) -> IdentityRecord:
    """
    Resolve the caller from the Authorization header.

    Raises:
        HTTPException 401: missing, rejected or unknown credentials
    """
    token = extract_bearer_token(request.headers.get("authorization"))
    try:
        return DirectoryService(db).authenticate(get_credential_verifier(request), token)
    except DomainException as exc:
        logger.debug(f"Rejected request credentials: {exc.code}")
        raise exc.to_http_exception()
