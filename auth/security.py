"""
Service-to-service authentication for the generation endpoint.
Callers present GENERATION_SERVICE_KEY as a bearer token.
"""

import os
import secrets
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

security_scheme = HTTPBearer(auto_error=False)


def _service_key() -> str:
    # Read per request, not at import
    return os.getenv("GENERATION_SERVICE_KEY", "")


def verify_service_key(token: str) -> bool:
    expected = _service_key()
    if not expected or not token:
        return False
    return secrets.compare_digest(token.encode("utf-8"), expected.encode("utf-8"))


def require_service_key(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
) -> None:
    """FastAPI dependency – rejects requests without the service bearer token."""
    if not _service_key():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="GENERATION_SERVICE_KEY is not configured",
        )
    if credentials is None or not verify_service_key(credentials.credentials):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing service token",
            headers={"WWW-Authenticate": "Bearer"},
        )
