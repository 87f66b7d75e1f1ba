from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from typing import Annotated

from .settings import config_settings

# Tells FastAPI to read the token from the "Authorization: Bearer ..." header.
# The service never issues tokens itself; tokenUrl only feeds the OpenAPI docs.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")


def require_auth_token(token: Annotated[str, Depends(oauth2_scheme)]):
    """
    Dependency guarding the assignment admin routes.

    If no token is provided, OAuth2PasswordBearer raises a 401 on its own;
    here we additionally reject tokens not listed in TOKENS.
    """
    if not token or token not in config_settings.TOKENS:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return token
