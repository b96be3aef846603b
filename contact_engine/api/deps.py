"""Shared FastAPI dependencies: engine collaborators and caller identity."""

from functools import lru_cache

from fastapi import Depends, HTTPException, UploadFile, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from contact_engine.core.config import get_settings
from contact_engine.core.input_validation import UploadedImage
from contact_engine.core.logging import get_logger
from contact_engine.core.services import EngineServices, build_services
from contact_engine.db.supabase_client import get_supabase

logger = get_logger(__name__)

# HTTP Bearer scheme for Authorization header
security = HTTPBearer(auto_error=False)


@lru_cache(maxsize=1)
def get_services() -> EngineServices:
    """Production collaborators (cached singleton)."""
    return build_services(get_settings())


async def get_current_owner_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str:
    """
    Resolve the caller's user id from a Supabase bearer token.

    Raises:
        HTTPException 401: If the token is missing or invalid
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        auth_response = get_supabase().auth.get_user(credentials.credentials)
    except Exception as e:
        logger.warning(f"Token verification failed: {e}")
        auth_response = None

    if not auth_response or not auth_response.user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return str(auth_response.user.id)


async def read_uploaded_images(files: list[UploadFile | None]) -> list[UploadedImage]:
    """Read the non-empty image parts of a multipart form, in slot order."""
    images: list[UploadedImage] = []
    for file in files:
        if file is None:
            continue
        data = await file.read()
        if not data:
            continue
        images.append(
            UploadedImage(
                content_type=file.content_type or "",
                data=data,
                filename=file.filename,
            )
        )
    return images
