"""
API authentication using X-API-KEY header, plus project access checks.
"""

from fastapi import HTTPException, Path, Security, status
from fastapi.security import APIKeyHeader

from src.analytics.errors import NotAuthorized
from src.config.settings import get_settings

# API key header scheme
api_key_header = APIKeyHeader(name="X-API-KEY", auto_error=False)


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip()]


async def verify_api_key(api_key: str | None = Security(api_key_header)) -> str:
    """
    Verify API key from X-API-KEY header.

    Args:
        api_key: API key from header

    Returns:
        The validated API key

    Raises:
        HTTPException: If API key is missing or invalid
    """
    settings = get_settings()

    # If no API keys configured, allow all requests (dev mode)
    if not settings.api_keys:
        return "dev-mode"

    if api_key is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key. Provide X-API-KEY header.",
        )

    valid_keys = _split_csv(settings.api_keys)
    if not valid_keys or api_key not in valid_keys:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
        )

    return api_key


async def verify_project_access(
    project_id: str = Path(..., description="Project identifier"),
) -> str:
    """
    Check the project against ALLOWED_PROJECT_IDS.

    Raises:
        NotAuthorized: If an allow-list is configured and excludes the project
    """
    allowed = _split_csv(get_settings().allowed_project_ids)
    if allowed and project_id not in allowed:
        raise NotAuthorized(project_id)
    return project_id
