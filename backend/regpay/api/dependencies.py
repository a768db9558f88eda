import hmac

from fastapi import Header, HTTPException, status

from ..core.config import settings
from ..database import get_db  # noqa: F401  re-exported for routers and test overrides
from ..services.notification_dispatcher import NotificationDispatcher


def get_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher()


def require_admin_token(x_admin_token: str | None = Header(default=None)) -> None:
    """Guard operator endpoints with the shared ADMIN_API_TOKEN."""
    expected = settings.ADMIN_API_TOKEN
    if not expected or not x_admin_token or not hmac.compare_digest(x_admin_token, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin token",
        )
