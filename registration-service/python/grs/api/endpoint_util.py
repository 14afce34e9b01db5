import logging
from collections.abc import Callable
from functools import wraps
from typing import Any

from starlette.requests import Request

from grs.core.errors import AuthenticationRequired, ServiceNotReady
from grs.manager.registration_manager import RegistrationManager
from grs.models import UserInfo

logger = logging.getLogger(__name__)


def get_manager(request: Request) -> RegistrationManager:
    """
    Return the registration manager attached to the app at startup.

    Raises:
        ServiceNotReady: If startup has not completed yet
    """
    manager = getattr(request.app.state, "manager", None)
    if manager is None:
        raise ServiceNotReady()
    return manager


def get_user(request: Request) -> UserInfo | None:
    return getattr(request.state, "user", None)


def requires_user(func: Callable[..., Any]) -> Callable[..., Any]:
    """
    Decorator requiring an authenticated caller for a route.

    The authorization middleware resolves the bearer token; this decorator
    only checks that it produced a user. The route must take ``request``.

    Args:
        func: The route function to decorate

    Returns:
        The decorated function that raises AuthenticationRequired without a user
    """

    @wraps(func)
    async def wrapper(*args: Any, request: Request, **kwargs: Any) -> Any:
        if get_user(request) is None:
            logger.warning(f"Authentication failed for route {func.__name__} - no valid bearer token")
            raise AuthenticationRequired()
        return await func(*args, request=request, **kwargs)

    return wrapper
