"""
Authentication middleware resolving bearer tokens to users.

The token of an ``Authorization: Bearer`` header is checked with a Kubernetes
TokenReview and the resulting user is stored on ``request.state.user``. Requests
without a valid token continue with ``user = None``; routes that need a caller
reject them with the ``requires_user`` decorator.
"""

import logging
import typing

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from grs.connectors.kubectl import KubectlConnectionError, KubectlExecutionError
from grs.core.errors import AuthenticationRequired
from grs.models import UserInfo

logger = logging.getLogger(__name__)

RequestResponseEndpoint = typing.Callable[[Request], typing.Awaitable[Response]]


def get_bearer_token(request: Request) -> str | None:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class AuthorizationMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request.state.user = None

        # Probes and docs never need a caller
        if not request.url.path.startswith("/api/"):
            return await call_next(request)

        token = get_bearer_token(request)
        manager = getattr(request.app.state, "manager", None)
        if token and manager is not None:
            request.state.user = await self._resolve_user(manager.authorization, token)

        return await call_next(request)

    async def _resolve_user(self, authorization: typing.Any, token: str) -> UserInfo | None:
        try:
            user = await authorization.extract_user_info(token)
        except AuthenticationRequired as e:
            logger.info(f"Rejected bearer token: {e.message}")
            return None
        except (KubectlConnectionError, KubectlExecutionError) as e:
            logger.warning(f"Token review failed: {e}")
            return None

        logger.debug(f"Authenticated user {user.username}")
        return user
