"""FastAPI dependencies: store handles and the bearer token."""

from fastapi import Header, Request, Response

from ..error_handling import MissingTokenError
from ..services.context import StoreContext
from ..services.coordinator import PhotoStorageCoordinator
from ..services.users import UserService

REFRESHED_TOKEN_HEADER = "X-Refreshed-Token"


def get_context(request: Request) -> StoreContext:
    context: StoreContext = request.app.state.context
    return context


def get_coordinator(request: Request) -> PhotoStorageCoordinator:
    return get_context(request).coordinator


def get_user_service(request: Request) -> UserService:
    return get_context(request).users


def require_token(
    request: Request,
    response: Response,
    authorization: str | None = Header(default=None),
) -> str:
    """
    Return the raw Authorization header value.

    A missing header is always 403. A valid token is answered with a freshly
    issued one in the ``X-Refreshed-Token`` response header; an invalid one
    fails here before the route runs.
    """
    if not authorization or not authorization.strip():
        raise MissingTokenError("Missing Authentication Header")

    refreshed = get_context(request).auth.refresh(authorization)
    response.headers[REFRESHED_TOKEN_HEADER] = refreshed
    request.state.refreshed_token = refreshed
    return authorization


def route_requires_token(request: Request) -> bool:
    """Whether the matched route depends on ``require_token`` anywhere in its dependency tree."""
    route = request.scope.get("route")
    dependant = getattr(route, "dependant", None)
    pending = [dependant] if dependant is not None else []
    while pending:
        current = pending.pop()
        if current.call is require_token:
            return True
        pending.extend(current.dependencies)
    return False


def missing_token(request: Request) -> bool:
    """Whether the request targets a token-protected route without an Authorization header."""
    authorization = request.headers.get("authorization")
    return (not authorization or not authorization.strip()) and route_requires_token(request)
