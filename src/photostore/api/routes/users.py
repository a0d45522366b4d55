"""User account endpoints."""

from typing import Any

from fastapi import APIRouter, Depends

from ...services.users import UserService
from ..dependencies import get_user_service, require_token
from ..schemas import CreateUserRequest, DeleteUserRequest, LoginRequest

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("/bootstrap")
def bootstrap_admin(
    body: CreateUserRequest,
    users: UserService = Depends(get_user_service),
) -> dict[str, Any]:
    """Create the first (admin) user. Refused once any user exists."""
    user = users.bootstrap_admin(body.name or "", body.email or "", body.username or "", body.password or "")
    return {"message": "User created successfully", "user": user.to_public_dict()}


@router.post("/create")
def create_user(
    body: CreateUserRequest,
    token: str = Depends(require_token),
    users: UserService = Depends(get_user_service),
) -> dict[str, Any]:
    user = users.create_user(token, body.name or "", body.email or "", body.username or "", body.password or "")
    return {"message": "User created successfully", "user": user.to_public_dict()}


@router.post("/login")
def login(
    body: LoginRequest,
    users: UserService = Depends(get_user_service),
) -> dict[str, str]:
    result = users.login(body.email or "", body.password or "")
    return {"message": "Login successful", **result.to_dict()}


@router.delete("/delete")
def delete_user(
    body: DeleteUserRequest,
    users: UserService = Depends(get_user_service),
) -> dict[str, str]:
    """Delete a user identified by username, email and password together."""
    users.delete_user(body.username_to_delete or "", body.email or "", body.password or "")
    return {"message": "User deleted successfully"}


@router.get("")
def list_users(
    token: str = Depends(require_token),
    users: UserService = Depends(get_user_service),
) -> dict[str, list[dict[str, Any]]]:
    return {"users": [user.to_public_dict() for user in users.list_users()]}
