"""
Request bodies for the HTTP API.

Every field is optional at this layer so that a missing field is reported
by the services as ``missing_field`` (400), the same as any other
validation error.
"""

from pydantic import BaseModel, ConfigDict, Field


class RenameRequest(BaseModel):
    new_filename: str | None = Field(None, alias="newFilename")

    model_config = ConfigDict(populate_by_name=True)


class UpdateMetadataRequest(BaseModel):
    tags: list[str] | str | None = None
    description: str | None = None


class FavoriteRequest(BaseModel):
    """Optional body of toggleFavorite; with ``isFavorite`` the flag is set instead of flipped."""

    is_favorite: bool | None = Field(None, alias="isFavorite")

    model_config = ConfigDict(populate_by_name=True)


class CreateUserRequest(BaseModel):
    name: str | None = None
    email: str | None = None
    username: str | None = None
    password: str | None = None


class LoginRequest(BaseModel):
    email: str | None = None
    password: str | None = None


class DeleteUserRequest(BaseModel):
    username_to_delete: str | None = Field(None, alias="usernameToDelete")
    email: str | None = None
    password: str | None = None

    model_config = ConfigDict(populate_by_name=True)
