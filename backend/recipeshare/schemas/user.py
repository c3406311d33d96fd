from __future__ import annotations

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class RegisterIn(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class RegisterOut(BaseModel):
    message: str
    user_id: str = Field(alias="userId")

    model_config = ConfigDict(populate_by_name=True)


class ConfirmAccountIn(BaseModel):
    token: str = Field(min_length=1, max_length=256)


class PasswordResetIn(BaseModel):
    token: str = Field(min_length=1, max_length=256)
    new_password: str = Field(alias="newPassword", min_length=1, max_length=128)

    model_config = ConfigDict(populate_by_name=True)


class UpdateUserIn(BaseModel):
    username: str | None = Field(default=None, max_length=100)
    email: EmailStr | None = None


class UserProfileOut(BaseModel):
    user_id: str = Field(alias="userId")
    email: str
    username: str
    verified: bool
    google_linked: bool = Field(alias="googleLinked")

    model_config = ConfigDict(populate_by_name=True)
