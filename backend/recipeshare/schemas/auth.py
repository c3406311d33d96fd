# recipeshare/schemas/auth.py
from pydantic import BaseModel, ConfigDict, EmailStr, Field


class LoginIn(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class EmailIn(BaseModel):
    email: EmailStr


class MessageOut(BaseModel):
    message: str


class SessionOut(BaseModel):
    message: str
    user_id: str = Field(alias="userId")
    access_token: str = Field(alias="accessToken")
    access_token_expiration: int = Field(alias="accessTokenExpiration")

    model_config = ConfigDict(populate_by_name=True)


class AccessCheckOut(BaseModel):
    message: str
    user_id: str = Field(alias="userId")
    auth_method: str = Field(alias="authMethod")

    model_config = ConfigDict(populate_by_name=True)
