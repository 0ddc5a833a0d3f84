"""Pydantic schemas for Users and authentication."""
from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import AliasChoices, BaseModel, EmailStr, Field, model_validator

from app.models.user import UserRole


class UserRegister(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr = Field(..., max_length=255)
    password: str = Field(..., min_length=8, max_length=255)
    password_confirmation: str

    @model_validator(mode="after")
    def _passwords_match(self) -> "UserRegister":
        if self.password != self.password_confirmation:
            raise ValueError("The password confirmation does not match.")
        return self


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserSummary(BaseModel):
    """Identity summary nested in travel request resources."""

    id: str = Field(validation_alias=AliasChoices("user_id", "id"))
    name: str
    email: str

    model_config = {"from_attributes": True}


class UserOut(UserSummary):
    role: UserRole
    created_at: Optional[datetime] = None


class AuthResponse(BaseModel):
    message: Optional[str] = None
    user: UserOut
    token: str
    token_type: str = "bearer"


class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"
