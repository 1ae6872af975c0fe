# schemas/user.py

from typing import Optional
from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import datetime


class UserCreate(BaseModel):
    username: str = Field(min_length=3, max_length=20)
    password: str = Field(min_length=6)
    confirm_password: Optional[str] = None
    real_name: str = Field(min_length=2)
    avatar: Optional[str] = None

    @field_validator("username", "real_name")
    @classmethod
    def strip_text(cls, value: str) -> str:
        return value.strip()

    @model_validator(mode="after")
    def passwords_match(self):
        if self.confirm_password is not None and self.confirm_password != self.password:
            raise ValueError("Passwords do not match")
        return self


class UserRead(BaseModel):
    id: int
    username: str
    real_name: str
    avatar: Optional[str]
    created_date: datetime
    active: bool

    class Config:
        from_attributes = True


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
