from pydantic import BaseModel, Field


class RegisterIn(BaseModel):
    name: str = Field(default="", max_length=200)
    email: str = Field(max_length=320)
    password: str
    confirm_password: str | None = None


class LoginIn(BaseModel):
    email: str
    password: str
