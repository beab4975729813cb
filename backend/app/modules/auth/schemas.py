from datetime import datetime

from pydantic import BaseModel, Field


class TokenResponse(BaseModel):
    AccessToken: str
    TokenType: str = "bearer"
    ExpiresIn: int
    Email: str
    DisplayName: str | None = None


class LoginRequest(BaseModel):
    Email: str = Field(..., max_length=254)
    Password: str = Field(..., max_length=200)


class RegisterRequest(BaseModel):
    Email: str = Field(..., max_length=254)
    Password: str = Field(..., min_length=8, max_length=200)
    DisplayName: str | None = Field(default=None, max_length=120)


class UserOut(BaseModel):
    Id: int
    Email: str
    DisplayName: str | None = None
    HasApiKey: bool
    CreatedAt: datetime
