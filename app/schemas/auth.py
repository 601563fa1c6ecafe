from pydantic import Field, field_validator

from app.schemas.base import CamelModel
from app.schemas.user import UserResponse

# bcrypt only looks at the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72


class RegisterRequest(CamelModel):
    email: str = Field(max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(min_length=8, max_length=128)
    display_name: str = Field(min_length=1, max_length=255)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        return v


class LoginRequest(CamelModel):
    email: str = Field(max_length=255)
    password: str = Field(max_length=128)


class TokenResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse
