"""
Request body models.
"""

from typing import Annotated, List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

# bcrypt only looks at the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72


def _check_password(value: str) -> str:
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")
    return value


Password = Annotated[str, Field(min_length=1), AfterValidator(_check_password)]


class RegisterRequest(BaseModel):
    """Body of POST /auth/register and POST /users."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    username: str = Field(min_length=1)
    email: str = Field(min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    password: Password
    permissions: List[str] = Field(default_factory=list)


class LoginRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    email: str = Field(min_length=1)
    password: Password


class UserUpdate(BaseModel):
    """Body of PUT /users/{id}. Role names are resolved to ids."""

    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    username: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = Field(default=None, pattern=r"^[^@\s]+@[^@\s]+$")
    password: Optional[Password] = None
    permissions: Optional[List[str]] = None
    roles: Optional[List[str]] = None


class RoleCreate(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    name: str = Field(min_length=1)
    permissions: List[str] = Field(default_factory=list)


class RoleUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1)
    permissions: Optional[List[str]] = None


class PostCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str = Field(min_length=1)
    description: str = ""
    content: str = ""
    featured_image_url: str = ""


class PostUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    content: Optional[str] = None
    featured_image_url: Optional[str] = None
