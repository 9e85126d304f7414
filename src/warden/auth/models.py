"""
User authentication data models.

Data classes for users, roles and posts.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class Role:
    """
    Named bundle of permission strings.

    Attributes:
        role_id: Unique role identifier (UUID)
        name: Unique role name (e.g., "admin", "user", "guest")
        permissions: Granted permission strings (e.g., "posts_read")
        created_at: Role creation timestamp
    """
    role_id: str
    name: str
    permissions: List[str] = field(default_factory=list)
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role_id": self.role_id,
            "name": self.name,
            "permissions": list(self.permissions),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class User:
    """
    User account.

    Attributes:
        user_id: Unique user identifier (UUID)
        username: Unique username
        email: Unique email address
        password_hash: Bcrypt hashed password
        name: Display name
        permissions: Direct permission grants; when non-empty they replace
            the permissions of every role
        roles: Role records the user belongs to, populated on every read
        created_at: Account creation timestamp
        updated_at: Last modification timestamp
    """
    user_id: str
    username: str
    email: str
    password_hash: str = field(repr=False)
    name: str = ""
    permissions: List[str] = field(default_factory=list)
    roles: List[Role] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def role_ids(self) -> List[str]:
        return [role.role_id for role in self.roles]

    @property
    def role_names(self) -> List[str]:
        return [role.name for role in self.roles]

    def to_dict(self) -> Dict[str, Any]:
        """Public representation. The password hash is never included."""
        return {
            "user_id": self.user_id,
            "name": self.name,
            "username": self.username,
            "email": self.email,
            "permissions": list(self.permissions),
            "roles": [role.to_dict() for role in self.roles],
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class Post:
    """
    Blog post owned by a user.

    Attributes:
        post_id: Unique post identifier (UUID)
        title: Post title
        author: user_id of the creator
    """
    post_id: str
    title: str
    author: str
    description: str = ""
    content: str = ""
    featured_image_url: str = ""
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "post_id": self.post_id,
            "title": self.title,
            "description": self.description,
            "content": self.content,
            "featured_image_url": self.featured_image_url,
            "author": self.author,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
