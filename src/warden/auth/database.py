"""
SQLite stores for users, roles and posts.

Thread-safe stores sharing one database file. Every operation opens its own
connection and is serialized through a per-store threading.RLock.

Users reference roles by id through the user_roles table. Role records are
joined in explicitly on every user read; a reference to a deleted role simply
stops resolving.
"""

import json
import sqlite3
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from loguru import logger

from .errors import EmailInUse, UsernameInUse
from .models import Post, Role, User
from .passwords import PasswordHasher


SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    user_id TEXT PRIMARY KEY,
    name TEXT NOT NULL DEFAULT '',
    username TEXT UNIQUE NOT NULL,
    email TEXT UNIQUE NOT NULL,
    password_hash TEXT NOT NULL,
    permissions TEXT NOT NULL DEFAULT '[]',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS roles (
    role_id TEXT PRIMARY KEY,
    name TEXT UNIQUE NOT NULL,
    permissions TEXT NOT NULL DEFAULT '[]',
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS user_roles (
    user_id TEXT NOT NULL,
    role_id TEXT NOT NULL,
    position INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (user_id, role_id)
);

CREATE TABLE IF NOT EXISTS posts (
    post_id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    content TEXT NOT NULL DEFAULT '',
    featured_image_url TEXT NOT NULL DEFAULT '',
    author TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_user_roles_user ON user_roles(user_id);
CREATE INDEX IF NOT EXISTS idx_posts_author ON posts(author);
"""

# Columns that may be used in find_users() filters
USER_FILTER_COLUMNS = ("user_id", "name", "username", "email")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _unique(values: Iterable[str]) -> List[str]:
    seen: Dict[str, None] = {}
    for value in values:
        seen.setdefault(value, None)
    return list(seen)


class _SQLiteStore:
    """Shared connection handling for the stores."""

    def __init__(self, db_path: Union[str, Path]):
        """
        Initialize store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self._lock = threading.RLock()
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self):
        """Create tables if they don't exist."""
        with self._lock:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = self._connect()
            try:
                conn.executescript(SCHEMA)
                conn.commit()
            finally:
                conn.close()

        logger.debug(f"{type(self).__name__} initialized: {self.db_path}")


def _row_to_role(row: sqlite3.Row) -> Role:
    return Role(
        role_id=row["role_id"],
        name=row["name"],
        permissions=json.loads(row["permissions"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


class RoleDatabase(_SQLiteStore):
    """Role store: named roles with their permission strings."""

    def create_role(self, name: str, permissions: Optional[List[str]] = None) -> Role:
        """
        Create a role.

        Raises:
            sqlite3.IntegrityError: If a role with that name already exists
        """
        role = Role(
            role_id=str(uuid.uuid4()),
            name=name,
            permissions=_unique(permissions or []),
            created_at=_now(),
        )

        with self._lock:
            conn = self._connect()
            try:
                conn.execute(
                    "INSERT INTO roles (role_id, name, permissions, created_at) VALUES (?, ?, ?, ?)",
                    (role.role_id, role.name, json.dumps(role.permissions), role.created_at.isoformat()),
                )
                conn.commit()
            finally:
                conn.close()

        logger.info(f"Role created: {name} ({role.role_id})")
        return role

    def get_role_by_id(self, role_id: str) -> Optional[Role]:
        with self._lock:
            conn = self._connect()
            try:
                row = conn.execute("SELECT * FROM roles WHERE role_id = ?", (role_id,)).fetchone()
            finally:
                conn.close()

        return _row_to_role(row) if row else None

    def get_role_by_name(self, name: str) -> Optional[Role]:
        with self._lock:
            conn = self._connect()
            try:
                row = conn.execute("SELECT * FROM roles WHERE name = ?", (name,)).fetchone()
            finally:
                conn.close()

        return _row_to_role(row) if row else None

    def find_roles_by_names(self, names: Iterable[str]) -> List[Role]:
        """
        Get every role whose name is in ``names``.

        Unknown names are ignored; the result is ordered by role name.
        """
        names = _unique(names)
        if not names:
            return []

        placeholders = ", ".join("?" for _ in names)
        with self._lock:
            conn = self._connect()
            try:
                rows = conn.execute(
                    f"SELECT * FROM roles WHERE name IN ({placeholders}) ORDER BY name",
                    names,
                ).fetchall()
            finally:
                conn.close()

        return [_row_to_role(row) for row in rows]

    def list_roles(self) -> List[Role]:
        with self._lock:
            conn = self._connect()
            try:
                rows = conn.execute("SELECT * FROM roles ORDER BY name").fetchall()
            finally:
                conn.close()

        return [_row_to_role(row) for row in rows]

    def update_role(
        self,
        role_id: str,
        name: Optional[str] = None,
        permissions: Optional[List[str]] = None,
    ) -> Optional[Role]:
        """
        Update a role's name and/or permissions.

        Returns:
            The updated Role, or None if it does not exist
        """
        with self._lock:
            role = self.get_role_by_id(role_id)
            if role is None:
                return None

            if name is not None:
                role.name = name
            if permissions is not None:
                role.permissions = _unique(permissions)

            conn = self._connect()
            try:
                conn.execute(
                    "UPDATE roles SET name = ?, permissions = ? WHERE role_id = ?",
                    (role.name, json.dumps(role.permissions), role_id),
                )
                conn.commit()
            finally:
                conn.close()

        logger.info(f"Role updated: {role.name}")
        return role

    def delete_role(self, role_id: str) -> bool:
        """
        Delete a role.

        User memberships pointing at it are left in place and stop resolving.
        """
        with self._lock:
            conn = self._connect()
            try:
                cursor = conn.execute("DELETE FROM roles WHERE role_id = ?", (role_id,))
                conn.commit()
                success = cursor.rowcount > 0
            finally:
                conn.close()

        if success:
            logger.info(f"Role deleted: {role_id}")

        return success


class UserDatabase(_SQLiteStore):
    """
    Credential store.

    Passwords are hashed with the injected PasswordHasher before any write
    that sets them. The plain text never reaches the database.
    """

    def __init__(self, db_path: Union[str, Path], hasher: PasswordHasher):
        self.hasher = hasher
        super().__init__(db_path)

    # ========================================================================
    # Row mapping
    # ========================================================================

    def _load_roles(self, conn: sqlite3.Connection, user_ids: List[str]) -> Dict[str, List[Role]]:
        """Join role records for the given users."""
        roles: Dict[str, List[Role]] = {user_id: [] for user_id in user_ids}
        if not user_ids:
            return roles

        placeholders = ", ".join("?" for _ in user_ids)
        rows = conn.execute(
            f"""
            SELECT ur.user_id AS member_id, r.*
            FROM user_roles ur
            JOIN roles r ON r.role_id = ur.role_id
            WHERE ur.user_id IN ({placeholders})
            ORDER BY ur.position
            """,
            user_ids,
        ).fetchall()

        for row in rows:
            roles[row["member_id"]].append(_row_to_role(row))

        return roles

    def _rows_to_users(self, conn: sqlite3.Connection, rows: List[sqlite3.Row]) -> List[User]:
        roles = self._load_roles(conn, [row["user_id"] for row in rows])
        return [
            User(
                user_id=row["user_id"],
                name=row["name"],
                username=row["username"],
                email=row["email"],
                password_hash=row["password_hash"],
                permissions=json.loads(row["permissions"]),
                roles=roles[row["user_id"]],
                created_at=datetime.fromisoformat(row["created_at"]),
                updated_at=datetime.fromisoformat(row["updated_at"]),
            )
            for row in rows
        ]

    def _get_one(self, column: str, value: Any) -> Optional[User]:
        with self._lock:
            conn = self._connect()
            try:
                row = conn.execute(f"SELECT * FROM users WHERE {column} = ?", (value,)).fetchone()
                if not row:
                    return None
                return self._rows_to_users(conn, [row])[0]
            finally:
                conn.close()

    @staticmethod
    def _set_roles(conn: sqlite3.Connection, user_id: str, role_ids: List[str]) -> None:
        conn.execute("DELETE FROM user_roles WHERE user_id = ?", (user_id,))
        conn.executemany(
            "INSERT INTO user_roles (user_id, role_id, position) VALUES (?, ?, ?)",
            [(user_id, role_id, position) for position, role_id in enumerate(_unique(role_ids))],
        )

    @staticmethod
    def _raise_conflict(error: sqlite3.IntegrityError) -> None:
        if "users.email" in str(error):
            raise EmailInUse() from error
        if "users.username" in str(error):
            raise UsernameInUse() from error
        raise error

    # ========================================================================
    # User Operations
    # ========================================================================

    def create_user(
        self,
        username: str,
        email: str,
        password: str,
        name: str = "",
        role_ids: Optional[List[str]] = None,
        permissions: Optional[List[str]] = None,
    ) -> User:
        """
        Create new user with hashed password.

        Args:
            username: Unique username
            email: Unique email
            password: Plain text password (will be hashed)
            name: Display name
            role_ids: Ids of the roles the user belongs to
            permissions: Direct permission grants

        Returns:
            Created User object with roles populated

        Raises:
            EmailInUse: If the email is already registered
            UsernameInUse: If the username is already taken
            CryptoError: If hashing fails
        """
        password_hash = self.hasher.hash(password)
        now = _now()
        user_id = str(uuid.uuid4())

        with self._lock:
            conn = self._connect()
            try:
                try:
                    conn.execute(
                        """
                        INSERT INTO users (user_id, name, username, email, password_hash,
                                           permissions, created_at, updated_at)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            user_id,
                            name,
                            username,
                            email,
                            password_hash,
                            json.dumps(_unique(permissions or [])),
                            now.isoformat(),
                            now.isoformat(),
                        ),
                    )
                except sqlite3.IntegrityError as e:
                    self._raise_conflict(e)
                self._set_roles(conn, user_id, role_ids or [])
                conn.commit()
            finally:
                conn.close()

        logger.info(f"User created: {username} ({user_id})")
        return self.get_user_by_id(user_id)

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        return self._get_one("user_id", user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self._get_one("email", email)

    def get_user_by_username(self, username: str) -> Optional[User]:
        return self._get_one("username", username)

    def find_users(self, **filters: Any) -> List[User]:
        """
        Get users matching every given column filter.

        Examples:
            >>> db.find_users(email="a@x.com")

        Raises:
            ValueError: If a filter names an unknown column
        """
        unknown = set(filters) - set(USER_FILTER_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown user filter(s): {', '.join(sorted(unknown))}")

        query = "SELECT * FROM users"
        if filters:
            query += " WHERE " + " AND ".join(f"{column} = ?" for column in filters)
        query += " ORDER BY username"

        with self._lock:
            conn = self._connect()
            try:
                rows = conn.execute(query, list(filters.values())).fetchall()
                return self._rows_to_users(conn, rows)
            finally:
                conn.close()

    def list_users(self) -> List[User]:
        return self.find_users()

    def update_user(
        self,
        user_id: str,
        name: Optional[str] = None,
        username: Optional[str] = None,
        email: Optional[str] = None,
        password: Optional[str] = None,
        permissions: Optional[List[str]] = None,
        role_ids: Optional[List[str]] = None,
    ) -> Optional[User]:
        """
        Update user information.

        Only arguments that are not None are changed. A new password is
        hashed before the write.

        Returns:
            The updated User, or None if it does not exist
        """
        fields: Dict[str, Any] = {}
        if name is not None:
            fields["name"] = name
        if username is not None:
            fields["username"] = username
        if email is not None:
            fields["email"] = email
        if permissions is not None:
            fields["permissions"] = json.dumps(_unique(permissions))
        if password is not None:
            fields["password_hash"] = self.hasher.hash(password)
        fields["updated_at"] = _now().isoformat()

        with self._lock:
            conn = self._connect()
            try:
                try:
                    cursor = conn.execute(
                        "UPDATE users SET "
                        + ", ".join(f"{column} = ?" for column in fields)
                        + " WHERE user_id = ?",
                        [*fields.values(), user_id],
                    )
                except sqlite3.IntegrityError as e:
                    self._raise_conflict(e)
                if cursor.rowcount == 0:
                    return None
                if role_ids is not None:
                    self._set_roles(conn, user_id, role_ids)
                conn.commit()
            finally:
                conn.close()

        logger.info(f"User updated: {user_id}")
        return self.get_user_by_id(user_id)

    def delete_user(self, user_id: str) -> bool:
        """
        Delete user and its role memberships.

        Returns:
            True if deletion succeeded
        """
        with self._lock:
            conn = self._connect()
            try:
                conn.execute("DELETE FROM user_roles WHERE user_id = ?", (user_id,))
                cursor = conn.execute("DELETE FROM users WHERE user_id = ?", (user_id,))
                conn.commit()
                success = cursor.rowcount > 0
            finally:
                conn.close()

        if success:
            logger.info(f"User deleted: {user_id}")

        return success


def _row_to_post(row: sqlite3.Row) -> Post:
    return Post(
        post_id=row["post_id"],
        title=row["title"],
        description=row["description"],
        content=row["content"],
        featured_image_url=row["featured_image_url"],
        author=row["author"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


class PostDatabase(_SQLiteStore):
    """Post store. Plain CRUD, no authorization logic."""

    POST_FIELDS = ("title", "description", "content", "featured_image_url")

    def create_post(
        self,
        title: str,
        author: str,
        description: str = "",
        content: str = "",
        featured_image_url: str = "",
    ) -> Post:
        post = Post(
            post_id=str(uuid.uuid4()),
            title=title,
            author=author,
            description=description,
            content=content,
            featured_image_url=featured_image_url,
            created_at=_now(),
        )

        with self._lock:
            conn = self._connect()
            try:
                conn.execute(
                    """
                    INSERT INTO posts (post_id, title, description, content,
                                       featured_image_url, author, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        post.post_id,
                        post.title,
                        post.description,
                        post.content,
                        post.featured_image_url,
                        post.author,
                        post.created_at.isoformat(),
                    ),
                )
                conn.commit()
            finally:
                conn.close()

        logger.info(f"Post created: {post.post_id} by {author}")
        return post

    def get_post_by_id(self, post_id: str) -> Optional[Post]:
        with self._lock:
            conn = self._connect()
            try:
                row = conn.execute("SELECT * FROM posts WHERE post_id = ?", (post_id,)).fetchone()
            finally:
                conn.close()

        return _row_to_post(row) if row else None

    def list_posts(self) -> List[Post]:
        with self._lock:
            conn = self._connect()
            try:
                rows = conn.execute("SELECT * FROM posts ORDER BY created_at").fetchall()
            finally:
                conn.close()

        return [_row_to_post(row) for row in rows]

    def update_post(self, post_id: str, **changes: Optional[str]) -> Optional[Post]:
        """
        Update post fields.

        Returns:
            The updated Post, or None if it does not exist
        """
        fields = {
            column: value
            for column, value in changes.items()
            if column in self.POST_FIELDS and value is not None
        }

        with self._lock:
            if fields:
                conn = self._connect()
                try:
                    conn.execute(
                        "UPDATE posts SET "
                        + ", ".join(f"{column} = ?" for column in fields)
                        + " WHERE post_id = ?",
                        [*fields.values(), post_id],
                    )
                    conn.commit()
                finally:
                    conn.close()

            return self.get_post_by_id(post_id)

    def delete_post(self, post_id: str) -> bool:
        with self._lock:
            conn = self._connect()
            try:
                cursor = conn.execute("DELETE FROM posts WHERE post_id = ?", (post_id,))
                conn.commit()
                success = cursor.rowcount > 0
            finally:
                conn.close()

        if success:
            logger.info(f"Post deleted: {post_id}")

        return success
