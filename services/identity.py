"""
Username/password identity provider backed by the users table.
Passwords are argon2 hashes (utils.security).
"""
from __future__ import annotations

import logging
from typing import Optional, List

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from models.user import User
from utils.exceptions import StorageError
from utils.security import hash_password, verify_password, password_needs_rehash

logger = logging.getLogger(__name__)


class IdentityProvider:
    def __init__(self, storage):
        self.storage = storage

    def authenticate(self, username: str, password: str) -> Optional[User]:
        """Return the user for a username (or email) and password, else None."""
        session = self.storage.get_session()
        login = (username or "").strip()
        user: User = (
            session.query(User)
            .filter(or_(User.username == login, User.email == login.lower()))
            .first()
        )
        if not user or not verify_password(password, user.password_hash):
            return None

        if password_needs_rehash(user.password_hash):
            user.password_hash = hash_password(password)
            try:
                self.storage.save()
            except SQLAlchemyError:
                # login still succeeds; the old hash stays valid
                logger.warning("Could not rehash password for user %s", user.id)
        return user

    def get_user(self, user_id: int) -> Optional[User]:
        return self.storage.get(User, int(user_id))

    def create_user(self, username: str, email: str, password: str,
                    display_name: str | None = None, roles: List[str] | None = None) -> User:
        user = User(
            username=username.strip(),
            email=email.strip().lower(),
            display_name=display_name or username,
            password_hash=hash_password(password),
            roles=list(roles) if roles else ["subscriber"],
        )
        self.storage.new(user)
        try:
            self.storage.save()
        except SQLAlchemyError as exc:
            raise StorageError(f"could not create user {username}") from exc
        return user
