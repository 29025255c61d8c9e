"""
Refresh token persistence and lifecycle.

Every record moves Active -> Revoked or Active -> Expired and never back.
Raw secrets only ever exist in memory: rows carry an HMAC of the secret
keyed with the service signing secret.

State changes go through a conditional UPDATE guarded by
``is_revoked = false`` and checked on the affected row count, so two
requests racing on the same secret cannot both succeed.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional

from sqlalchemy import update, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.attributes import set_committed_value

from models.refresh_token import RefreshToken
from utils.exceptions import NotFound, Expired, Revoked, StorageError, MissingSecret
from utils.security import hash_token

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 100
USER_AGENT_MAX = 500
IP_ADDRESS_MAX = 45


class RefreshTokenStore:
    """Owns the refresh_tokens table. Callers never touch rows directly."""

    def __init__(self, storage, secret: Optional[str], token_type: str = "jwt",
                 clock: Callable[[], float] = time.time):
        self.storage = storage
        self._secret = secret
        self.token_type = token_type
        self._clock = clock

    def _now(self) -> int:
        return int(self._clock())

    def _hash(self, raw_secret: str) -> str:
        if not self._secret:
            raise MissingSecret()
        return hash_token(raw_secret, self._secret)

    def _find(self, session, raw_secret: str) -> Optional[RefreshToken]:
        # populate_existing: another thread may have revoked the row since
        # this session last loaded it
        return (
            session.query(RefreshToken)
            .populate_existing()
            .filter(
                RefreshToken.token_hash == self._hash(raw_secret),
                RefreshToken.token_type == self.token_type,
            )
            .order_by(RefreshToken.id.desc())
            .first()
        )

    def _mark_revoked(self, session, record: RefreshToken, now: int) -> bool:
        """Compare-and-swap Active -> Revoked. True only for the caller that flipped it."""
        result = session.execute(
            update(RefreshToken)
            .where(RefreshToken.id == record.id, RefreshToken.is_revoked.is_(False))
            .values(is_revoked=True, revoked_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            set_committed_value(record, "is_revoked", True)
            set_committed_value(record, "revoked_at", now)
            return True
        return False

    def _build_record(self, user_id: int, raw_secret: str, expires_at: int,
                      metadata: Optional[dict], now: int) -> RefreshToken:
        metadata = metadata or {}
        user_agent = metadata.get("user_agent")
        ip_address = metadata.get("ip_address")
        return RefreshToken(
            user_id=int(user_id),
            token_hash=self._hash(raw_secret),
            issued_at=int(metadata.get("issued_at") or now),
            expires_at=int(expires_at),
            revoked_at=None,
            is_revoked=False,
            user_agent=user_agent[:USER_AGENT_MAX] if user_agent else None,
            ip_address=ip_address[:IP_ADDRESS_MAX] if ip_address else None,
            created_at=now,
            token_type=self.token_type,
        )

    def _expire(self, session, record: RefreshToken, now: int):
        if not record.is_revoked:
            self._mark_revoked(session, record, now)
            session.commit()
        raise Expired("Refresh token expired", record=record)

    def store(self, user_id: int, raw_secret: str, expires_at: int,
              metadata: Optional[dict] = None) -> RefreshToken:
        """Persist a new active record for `raw_secret`."""
        session = self.storage.get_session()
        record = self._build_record(user_id, raw_secret, expires_at, metadata, self._now())
        try:
            session.add(record)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception("Failed to store refresh token for user %s", user_id)
            raise StorageError("could not store refresh token") from exc
        return record

    def validate(self, raw_secret: str) -> RefreshToken:
        """
        Return the active record for `raw_secret`.

        Raises NotFound, Revoked (possible reuse) or Expired. An expired
        record is revoked on the way out so it can never be retried.
        """
        session = self.storage.get_session()
        try:
            record = self._find(session, raw_secret)
            if record is None:
                raise NotFound("Refresh token not found")
            now = self._now()
            if record.expires_at < now:
                self._expire(session, record, now)
            if record.is_revoked:
                raise Revoked("Refresh token has been revoked", record=record)
            return record
        except SQLAlchemyError as exc:
            session.rollback()
            raise StorageError("could not validate refresh token") from exc

    def rotate(self, old_raw_secret: str, new_raw_secret: str, user_id: int,
               new_expires_at: int, metadata: Optional[dict] = None) -> RefreshToken:
        """
        Revoke the record for `old_raw_secret` and insert one for
        `new_raw_secret` in a single transaction.

        Losing a race against another rotate/revoke raises Revoked. If the
        insert fails the revocation is rolled back and StorageError is raised.
        """
        session = self.storage.get_session()
        now = self._now()
        try:
            record = self._find(session, old_raw_secret)
            if record is None or record.user_id != int(user_id):
                raise NotFound("Refresh token not found")
            if record.expires_at < now:
                self._expire(session, record, now)
            if record.is_revoked:
                raise Revoked("Refresh token has been revoked", record=record)

            if not self._mark_revoked(session, record, now):
                session.rollback()
                raise Revoked("Refresh token was already used", record=record)

            new_record = self._build_record(user_id, new_raw_secret, new_expires_at, metadata, now)
            session.add(new_record)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception("Refresh token rotation failed for user %s", user_id)
            raise StorageError("could not rotate refresh token") from exc
        return new_record

    def revoke(self, raw_secret: str) -> bool:
        """Revoke the active record for `raw_secret`. False if there is none."""
        session = self.storage.get_session()
        try:
            result = session.execute(
                update(RefreshToken)
                .where(
                    RefreshToken.token_hash == self._hash(raw_secret),
                    RefreshToken.token_type == self.token_type,
                    RefreshToken.is_revoked.is_(False),
                    RefreshToken.expires_at >= self._now(),
                )
                .values(is_revoked=True, revoked_at=self._now())
                .execution_options(synchronize_session=False)
            )
            affected = result.rowcount
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise StorageError("could not revoke refresh token") from exc
        return affected > 0

    def revoke_by_id(self, user_id: int, record_id: int) -> bool:
        """Revoke one record, only if `user_id` owns it."""
        session = self.storage.get_session()
        try:
            result = session.execute(
                update(RefreshToken)
                .where(
                    RefreshToken.id == int(record_id),
                    RefreshToken.user_id == int(user_id),
                    RefreshToken.token_type == self.token_type,
                    RefreshToken.is_revoked.is_(False),
                )
                .values(is_revoked=True, revoked_at=self._now())
                .execution_options(synchronize_session=False)
            )
            affected = result.rowcount
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise StorageError("could not revoke refresh token") from exc
        return affected == 1

    def revoke_all(self, user_id: int) -> int:
        """Revoke every active record of a user; returns how many were revoked."""
        session = self.storage.get_session()
        try:
            result = session.execute(
                update(RefreshToken)
                .where(
                    RefreshToken.user_id == int(user_id),
                    RefreshToken.token_type == self.token_type,
                    RefreshToken.is_revoked.is_(False),
                )
                .values(is_revoked=True, revoked_at=self._now())
                .execution_options(synchronize_session=False)
            )
            affected = result.rowcount
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise StorageError("could not revoke refresh tokens") from exc
        return affected

    def get_user_tokens(self, user_id: int, limit: int = DEFAULT_LIMIT) -> List[RefreshToken]:
        """Newest first, at most `limit` rows (revoked and expired included)."""
        limit = max(1, int(limit))
        session = self.storage.get_session()
        try:
            return (
                session.query(RefreshToken)
                .populate_existing()
                .filter(
                    RefreshToken.user_id == int(user_id),
                    RefreshToken.token_type == self.token_type,
                )
                .order_by(RefreshToken.issued_at.desc(), RefreshToken.id.desc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as exc:
            session.rollback()
            raise StorageError("could not list refresh tokens") from exc

    def clean_expired(self, retention: int = 0) -> int:
        """
        Delete rows that expired more than `retention` seconds ago.

        Only expired rows are touched; revoked rows that have not expired
        yet are kept so a replayed secret is still reported as Revoked.
        """
        cutoff = self._now() - max(0, int(retention))
        session = self.storage.get_session()
        try:
            result = session.execute(
                delete(RefreshToken)
                .where(
                    RefreshToken.token_type == self.token_type,
                    RefreshToken.expires_at < cutoff,
                )
                .execution_options(synchronize_session=False)
            )
            affected = result.rowcount
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise StorageError("could not purge refresh tokens") from exc
        if affected:
            logger.info("Purged %d expired refresh tokens", affected)
        return affected
