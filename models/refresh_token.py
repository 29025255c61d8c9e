"""
RefreshToken model: one row per issued refresh token grant.
Fields:
- id (autoincrement primary key)
- user_id - owner; no foreign key, deleting a user leaves its rows behind
- token_hash - HMAC-SHA256 of the raw secret (the raw secret is never stored)
- issued_at, expires_at, revoked_at - unix seconds
- is_revoked - kept next to revoked_at for cheap filtering
- user_agent, ip_address - captured at issuance/rotation
- token_type - scheme discriminator ("jwt")
"""
import time

from sqlalchemy import Column, String, Boolean, BigInteger, Integer
from models.base_model import BaseModel, Base


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"

    user_id = Column(Integer, nullable=False, index=True)
    token_hash = Column(String(255), nullable=False, index=True)
    issued_at = Column(BigInteger, nullable=False)
    expires_at = Column(BigInteger, nullable=False, index=True)
    revoked_at = Column(BigInteger, nullable=True)
    is_revoked = Column(Boolean, default=False, nullable=False)
    user_agent = Column(String(500), nullable=True)
    ip_address = Column(String(45), nullable=True)
    token_type = Column(String(50), default="jwt", nullable=False, index=True)

    def is_expired(self, now: int | None = None) -> bool:
        now = int(time.time()) if now is None else now
        return self.expires_at < now

    def is_active(self, now: int | None = None) -> bool:
        return not self.is_revoked and not self.is_expired(now)

    def __repr__(self):
        return f"<RefreshToken id={self.id} user_id={self.user_id} revoked={self.is_revoked}>"
