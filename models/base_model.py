#!/usr/bin/env python3
"""
Shared SQLAlchemy base and mixin for the session API models.

- Integer autoincrement primary key (monotonic surrogate key; token
  subjects are positive integers)
- created_at stored as unix seconds, like every timestamp in this project

Persistence goes through DBStorage / RefreshTokenStore; models do not
commit themselves.
"""

from __future__ import annotations

import time

from sqlalchemy import Column, Integer, BigInteger
from sqlalchemy.orm import declarative_base

# Declarative base for all models
Base = declarative_base()


def _now_ts() -> int:
    return int(time.time())


class BaseModel:
    """
    Base mixin for all persistent models: id, created_at.
    """

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(BigInteger, default=_now_ts, nullable=True)

    def __init__(self, *args, **kwargs):
        """
        Allow attribute initialization via kwargs without requiring a session here.
        """
        for key, value in kwargs.items():
            if key != "__class__":
                setattr(self, key, value)
