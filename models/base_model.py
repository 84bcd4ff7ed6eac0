#!/usr/bin/env python3
"""
Shared SQLAlchemy base for the auth gateway's document store.

- created_at / updated_at timestamps (server-side defaults)
- kwargs constructor
- to_dict() that formats timestamps and removes SA internals

Natural keys are declared by each model; there is no surrogate id here
because action keys are addressed by (action_type, email).
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

TIME_FMT = "%Y-%m-%dT%H:%M:%S.%f"

# Declarative base for all models
Base = declarative_base()


class BaseModel:
    """
    Base mixin for all persistent models.
    """

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __init__(self, *args, **kwargs):
        for key, value in kwargs.items():
            if key != "__class__":
                setattr(self, key, value)

    def __str__(self) -> str:
        return f"[{self.__class__.__name__}] {self.to_dict()}"

    def to_dict(self) -> dict:
        """
        Return a dictionary of fields:
        - Formats created_at / updated_at to TIME_FMT if they are datetime objects
        - Removes SQLAlchemy internal state
        - Drops any attribute listed in the model's __secret_fields__
        """
        hidden = set(getattr(self, "__secret_fields__", ()))
        d = {
            k: v for k, v in self.__dict__.items()
            if k != "_sa_instance_state" and k not in hidden
        }
        for field in ("created_at", "updated_at", "expires_at"):
            if isinstance(d.get(field), datetime):
                d[field] = d[field].strftime(TIME_FMT)
        d["__class__"] = self.__class__.__name__
        return d
