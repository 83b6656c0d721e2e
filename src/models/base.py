"""
SQLAlchemy 2.0 async DeclarativeBase for the credential store.

All models inherit from this Base.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all session broker database models."""
    pass
