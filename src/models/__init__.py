"""
Models package — export all SQLAlchemy models.
"""

from src.models.base import Base
from src.models.credential import CredentialRecord

__all__ = ["Base", "CredentialRecord"]
