from sqlalchemy import Column, DateTime
from sqlalchemy.sql import func


class TimestampMixin:
    """created_at / updated_at maintained by the database"""
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(),
                        onupdate=func.now(), nullable=False)
