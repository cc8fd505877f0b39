from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime

from housemate.database import Base
from housemate.utils.dates import utcnow


class User(Base):
    """User model representing roommates.

    Accounts are provisioned by the external identity service; this
    service only reads them, and deletes them on request.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=False, default="")
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def is_displayable(self) -> bool:
        """True when the record carries the fields a projection needs."""
        return bool(self.name and self.name.strip())
