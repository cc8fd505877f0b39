from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Table,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from housemate.database import Base
from housemate.utils.dates import utcnow


# Association table for group membership.
# ``id`` breaks ties between members that joined in the same instant.
group_members = Table(
    "group_members",
    Base.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("group_id", Integer, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("joined_at", DateTime, default=utcnow, nullable=False),
    UniqueConstraint("group_id", "user_id", name="uq_group_members_group_user"),
)


class Group(Base):
    """Group model representing a shared household."""

    __tablename__ = "groups"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    join_code = Column(String(20), unique=True, index=True, nullable=False)
    # May dangle after account deletion; repaired on read
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    version = Column(Integer, nullable=False, default=1)

    # One-to-many with tasks
    tasks = relationship("Task", back_populates="group", cascade="all, delete-orphan")

    __mapper_args__ = {"version_id_col": version}
