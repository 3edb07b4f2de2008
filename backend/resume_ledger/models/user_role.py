"""User role grant model."""

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from resume_ledger.models.base import Base, CreatedAtMixin, IdMixin


class UserRole(Base, IdMixin, CreatedAtMixin):
    """Role granted to a user; `admin` may curate the shared entity graph."""

    __tablename__ = "user_roles"
    __table_args__ = (UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),)

    user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    role: Mapped[str] = mapped_column(String(32), nullable=False)
