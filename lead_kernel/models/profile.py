"""User profile: role and business mode, keyed by the identity provider's user id."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from lead_kernel.db.base import Base, UUIDString
from lead_kernel.domain.business_rules import BusinessMode
from lead_kernel.domain.dtos import Role, UserProfileView


class UserProfile(Base):
    __tablename__ = "user_profiles"

    # Primary key is the external user id, never generated here.
    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=Role.USER.value)
    business_rule: Mapped[str] = mapped_column(
        String(30), nullable=False, default=BusinessMode.HYBRID.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    @property
    def mode(self) -> BusinessMode:
        return BusinessMode(self.business_rule)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value

    def to_dto(self) -> UserProfileView:
        return UserProfileView(
            user_id=self.id,
            role=Role(self.role),
            business_rule=self.mode,
        )
