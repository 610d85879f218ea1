"""
ProfileService -- user profiles (role and business mode).

A profile is created lazily on first access with role ``user`` and mode
``hybrid``.  Concurrent first accesses race on the primary key; the loser's
INSERT is rolled back to a SAVEPOINT and the winner's row is re-read.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from lead_kernel.domain.business_rules import BusinessMode
from lead_kernel.domain.dtos import Role, UserProfileView
from lead_kernel.logging_config import get_logger
from lead_kernel.models.profile import UserProfile
from lead_kernel.services.base import BaseService

logger = get_logger("services.profile")


class ProfileService(BaseService):

    def _select(self, user_id: UUID, lock: bool) -> UserProfile | None:
        stmt = select(UserProfile).where(UserProfile.id == user_id)
        if lock:
            stmt = stmt.with_for_update()
        return self.session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def ensure_profile(self, user_id: UUID, lock: bool = False) -> UserProfile:
        """
        Return the profile for ``user_id``, creating the default one if needed.

        With ``lock=True`` the row is held FOR UPDATE until the caller's
        transaction ends, serializing work for the same user.
        """
        profile = self._select(user_id, lock)
        if profile is not None:
            return profile

        savepoint = self.session.begin_nested()
        try:
            profile = UserProfile(
                id=user_id,
                role=Role.USER.value,
                business_rule=BusinessMode.HYBRID.value,
            )
            self.session.add(profile)
            self.session.flush()
            savepoint.commit()
            logger.info("profile_created", extra={"user_id": str(user_id)})
        except IntegrityError:
            logger.debug("profile_create_race_retry", extra={"user_id": str(user_id)})
            savepoint.rollback()
            profile = None

        if profile is None or lock:
            profile = self._select(user_id, lock)
        return profile

    def set_business_rule(self, user_id: UUID, mode: BusinessMode | str) -> UserProfileView:
        mode = BusinessMode.parse(mode)
        profile = self.ensure_profile(user_id, lock=True)
        previous = profile.business_rule
        profile.business_rule = mode.value
        self.session.flush()
        logger.info(
            "business_rule_changed",
            extra={"user_id": str(user_id), "from": previous, "to": mode.value},
        )
        return profile.to_dto()

    def set_role(self, user_id: UUID, role: Role) -> UserProfileView:
        profile = self.ensure_profile(user_id, lock=True)
        profile.role = Role(role).value
        self.session.flush()
        logger.info("role_changed", extra={"user_id": str(user_id), "role": profile.role})
        return profile.to_dto()
