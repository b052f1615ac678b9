# apps/api/user/service.py

import logging
import uuid
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.user.models import User, UserRoles

logger = logging.getLogger(__name__)


class IdentityProvisioner:
    """
    Issues throwaway identities for walk-in guests registered by an attendant.

    The identity is added to the caller's session so it commits (or rolls
    back) together with the reservation that needed it.
    """

    async def create_ephemeral_identity(
        self, session: AsyncSession, first_name: str, last_name: str
    ) -> UUID:
        user = User(
            id=uuid.uuid4(),
            fullname=f"{first_name.strip()} {last_name.strip()}".strip(),
            email=f"guest_{uuid.uuid4().hex[:12]}@guest.invalid",
            role=UserRoles.USER.value,
            is_guest=True,
        )
        session.add(user)
        await session.flush()
        logger.info(f"Provisioned guest identity {user.id} for {user.fullname}")
        return user.id
