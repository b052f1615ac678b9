from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends, Header

from apps.api.user.models import User
from apps.context import set_current_user_id
from core.db.core import SessionDep
from core.exceptions.authentication import ForbiddenException, UnauthorizedException


async def get_current_user(
    session: SessionDep,
    x_user_id: Annotated[Optional[str], Header()] = None,
) -> User:
    # identity is issued upstream; the gateway forwards the verified user id
    if not x_user_id:
        raise UnauthorizedException(
            "Missing X-User-Id header.", error_code="NOT_AUTHENTICATED"
        )
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise UnauthorizedException(
            "Malformed X-User-Id header.", error_code="NOT_AUTHENTICATED"
        )
    user = await session.get(User, user_id)
    if not user:
        raise ForbiddenException(
            "User not found or not authenticated.",
            error_code="USER_NOT_FOUND",
        )
    set_current_user_id(user.id)
    return user


UserDependency = Annotated[User, Depends(get_current_user)]


async def get_current_operator(user: UserDependency) -> User:
    if not user.is_operator:
        raise ForbiddenException(
            "Only attendants and admins can do this.",
            error_code="OPERATOR_REQUIRED",
        )
    return user


OperatorDependency = Annotated[User, Depends(get_current_operator)]
