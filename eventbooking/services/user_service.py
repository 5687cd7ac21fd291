"""
Local user records for identities issued by the external provider.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from eventbooking.db.transaction import transactional
from eventbooking.domain.errors import UserNotFoundError
from eventbooking.models.user import User
from eventbooking.core.logging import get_logger

logger = get_logger(__name__)


@transactional
async def resolve_user_id(db: AsyncSession, subject: str, email: str = "", name: str = "") -> int:
    """
    Map the provider's subject id to a local user id.

    Known subject -> its user. Otherwise a user with the same email gets the
    subject attached. Otherwise a new user is provisioned from the claims.
    """
    result = await db.execute(select(User).where(User.external_subject == subject))
    user = result.scalar_one_or_none()
    if user:
        return user.id

    if email:
        result = await db.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()
        if user:
            user.external_subject = subject
            await db.flush()
            logger.info("user_linked", user_id=user.id, email=email)
            return user.id

    user = User(external_subject=subject, email=email, name=name or email)
    db.add(user)
    await db.flush()

    logger.info("user_provisioned", user_id=user.id, email=email)
    return user.id


async def get_user(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(
        select(User).where(User.id == user_id).execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if not user:
        raise UserNotFoundError(user_id)
    return user
