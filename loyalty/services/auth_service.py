"""
Authentication service — register and login business logic.

Register flow:
  1. Check if the login is already taken
  2. Hash the password with Argon2id
  3. Create the User and its zeroed Balance snapshot in one transaction
  4. Return a JWT token so the user is immediately logged in

Login flow:
  1. Look up the user by login
  2. Verify the password against the stored hash
  3. Return a JWT token

Login returns the same error for "wrong password" and "unknown login" so
valid logins cannot be enumerated.
"""

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from loyalty.exceptions import DuplicateLoginError, InvalidCredentialsError
from loyalty.models.balance import Balance
from loyalty.models.user import User
from loyalty.security import hash_password, verify_password, create_access_token


async def register(
    db: AsyncSession,
    login: str,
    password: str,
) -> tuple[User, str]:
    """
    Register a new user together with their balance snapshot.

    Both rows are flushed in the caller's transaction: if either fails,
    neither is persisted.

    Returns:
        Tuple of (User instance, JWT token string).

    Raises:
        DuplicateLoginError: If the login is already registered.
    """
    result = await db.execute(select(User.id).where(User.username == login))
    if result.scalar_one_or_none() is not None:
        raise DuplicateLoginError(login)

    now = datetime.now(timezone.utc)
    user = User(
        username=login,
        hashed_password=hash_password(password),
        created_at=now,
    )
    db.add(user)

    try:
        # Flush to get user.id assigned (needed for the snapshot FK)
        await db.flush()
        db.add(Balance(
            customer_id=user.id,
            watermark=now,
            balance_cents=0,
            total_withdrawn_cents=0,
        ))
        await db.flush()
    except IntegrityError as exc:
        # Lost a race with a concurrent registration of the same login
        raise DuplicateLoginError(login) from exc

    token = create_access_token(data={"sub": str(user.id)})
    return user, token


async def login(
    db: AsyncSession,
    login: str,
    password: str,
) -> tuple[User, str]:
    """
    Authenticate a user and return a JWT token.

    Raises:
        InvalidCredentialsError: If the login doesn't exist or the password is wrong.
    """
    result = await db.execute(select(User).where(User.username == login))
    user = result.scalar_one_or_none()

    if user is None or not verify_password(password, user.hashed_password):
        raise InvalidCredentialsError()

    token = create_access_token(data={"sub": str(user.id)})
    return user, token
