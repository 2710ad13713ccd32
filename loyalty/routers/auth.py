"""
Authentication router — register and login endpoints.

These are the only public (unauthenticated) endpoints under /api/user.

Endpoints:
  POST /api/user/register  — Register a new user and get a token
  POST /api/user/login     — Authenticate and get a token

The token is returned both in the body and in the Authorization response
header, so clients can simply echo the header back.
"""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from loyalty.database import get_db
from loyalty.schemas.auth import CredentialsRequest, RegisterResponse, TokenResponse
from loyalty.services import auth_service

router = APIRouter()


@router.post(
    "/register",
    response_model=RegisterResponse,
    summary="Register a new user",
)
async def register(
    request: CredentialsRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """
    Register a new user with a zero points balance.

    - **login**: Must not already be registered (409 otherwise)
    - **password**: Stored as an Argon2id hash
    """
    user, token = await auth_service.register(
        db=db,
        login=request.login,
        password=request.password,
    )

    response.headers["Authorization"] = f"Bearer {token}"
    return RegisterResponse(user_id=user.id, login=user.username, token=token)


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Authenticate and get a token",
)
async def login(
    request: CredentialsRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """
    Authenticate with login and password.

    Returns a JWT bearer token for all subsequent requests:

        Authorization: Bearer <token>
    """
    _, token = await auth_service.login(
        db=db,
        login=request.login,
        password=request.password,
    )

    response.headers["Authorization"] = f"Bearer {token}"
    return TokenResponse(token=token)
