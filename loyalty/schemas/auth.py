"""
Pydantic schemas for the register and login endpoints.

Pydantic validates incoming data automatically: if a required field is
missing or the wrong type, FastAPI returns a 422 error before our code runs.
"""

import uuid

from pydantic import BaseModel, Field


class CredentialsRequest(BaseModel):
    """Request body for POST /api/user/register and /api/user/login."""
    login: str = Field(min_length=1, max_length=256)
    password: str = Field(min_length=1)


class TokenResponse(BaseModel):
    """Response body for a successful login — contains the JWT."""
    token: str
    token_type: str = "bearer"


class RegisterResponse(BaseModel):
    """Response body for a successful registration — user id + JWT."""
    user_id: uuid.UUID
    login: str
    token: str
    token_type: str = "bearer"
