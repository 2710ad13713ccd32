"""
User model — the authentication identity.

Each User is a login (unique) plus an Argon2id password hash. Every user owns
exactly one balance snapshot row, created in the same transaction as the user.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from loyalty.database import Base


class User(Base):
    __tablename__ = "users"

    # Opaque identifier generated at registration
    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # Login name, unique and indexed for lookups at login
    username: Mapped[str] = mapped_column(
        String(256),
        unique=True,
        nullable=False,
        index=True,
    )

    # Argon2id hash of the password (never store plaintext!)
    hashed_password: Mapped[str] = mapped_column(
        "pwdhash",
        String(255),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
