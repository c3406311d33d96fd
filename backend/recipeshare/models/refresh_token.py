# recipeshare/models/refresh_token.py
from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func

from recipeshare.core.base import Base


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"

    id = Column(Integer, primary_key=True, index=True)

    # Lookup-only reference; rows are removed explicitly when the owner is deleted.
    user_id = Column(String(32), nullable=False, index=True)

    # HMAC of the signed refresh JWT (never the raw token)
    token_hash = Column(String(255), unique=True, index=True, nullable=False)

    # Mirrors the JWT's own `exp` claim
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
