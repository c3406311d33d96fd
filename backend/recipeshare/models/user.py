# recipeshare/models/user.py
import uuid

from sqlalchemy import Boolean, Column, DateTime, String, false, func

from recipeshare.core.base import Base


def new_user_id() -> str:
    return uuid.uuid4().hex


class User(Base):
    __tablename__ = "users"

    id = Column(String(32), primary_key=True, default=new_user_id)

    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(100), unique=True, index=True, nullable=False)
    # NULL for Google-only accounts; email/password login is gated on its presence.
    hashed_password = Column(String(255), nullable=True)

    verified = Column(Boolean, nullable=False, default=False, server_default=false())
    google_id = Column(String(255), unique=True, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # One-time token slots: bcrypt hash of the token + absolute expiry.
    verification_token_hash = Column(String(255), nullable=True)
    verification_expires_at = Column(DateTime(timezone=True), nullable=True)

    reset_password_token_hash = Column(String(255), nullable=True)
    reset_password_expires_at = Column(DateTime(timezone=True), nullable=True)

    delete_account_token_hash = Column(String(255), nullable=True)
    delete_account_expires_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def has_password(self) -> bool:
        return bool(self.hashed_password)
