"""Single-use, time-boxed secrets authorizing one account action."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, Index, String

from backend.database import Base, utcnow

PASSWORD_RESET = 'password-reset'
EMAIL_VERIFICATION = 'email-verification'

TOKEN_PURPOSES = (PASSWORD_RESET, EMAIL_VERIFICATION)


class ResetToken(Base):
    """Stores only the SHA-256 digest of the secret; the raw value goes out by email."""
    __tablename__ = "reset_tokens"
    __table_args__ = (
        Index('idx_reset_tokens_owner_purpose', 'owner_id', 'purpose'),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = Column(String(36), nullable=False)
    owner_role = Column(String(20), nullable=False)
    secret_hash = Column(String(64), unique=True, index=True, nullable=False)
    purpose = Column(String(30), nullable=False, default=PASSWORD_RESET)
    expires_at = Column(DateTime, nullable=False, index=True)
    used = Column(Boolean, nullable=False, default=False)
    ip_address = Column(String(64), nullable=False, default='unknown')
    user_agent = Column(String(512), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def is_valid(self, now=None) -> bool:
        now = now or utcnow()
        return not self.used and self.expires_at > now
