"""Issue, look up and consume hashed single-use tokens."""

import logging
from datetime import timedelta

from sqlalchemy import delete, or_, select, update
from sqlalchemy.orm import Session

from backend.auth import passwords
from backend.database import utcnow
from backend.models.reset_token import PASSWORD_RESET, ResetToken

logger = logging.getLogger(__name__)


def issue_token(
    db: Session,
    *,
    owner_id: str,
    owner_role: str,
    expires_minutes: int,
    purpose: str = PASSWORD_RESET,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> str:
    """Persist a new token and return the raw secret. Only its digest is stored."""
    raw_secret = passwords.generate_reset_secret()
    token = ResetToken(
        owner_id=owner_id,
        owner_role=owner_role,
        secret_hash=passwords.hash_reset_secret(raw_secret),
        purpose=purpose,
        expires_at=utcnow() + timedelta(minutes=expires_minutes),
        ip_address=(ip_address or 'unknown')[:64],
        user_agent=(user_agent or 'unknown')[:512],
    )
    db.add(token)
    db.commit()
    return raw_secret


def find_valid_token(db: Session, raw_secret: str, purpose: str = PASSWORD_RESET) -> ResetToken | None:
    """Return the unused, unexpired token for ``raw_secret`` without consuming it."""
    if not raw_secret:
        return None
    return db.execute(
        select(ResetToken).where(
            ResetToken.secret_hash == passwords.hash_reset_secret(raw_secret),
            ResetToken.purpose == purpose,
            ResetToken.used.is_(False),
            ResetToken.expires_at > utcnow(),
        )
    ).scalar_one_or_none()


def consume_token(db: Session, raw_secret: str, purpose: str = PASSWORD_RESET) -> ResetToken | None:
    """Mark the matching valid token used and return it, or ``None``.

    The check and the mark are one conditional UPDATE, so of several concurrent callers
    presenting the same secret exactly one gets the token back. The caller owns the
    transaction: commit to keep the token spent, roll back to release it.
    """
    if not raw_secret:
        return None
    secret_hash = passwords.hash_reset_secret(raw_secret)
    result = db.execute(
        update(ResetToken)
        .where(
            ResetToken.secret_hash == secret_hash,
            ResetToken.purpose == purpose,
            ResetToken.used.is_(False),
            ResetToken.expires_at > utcnow(),
        )
        .values(used=True)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return None

    return db.execute(
        select(ResetToken)
        .where(ResetToken.secret_hash == secret_hash)
        .execution_options(populate_existing=True)
    ).scalar_one()


def purge_stale_tokens(db: Session) -> int:
    """Delete tokens that were used or have expired."""
    result = db.execute(
        delete(ResetToken)
        .where(or_(ResetToken.used.is_(True), ResetToken.expires_at <= utcnow()))
        .execution_options(synchronize_session=False)
    )
    db.commit()
    if result.rowcount:
        logger.info('Purged %s stale reset tokens', result.rowcount)
    return result.rowcount
