import hashlib
import logging
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models.token_blacklist import TokenBlacklist

logger = logging.getLogger(__name__)

# Used when a token carries no exp claim
DEFAULT_BLACKLIST_TTL = timedelta(hours=24)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def add(db: Session, token: str, expires_at: datetime = None, user_id: int = None) -> None:
    """Revoke ``token`` until ``expires_at``. Revoking twice is a no-op."""
    token_hash = hash_token(token)
    if db.query(TokenBlacklist.id).filter(TokenBlacklist.token_hash == token_hash).first():
        return
    entry = TokenBlacklist(
        token_hash=token_hash,
        user_id=user_id,
        expires_at=expires_at or datetime.utcnow() + DEFAULT_BLACKLIST_TTL,
    )
    db.add(entry)
    try:
        db.commit()
    except IntegrityError:
        # A concurrent logout stored the same token first
        db.rollback()


def is_blacklisted(db: Session, token: str) -> bool:
    token_hash = hash_token(token)
    return db.query(TokenBlacklist.id).filter(TokenBlacklist.token_hash == token_hash).first() is not None


def cleanup_expired(db: Session, now: datetime = None) -> int:
    now = now or datetime.utcnow()
    removed = (
        db.query(TokenBlacklist)
        .filter(TokenBlacklist.expires_at < now)
        .delete(synchronize_session=False)
    )
    db.commit()
    if removed:
        logger.info("Removed %s expired blacklisted tokens", removed)
    return removed
