"""PII handling for logs: student identifiers never appear in clear text.

Subject identifiers are hashed with a secret salt before they are logged,
and free text is reduced to a SHA-256 fingerprint so an audit trail can
be matched against the stored original without exposing its content.
"""
import hashlib
import logging
from typing import Optional

logger = logging.getLogger(__name__)

MIN_SALT_LENGTH = 32

_PII_SALT: Optional[str] = None


def configure_pii_salt(salt: str) -> None:
    """Configure the identifier hashing salt.

    Must be called during application startup before any identifier is
    hashed (the HTTP handlers read it from PII_HASH_SALT).

    Raises:
        ValueError: If salt is empty or shorter than MIN_SALT_LENGTH
    """
    global _PII_SALT
    if not salt or len(salt) < MIN_SALT_LENGTH:
        logger.critical(
            "PII_SALT_CONFIGURATION_FAILED",
            extra={"reason": "Salt too short or empty", "min_length": MIN_SALT_LENGTH}
        )
        raise ValueError(f"PII salt must be at least {MIN_SALT_LENGTH} characters")

    _PII_SALT = salt
    logger.info("PII_SALT_CONFIGURED", extra={"salt_length": len(salt)})


def hash_pii(value: Optional[str]) -> Optional[str]:
    """Hash a subject or responder identifier for logging.

    Returns None for a missing identifier so optional fields can be
    passed straight through.

    Raises:
        RuntimeError: If the salt has not been configured
    """
    if value is None:
        return None
    if _PII_SALT is None:
        logger.critical(
            "PII_HASH_FAILED",
            extra={"reason": "Salt not configured", "action": "call configure_pii_salt()"}
        )
        raise RuntimeError("PII salt not configured. Call configure_pii_salt() first.")

    return hashlib.sha256(f"{_PII_SALT}{value}".encode()).hexdigest()


def fingerprint_text(text: str) -> str:
    """Unsalted SHA-256 of feedback text for audit correlation."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
