"""Shared utilities for the distress alerting platform."""
from .pii import hash_pii, fingerprint_text, configure_pii_salt
from .locks import KeyedLocks

__all__ = ["hash_pii", "fingerprint_text", "configure_pii_salt", "KeyedLocks"]
