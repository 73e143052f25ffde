"""Verification store adapters - Pending challenge storage."""

from .memory import InMemoryVerificationStore, VerificationSweeper

__all__ = ["InMemoryVerificationStore", "VerificationSweeper"]
