"""
StealthChat - Services Package
================================
High-level service layer.
"""

from stealth_chat.services.stealth_service import StealthService, RegistrationStatus

__all__ = [
    "StealthService",
    "RegistrationStatus",
]
