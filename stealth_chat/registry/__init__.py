"""
StealthChat - Registry Package
================================
Collaboratori esterni e client di pubblicazione.
"""

from stealth_chat.registry.channel import (
    Announcement,
    Registration,
    Signer,
    AnnouncementChannel,
    KeyRegistry,
)
from stealth_chat.registry.client import AnnouncementRegistryClient
from stealth_chat.registry.memory import (
    LocalSigner,
    InMemoryAnnouncementChannel,
    InMemoryKeyRegistry,
)

__all__ = [
    "Announcement",
    "Registration",
    "Signer",
    "AnnouncementChannel",
    "KeyRegistry",
    "AnnouncementRegistryClient",
    "LocalSigner",
    "InMemoryAnnouncementChannel",
    "InMemoryKeyRegistry",
]
