"""
StealthChat - Stealth Address Protocol
========================================
Stealth address one-time e scanning degli announcement per chat private.

Version: 1.0.0
Author: StealthChat Team
License: MIT
"""

__version__ = "1.0.0"
__author__ = "StealthChat Team"
__license__ = "MIT"

# Core
from stealth_chat.stealth.keys import (
    StealthKeys,
    StealthMetaAddress,
    derive_stealth_keys,
    derive_root_secret,
    get_stealth_meta_address,
    parse_stealth_meta_address,
)
from stealth_chat.stealth.generation import (
    GeneratedStealthAddress,
    generate_one_time_stealth_address,
    compute_stealth_private_key,
)
from stealth_chat.stealth.scanner import (
    AnnouncementScanner,
    AnnouncementWatcher,
    is_stealth_address_for_user,
    watch_announcements_for_user,
)

# Registry
from stealth_chat.registry.channel import Announcement, AnnouncementChannel, KeyRegistry, Signer
from stealth_chat.registry.client import AnnouncementRegistryClient

# Services
from stealth_chat.services.stealth_service import StealthService

from stealth_chat.config import StealthSettings, get_settings

__all__ = [
    # Version
    "__version__",

    # Core
    "StealthKeys",
    "StealthMetaAddress",
    "derive_stealth_keys",
    "derive_root_secret",
    "get_stealth_meta_address",
    "parse_stealth_meta_address",
    "GeneratedStealthAddress",
    "generate_one_time_stealth_address",
    "compute_stealth_private_key",
    "AnnouncementScanner",
    "AnnouncementWatcher",
    "is_stealth_address_for_user",
    "watch_announcements_for_user",

    # Registry
    "Announcement",
    "AnnouncementChannel",
    "KeyRegistry",
    "Signer",
    "AnnouncementRegistryClient",

    # Services
    "StealthService",
    "StealthSettings",
    "get_settings",
]
