"""
StealthChat - Stealth Package
===============================
Key derivation, generazione stealth address e scanning.
"""

from stealth_chat.stealth.keys import (
    KeyPair,
    SpendingKeyPair,
    ViewingKeyPair,
    EphemeralKeyPair,
    StealthKeys,
    StealthMetaAddress,
    derive_stealth_keys,
    derive_root_secret,
    root_secret_from_signature,
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
    WatcherState,
    check_view_tag,
    is_stealth_address_for_user,
    watch_announcements_for_user,
)

__all__ = [
    # Keys
    "KeyPair",
    "SpendingKeyPair",
    "ViewingKeyPair",
    "EphemeralKeyPair",
    "StealthKeys",
    "StealthMetaAddress",
    "derive_stealth_keys",
    "derive_root_secret",
    "root_secret_from_signature",
    "get_stealth_meta_address",
    "parse_stealth_meta_address",

    # Generation
    "GeneratedStealthAddress",
    "generate_one_time_stealth_address",
    "compute_stealth_private_key",

    # Scanner
    "AnnouncementScanner",
    "AnnouncementWatcher",
    "WatcherState",
    "check_view_tag",
    "is_stealth_address_for_user",
    "watch_announcements_for_user",
]
