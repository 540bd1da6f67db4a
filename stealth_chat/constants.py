"""
StealthChat - Protocol Constants
==================================
Costanti immutabili del protocollo stealth address.

Security Level: CRITICAL
Last Updated: 2026-10-19
Version: 1.0.0

IMPORTANTE: modificare label o formati rompe l'interoperabilità
con meta-address e announcement già pubblicati.
"""

from typing import Final


# ============================================================================
# CURVA secp256k1
# ============================================================================

# Ordine del gruppo (n)
SECP256K1_N: Final[int] = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

# Generator G (formato compresso SEC1)
SECP256K1_G_COMPRESSED: Final[bytes] = bytes.fromhex(
    "0279BE667EF9DCBBAC55A06295CE870B07029BFCDB2DCE28D959F2815B16F81798"
)

SCALAR_SIZE: Final[int] = 32
COMPRESSED_POINT_SIZE: Final[int] = 33
UNCOMPRESSED_POINT_SIZE: Final[int] = 65
ADDRESS_SIZE: Final[int] = 20


# ============================================================================
# KEY DERIVATION
# ============================================================================

ROOT_SECRET_SIZE: Final[int] = 32

# Label di domain separation (spendingKey / viewingKey)
SPEND_LABEL: Final[bytes] = b"spend"
VIEW_LABEL: Final[bytes] = b"view"

# Domain tag per i retry di hash_to_scalar (rejection sampling)
HASH_TO_SCALAR_DOMAIN: Final[bytes] = b"StealthChat-v1/hash-to-scalar"

# Messaggio firmato dal wallet per ottenere il RootSecret
KEY_DERIVATION_MESSAGE: Final[str] = (
    "Sign this message to generate your StealthChat stealth keys.\n\n"
    "Only sign this message on a trusted client. "
    "This signature does not authorize any transaction."
)

# HKDF signature -> RootSecret
ROOT_SECRET_HKDF_SALT: Final[bytes] = b"StealthChat-v1-root-secret"
ROOT_SECRET_HKDF_INFO: Final[bytes] = b"secp256k1-stealth-keys"


# ============================================================================
# META-ADDRESS
# ============================================================================

META_ADDRESS_SCHEME: Final[str] = "st"
DEFAULT_CURVE_TAG: Final[str] = "eth"
META_ADDRESS_HEX_LENGTH: Final[int] = 2 * 2 * COMPRESSED_POINT_SIZE  # 132


# ============================================================================
# ANNOUNCEMENT
# ============================================================================

# ERC-5564 scheme id per secp256k1 con view tag
ANNOUNCEMENT_SCHEME_ID: Final[int] = 1

VIEW_TAG_SIZE: Final[int] = 1
MAX_METADATA_SIZE: Final[int] = 1024


__all__ = [
    "SECP256K1_N",
    "SECP256K1_G_COMPRESSED",
    "SCALAR_SIZE",
    "COMPRESSED_POINT_SIZE",
    "UNCOMPRESSED_POINT_SIZE",
    "ADDRESS_SIZE",
    "ROOT_SECRET_SIZE",
    "SPEND_LABEL",
    "VIEW_LABEL",
    "HASH_TO_SCALAR_DOMAIN",
    "KEY_DERIVATION_MESSAGE",
    "ROOT_SECRET_HKDF_SALT",
    "ROOT_SECRET_HKDF_INFO",
    "META_ADDRESS_SCHEME",
    "DEFAULT_CURVE_TAG",
    "META_ADDRESS_HEX_LENGTH",
    "ANNOUNCEMENT_SCHEME_ID",
    "VIEW_TAG_SIZE",
    "MAX_METADATA_SIZE",
]
