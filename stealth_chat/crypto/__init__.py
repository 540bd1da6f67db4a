"""
StealthChat - Crypto Package
==============================
Primitive di curva secp256k1.
"""

from stealth_chat.crypto.curve import (
    Point,
    Scalar,
    G,
    keccak256,
    hash_to_scalar,
    random_scalar,
    normalize_scalar,
    parse_point,
    compress_point,
    point_to_hex,
    scalar_multiply,
    scalar_base_multiply,
    point_add,
    derive_address,
    addresses_equal,
)

__all__ = [
    "Point",
    "Scalar",
    "G",
    "keccak256",
    "hash_to_scalar",
    "random_scalar",
    "normalize_scalar",
    "parse_point",
    "compress_point",
    "point_to_hex",
    "scalar_multiply",
    "scalar_base_multiply",
    "point_add",
    "derive_address",
    "addresses_equal",
]
