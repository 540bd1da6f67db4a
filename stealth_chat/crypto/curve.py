"""
StealthChat - Curve Primitives
================================
Aritmetica scalare/punto su secp256k1, hash-to-scalar e derivazione
indirizzi Ethereum.

Security Level: CRITICAL
Last Updated: 2026-10-19
Version: 1.0.0

SECURITY NOTICE:
L'aritmetica di curva è delegata a libsecp256k1 (coincurve), mai
reimplementata. Ogni PublicKey è validato on-curve al parsing, quindi
un Point di questo modulo non è mai l'elemento identità.

Algorithms:
- Hash: Keccak-256 (eth-utils)
- Curve: secp256k1 (coincurve)
- Address: keccak256(uncompressed_pubkey[1:])[12:], EIP-55 checksum

Dependencies:
- coincurve (libsecp256k1 bindings)
- eth-utils / eth-hash (keccak, checksum address)
"""

import secrets
from typing import Union

from coincurve import PublicKey
from eth_utils import keccak as _keccak, to_checksum_address, is_address, to_normalized_address

from stealth_chat.constants import (
    SECP256K1_N,
    SECP256K1_G_COMPRESSED,
    SCALAR_SIZE,
    COMPRESSED_POINT_SIZE,
    UNCOMPRESSED_POINT_SIZE,
    HASH_TO_SCALAR_DOMAIN,
)
from stealth_chat.errors import (
    CryptoError,
    InvalidScalarError,
    InvalidPointError,
    PointAtInfinityError,
)
from stealth_chat.logging_setup import get_logger


# ============================================================================
# MODULE LOGGER
# ============================================================================

logger = get_logger("curve")


# Type aliases
Point = PublicKey
Scalar = int
PointLike = Union[PublicKey, bytes, str]
ScalarLike = Union[int, bytes, str]

# Generator G
G: Point = PublicKey(SECP256K1_G_COMPRESSED)

# Retry massimi per hash_to_scalar: la probabilità di un solo retry è ~2^-128
MAX_HASH_TO_SCALAR_ATTEMPTS = 256


# ============================================================================
# HASH FUNCTIONS
# ============================================================================

def keccak256(data: bytes) -> bytes:
    """
    Compute Keccak-256 (variante Ethereum, non SHA3-256 FIPS).

    Args:
        data: Input bytes

    Returns:
        bytes: 32-byte digest

    Examples:
        >>> keccak256(b"").hex()
        'c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470'
    """
    if not isinstance(data, (bytes, bytearray)):
        raise CryptoError(
            f"keccak256 requires bytes, got {type(data).__name__}",
            code="INVALID_INPUT_TYPE"
        )
    return _keccak(bytes(data))


def hash_to_scalar(data: bytes) -> Scalar:
    """
    Hash deterministico -> scalare in [1, n-1].

    Nessuna riduzione mod n (introdurrebbe bias): se keccak256(data)
    cade fuori da [1, n-1] si riprova con un counter domain-separated:
        keccak256(HASH_TO_SCALAR_DOMAIN || counter_be32 || data)

    Args:
        data: Input bytes

    Returns:
        int: Scalare valido

    Raises:
        InvalidScalarError: Se nessun tentativo produce uno scalare valido
    """
    candidate = int.from_bytes(keccak256(data), 'big')
    if 0 < candidate < SECP256K1_N:
        return candidate

    for counter in range(1, MAX_HASH_TO_SCALAR_ATTEMPTS):
        logger.warning(
            "hash_to_scalar rejection, retrying",
            extra_data={"counter": counter}
        )
        digest = keccak256(HASH_TO_SCALAR_DOMAIN + counter.to_bytes(4, 'big') + data)
        candidate = int.from_bytes(digest, 'big')
        if 0 < candidate < SECP256K1_N:
            return candidate

    raise InvalidScalarError(
        "hash_to_scalar exhausted all attempts",
        code="HASH_TO_SCALAR_FAILED"
    )


# ============================================================================
# SCALARS
# ============================================================================

def scalar_to_bytes(scalar: Scalar) -> bytes:
    """Scalare -> 32 bytes big-endian"""
    return scalar.to_bytes(SCALAR_SIZE, 'big')


def random_scalar() -> Scalar:
    """
    Scalare casuale uniforme in [1, n-1] da CSPRNG.

    Returns:
        int: Scalare
    """
    return secrets.randbelow(SECP256K1_N - 1) + 1


def normalize_scalar(value: ScalarLike) -> Scalar:
    """
    Valida una private key (int, 32 bytes o hex string) come scalare.

    A differenza di scalar_multiply qui non si riduce mod n: una private
    key >= n è input corrotto.

    Args:
        value: Private key

    Returns:
        int: Scalare in [1, n-1]

    Raises:
        InvalidScalarError: Se 0, >= n o malformata
    """
    if isinstance(value, bool):
        raise InvalidScalarError("Scalar must not be a bool", code="INVALID_SCALAR")

    if isinstance(value, str):
        text = value[2:] if value.lower().startswith("0x") else value
        try:
            value = bytes.fromhex(text)
        except ValueError:
            raise InvalidScalarError("Scalar hex string is malformed", code="INVALID_SCALAR")

    if isinstance(value, (bytes, bytearray)):
        if len(value) != SCALAR_SIZE:
            raise InvalidScalarError(
                f"Scalar must be {SCALAR_SIZE} bytes, got {len(value)}",
                code="INVALID_SCALAR"
            )
        value = int.from_bytes(value, 'big')

    if not isinstance(value, int):
        raise InvalidScalarError(
            f"Unsupported scalar type: {type(value).__name__}",
            code="INVALID_SCALAR"
        )

    if not 0 < value < SECP256K1_N:
        raise InvalidScalarError("Scalar out of range [1, n-1]", code="INVALID_SCALAR")

    return value


# ============================================================================
# POINTS
# ============================================================================

def parse_point(value: PointLike) -> Point:
    """
    Parsing + validazione on-curve di una public key.

    Accetta PublicKey, bytes SEC1 (33 o 65 bytes) o hex string (0x opzionale).
    Punti non sulla curva vengono rifiutati (invalid-curve attacks).

    Raises:
        InvalidPointError: Se malformato o off-curve
    """
    if isinstance(value, PublicKey):
        return value

    if isinstance(value, str):
        text = value[2:] if value.lower().startswith("0x") else value
        try:
            value = bytes.fromhex(text)
        except ValueError:
            raise InvalidPointError("Point hex string is malformed", code="INVALID_POINT")

    if not isinstance(value, (bytes, bytearray)):
        raise InvalidPointError(
            f"Unsupported point type: {type(value).__name__}",
            code="INVALID_POINT"
        )

    if len(value) not in (COMPRESSED_POINT_SIZE, UNCOMPRESSED_POINT_SIZE):
        raise InvalidPointError(
            f"Invalid point length: {len(value)}",
            code="INVALID_POINT",
            details={"length": len(value)}
        )

    try:
        return PublicKey(bytes(value))
    except ValueError:
        raise InvalidPointError("Point is not on secp256k1", code="POINT_NOT_ON_CURVE")


def compress_point(point: Point) -> bytes:
    """Punto -> 33 bytes SEC1 compresso"""
    return point.format(compressed=True)


def point_to_hex(point: Point) -> str:
    """Punto -> '0x' + hex compresso"""
    return "0x" + compress_point(point).hex()


def point_x_bytes(point: Point) -> bytes:
    """Coordinata x come 32 bytes big-endian"""
    return compress_point(point)[1:]


def points_equal(p1: Point, p2: Point) -> bool:
    return compress_point(p1) == compress_point(p2)


# ============================================================================
# ARITHMETIC
# ============================================================================

def scalar_multiply(scalar: Scalar, point: Point) -> Point:
    """
    Moltiplicazione scalare: scalar * point.

    Lo scalare viene ridotto mod n.

    Raises:
        InvalidScalarError: Se scalar ≡ 0 mod n
    """
    k = scalar % SECP256K1_N
    if k == 0:
        raise InvalidScalarError("Scalar is congruent to 0 mod n", code="ZERO_SCALAR")

    try:
        return point.multiply(scalar_to_bytes(k))
    except ValueError as e:
        raise CryptoError(f"Scalar multiplication failed: {e}", code="EC_MUL_FAILED")


def scalar_base_multiply(scalar: Scalar) -> Point:
    """
    scalar * G.

    Raises:
        InvalidScalarError: Se scalar ≡ 0 mod n
    """
    k = scalar % SECP256K1_N
    if k == 0:
        raise InvalidScalarError("Scalar is congruent to 0 mod n", code="ZERO_SCALAR")
    return PublicKey.from_secret(scalar_to_bytes(k))


def point_add(p1: Point, p2: Point) -> Point:
    """
    Addizione di punti p1 + p2.

    Il risultato identità è un errore hard, mai ignorato: una ephemeral
    key influenzata da un attaccante potrebbe altrimenti forzare una
    stealth address degenere.

    Raises:
        PointAtInfinityError: Se p1 + p2 = O
    """
    try:
        return PublicKey.combine_keys([p1, p2])
    except ValueError:
        raise PointAtInfinityError("Point addition resulted in point at infinity", code="POINT_AT_INFINITY")


# ============================================================================
# ADDRESSES
# ============================================================================

def derive_address(point: Point) -> str:
    """
    Indirizzo Ethereum di una public key.

    Formula: keccak256(uncompressed_pubkey[1:])[12:], EIP-55 checksum.
    Funzione pura: usata identica per generazione e confronto.

    Returns:
        str: Indirizzo '0x...' checksummed
    """
    uncompressed = point.format(compressed=False)
    return to_checksum_address(keccak256(uncompressed[1:])[12:])


def is_valid_address(address: str) -> bool:
    return isinstance(address, str) and is_address(address)


def to_checksum(address: str) -> str:
    """Indirizzo in forma EIP-55"""
    return to_checksum_address(address)


def addresses_equal(a: str, b: str) -> bool:
    """Confronto case-insensitive; False se uno dei due è invalido"""
    if not (is_valid_address(a) and is_valid_address(b)):
        return False
    return to_normalized_address(a) == to_normalized_address(b)


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "Point",
    "Scalar",
    "G",
    "keccak256",
    "hash_to_scalar",
    "scalar_to_bytes",
    "random_scalar",
    "normalize_scalar",
    "parse_point",
    "compress_point",
    "point_to_hex",
    "point_x_bytes",
    "points_equal",
    "scalar_multiply",
    "scalar_base_multiply",
    "point_add",
    "derive_address",
    "is_valid_address",
    "to_checksum",
    "addresses_equal",
]
