"""
StealthChat - Stealth Address Generation
==========================================
Lato mittente: da meta-address del destinatario a stealth address one-time.

Security Level: CRITICAL
Last Updated: 2026-10-19
Version: 1.0.0

Formula:
- Ephemeral keypair (r, R = r*G), nuova per ogni richiesta
- Shared secret: S = r * V           (V = viewing_pub)
- hS = hash_to_scalar(S.x)
- Stealth pubkey: P = B + hS*G       (B = spending_pub)
- Stealth address: address(P)
- View tag: keccak256(compressed(S))[0]

Il destinatario ricalcola S = v * R (commutatività ECDH) e la stessa P.
La private key di P è p = b + hS mod n.
"""

from dataclasses import dataclass
from typing import Optional, Union

from stealth_chat.constants import SECP256K1_N
from stealth_chat.crypto.curve import (
    Point,
    PointLike,
    Scalar,
    ScalarLike,
    keccak256,
    hash_to_scalar,
    random_scalar,
    normalize_scalar,
    parse_point,
    compress_point,
    point_x_bytes,
    scalar_multiply,
    scalar_base_multiply,
    point_add,
    derive_address,
)
from stealth_chat.errors import (
    InvalidScalarError,
    PointAtInfinityError,
    DegenerateStealthKeyError,
)
from stealth_chat.logging_setup import get_logger, short_hex
from stealth_chat.stealth.keys import EphemeralKeyPair, StealthMetaAddress


logger = get_logger("generation")


# ============================================================================
# RESULT TYPE
# ============================================================================

@dataclass(frozen=True)
class GeneratedStealthAddress:
    """
    Output della generazione: tutto ciò che serve per l'announcement.

    Attributes:
        stealth_address: Indirizzo one-time (EIP-55)
        ephemeral_public_key: R compresso, '0x' + 66 hex
        view_tag: Primo byte di keccak256(S)
    """
    stealth_address: str
    ephemeral_public_key: str
    view_tag: int

    def __str__(self) -> str:
        return self.stealth_address


# ============================================================================
# SHARED PRIMITIVES (mittente e destinatario)
# ============================================================================

def compute_shared_secret(private_key: Scalar, public_key: Point) -> Point:
    """
    ECDH: S = private_key * public_key.

    Mittente: ephemeral_private * viewing_pub.
    Destinatario: viewing_private * ephemeral_pub.
    """
    return scalar_multiply(private_key, public_key)


def compute_view_tag(shared_secret: Point) -> int:
    """View tag = keccak256(compressed(S))[0]"""
    return keccak256(compress_point(shared_secret))[0]


def compute_stealth_scalar(shared_secret: Point) -> Scalar:
    """hS = hash_to_scalar(S.x)"""
    return hash_to_scalar(point_x_bytes(shared_secret))


def compute_stealth_public_key(spending_public_key: Point, shared_secret: Point) -> Point:
    """
    P = spending_pub + hS*G.

    Raises:
        DegenerateStealthKeyError: Se P è il punto all'infinito
    """
    h_s = compute_stealth_scalar(shared_secret)
    try:
        return point_add(spending_public_key, scalar_base_multiply(h_s))
    except PointAtInfinityError:
        raise DegenerateStealthKeyError(
            "Stealth public key is the point at infinity",
            code="DEGENERATE_STEALTH_KEY"
        )


def generate_ephemeral_keypair() -> EphemeralKeyPair:
    """Ephemeral keypair da CSPRNG, scalare in [1, n-1]"""
    private_key = random_scalar()
    return EphemeralKeyPair(private_key, scalar_base_multiply(private_key))


# ============================================================================
# SENDER SIDE
# ============================================================================

def generate_one_time_stealth_address(
    recipient_meta_address: Union[str, StealthMetaAddress],
    curve_tag: Optional[str] = None
) -> GeneratedStealthAddress:
    """
    Genera una stealth address one-time per il destinatario.

    Ogni chiamata usa una nuova ephemeral key: due chiamate per lo
    stesso meta-address non producono mai lo stesso indirizzo e non
    sono collegabili tra loro da un osservatore esterno.

    Args:
        recipient_meta_address: Meta-address (testo o oggetto decodificato)
        curve_tag: Se dato, il meta-address deve avere questo tag

    Returns:
        GeneratedStealthAddress: (stealth_address, ephemeral_public_key, view_tag)

    Raises:
        InvalidMetaAddressError: Meta-address malformato o off-curve
        DegenerateStealthKeyError: Caso limite P = O (si può riprovare)

    Examples:
        >>> result = generate_one_time_stealth_address("st:eth:0x02...")
        >>> result.stealth_address
        '0x5a3F...'
    """
    if isinstance(recipient_meta_address, StealthMetaAddress):
        meta = recipient_meta_address
    else:
        meta = StealthMetaAddress.decode(recipient_meta_address, curve_tag=curve_tag)

    ephemeral = generate_ephemeral_keypair()

    shared_secret = compute_shared_secret(ephemeral.private_key, meta.viewing_public_key)
    stealth_public_key = compute_stealth_public_key(meta.spending_public_key, shared_secret)

    result = GeneratedStealthAddress(
        stealth_address=derive_address(stealth_public_key),
        ephemeral_public_key=ephemeral.public_key_hex,
        view_tag=compute_view_tag(shared_secret),
    )

    # La private key effimera non esce da qui
    del ephemeral, shared_secret

    logger.debug(
        "One-time stealth address generated",
        extra_data={
            "address": short_hex(result.stealth_address),
            "ephemeral": short_hex(result.ephemeral_public_key),
        }
    )

    return result


# ============================================================================
# RECIPIENT SIDE: SPEND KEY RECOVERY
# ============================================================================

def compute_stealth_private_key(
    spending_private_key: ScalarLike,
    viewing_private_key: ScalarLike,
    ephemeral_public_key: PointLike
) -> Scalar:
    """
    Private key della stealth address: p = b + hS mod n.

    Solo chi possiede sia spending che viewing private key può calcolarla.

    Raises:
        InvalidScalarError: Se p ≡ 0 mod n
        InvalidPointError: Se ephemeral_public_key è invalida
    """
    b = normalize_scalar(spending_private_key)
    v = normalize_scalar(viewing_private_key)
    ephemeral = parse_point(ephemeral_public_key)

    shared_secret = compute_shared_secret(v, ephemeral)
    stealth_private = (b + compute_stealth_scalar(shared_secret)) % SECP256K1_N

    if stealth_private == 0:
        raise InvalidScalarError("Stealth private key is zero", code="ZERO_SCALAR")

    return stealth_private


__all__ = [
    "GeneratedStealthAddress",
    "compute_shared_secret",
    "compute_view_tag",
    "compute_stealth_scalar",
    "compute_stealth_public_key",
    "generate_ephemeral_keypair",
    "generate_one_time_stealth_address",
    "compute_stealth_private_key",
]
