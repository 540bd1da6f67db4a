"""
StealthChat - Key Derivation
==============================
Derivazione di spending/viewing key pair da un RootSecret e codifica
dello stealth meta-address.

Security Level: CRITICAL
Last Updated: 2026-10-19
Version: 1.0.0

Formula:
- spending_private = hash_to_scalar("spend" || root_secret)
- viewing_private  = hash_to_scalar("view"  || root_secret)
- public = private * G

Meta-address:
    "st:" + curve_tag + ":0x" + hex(compressed(spend_pub)) + hex(compressed(view_pub))
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Optional, TYPE_CHECKING

from cryptography.hazmat.primitives.hashes import SHA256
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from stealth_chat.constants import (
    ROOT_SECRET_SIZE,
    SPEND_LABEL,
    VIEW_LABEL,
    META_ADDRESS_SCHEME,
    DEFAULT_CURVE_TAG,
    META_ADDRESS_HEX_LENGTH,
    COMPRESSED_POINT_SIZE,
    KEY_DERIVATION_MESSAGE,
    ROOT_SECRET_HKDF_SALT,
    ROOT_SECRET_HKDF_INFO,
)
from stealth_chat.crypto.curve import (
    Point,
    Scalar,
    ScalarLike,
    hash_to_scalar,
    normalize_scalar,
    scalar_base_multiply,
    parse_point,
    compress_point,
    point_to_hex,
    points_equal,
)
from stealth_chat.errors import (
    InvalidKeyError,
    InvalidMetaAddressError,
    InvalidPointError,
)
from stealth_chat.logging_setup import get_logger, short_hex

if TYPE_CHECKING:
    from stealth_chat.registry.channel import Signer


logger = get_logger("keys")


# ============================================================================
# KEY PAIRS
# ============================================================================

@dataclass(frozen=True, eq=False)
class KeyPair:
    """
    Coppia (scalare, punto) su secp256k1.

    La private key non compare mai in repr().
    """
    private_key: Scalar = field(repr=False)
    public_key: Point

    @classmethod
    def from_private_key(cls, private_key: ScalarLike) -> "KeyPair":
        """Crea key pair da private key (int, bytes o hex)"""
        scalar = normalize_scalar(private_key)
        return cls(private_key=scalar, public_key=scalar_base_multiply(scalar))

    @property
    def public_key_bytes(self) -> bytes:
        return compress_point(self.public_key)

    @property
    def public_key_hex(self) -> str:
        return point_to_hex(self.public_key)

    def __eq__(self, other) -> bool:
        if not isinstance(other, KeyPair) or type(other) is not type(self):
            return NotImplemented
        return (
            self.private_key == other.private_key
            and points_equal(self.public_key, other.public_key)
        )

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.public_key_bytes))


class SpendingKeyPair(KeyPair):
    """Key pair di spending: recupero/spesa dei fondi sulle stealth address"""


class ViewingKeyPair(KeyPair):
    """Key pair di viewing: solo rilevamento degli announcement"""


class EphemeralKeyPair(KeyPair):
    """Key pair effimera del mittente: una per richiesta, mai riusata"""


@dataclass(frozen=True)
class StealthKeys:
    """
    Spending + viewing key pair di un utente.

    Iterabile, quindi si può scompattare:
        >>> spending, viewing = derive_stealth_keys(root_secret)
    """
    spending: SpendingKeyPair
    viewing: ViewingKeyPair

    def __iter__(self) -> Iterator[KeyPair]:
        yield self.spending
        yield self.viewing

    def meta_address(self, curve_tag: str = DEFAULT_CURVE_TAG) -> str:
        """Stealth meta-address testuale"""
        return get_stealth_meta_address(
            self.spending.public_key,
            self.viewing.public_key,
            curve_tag=curve_tag
        )


# ============================================================================
# DERIVATION
# ============================================================================

def derive_stealth_keys(root_secret: bytes) -> StealthKeys:
    """
    Deriva spending e viewing key pair da RootSecret.

    Deterministica: stesso RootSecret -> stesse chiavi, così il
    destinatario può ricalcolarle ad ogni sessione senza salvarle.
    Un RootSecret tutto zero produce comunque scalari validi
    (hash_to_scalar garantisce [1, n-1]).

    Args:
        root_secret: 32 bytes

    Returns:
        StealthKeys: (spending, viewing)

    Raises:
        InvalidKeyError: Se root_secret non è 32 bytes
    """
    if not isinstance(root_secret, (bytes, bytearray)) or len(root_secret) != ROOT_SECRET_SIZE:
        raise InvalidKeyError(
            f"Root secret must be {ROOT_SECRET_SIZE} bytes",
            code="INVALID_ROOT_SECRET"
        )

    root_secret = bytes(root_secret)

    spending_private = hash_to_scalar(SPEND_LABEL + root_secret)
    viewing_private = hash_to_scalar(VIEW_LABEL + root_secret)

    keys = StealthKeys(
        spending=SpendingKeyPair(spending_private, scalar_base_multiply(spending_private)),
        viewing=ViewingKeyPair(viewing_private, scalar_base_multiply(viewing_private)),
    )

    logger.debug(
        "Stealth keys derived",
        extra_data={
            "spend_pub": short_hex(keys.spending.public_key_hex),
            "view_pub": short_hex(keys.viewing.public_key_hex),
        }
    )

    return keys


def root_secret_from_signature(signature: bytes) -> bytes:
    """
    RootSecret = HKDF-SHA256(signature).

    La firma di un messaggio fisso è producibile solo dal titolare della
    chiave del wallet, quindi il RootSecret resta privato e ad alta
    entropia (mai derivato dall'indirizzo pubblico).

    Args:
        signature: Firma del wallet su KEY_DERIVATION_MESSAGE

    Returns:
        bytes: RootSecret di 32 bytes
    """
    if not isinstance(signature, (bytes, bytearray)) or len(signature) < 32:
        raise InvalidKeyError(
            "Signature too short to derive a root secret",
            code="INVALID_SIGNATURE"
        )

    hkdf = HKDF(
        algorithm=SHA256(),
        length=ROOT_SECRET_SIZE,
        salt=ROOT_SECRET_HKDF_SALT,
        info=ROOT_SECRET_HKDF_INFO,
    )
    return hkdf.derive(bytes(signature))


def derive_root_secret(signer: "Signer", message: Optional[str] = None) -> bytes:
    """
    Chiede al signer di firmare il messaggio di derivazione e ne ricava
    il RootSecret.

    Richiede un signer deterministico (RFC 6979) perché le chiavi siano
    ricalcolabili tra sessioni.
    """
    text = message or KEY_DERIVATION_MESSAGE
    signature = signer.sign(text.encode("utf-8"))
    return root_secret_from_signature(signature)


# ============================================================================
# META-ADDRESS
# ============================================================================

@dataclass(frozen=True, eq=False)
class StealthMetaAddress:
    """
    Stealth meta-address: (spending_pub, viewing_pub) pubblicabile.

    Attributes:
        spending_public_key: Spending public key
        viewing_public_key: Viewing public key
        curve_tag: Tag curva/chain (default "eth")
    """
    spending_public_key: Point
    viewing_public_key: Point
    curve_tag: str = DEFAULT_CURVE_TAG

    def encode(self) -> str:
        """Codifica testuale st:<tag>:0x<spend><view>"""
        payload = compress_point(self.spending_public_key) + compress_point(self.viewing_public_key)
        return f"{META_ADDRESS_SCHEME}:{self.curve_tag}:0x{payload.hex()}"

    @classmethod
    def decode(cls, text: str, curve_tag: Optional[str] = None) -> "StealthMetaAddress":
        """
        Decodifica e valida un meta-address.

        Args:
            text: Meta-address testuale
            curve_tag: Se dato, il tag deve coincidere

        Raises:
            InvalidMetaAddressError: Formato invalido o punti off-curve
        """
        if not isinstance(text, str):
            raise InvalidMetaAddressError("Meta-address must be a string", code="INVALID_META_ADDRESS")

        parts = text.split(":")
        if len(parts) != 3 or parts[0] != META_ADDRESS_SCHEME:
            raise InvalidMetaAddressError(
                "Meta-address must have the form st:<curve>:0x<keys>",
                code="INVALID_META_ADDRESS",
                details={"meta_address": text[:24]}
            )

        _, tag, keys_hex = parts

        if not tag or (curve_tag is not None and tag != curve_tag):
            raise InvalidMetaAddressError(
                f"Unsupported curve tag: {tag!r}",
                code="UNSUPPORTED_CURVE_TAG",
                details={"curve_tag": tag}
            )

        if not keys_hex.startswith("0x") or len(keys_hex) != 2 + META_ADDRESS_HEX_LENGTH:
            raise InvalidMetaAddressError(
                "Meta-address key payload has wrong length",
                code="INVALID_META_ADDRESS",
                details={"length": len(keys_hex)}
            )

        try:
            payload = bytes.fromhex(keys_hex[2:])
        except ValueError:
            raise InvalidMetaAddressError("Meta-address is not valid hex", code="INVALID_META_ADDRESS")

        spend_bytes = payload[:COMPRESSED_POINT_SIZE]
        view_bytes = payload[COMPRESSED_POINT_SIZE:]

        try:
            spending_public_key = parse_point(spend_bytes)
            viewing_public_key = parse_point(view_bytes)
        except InvalidPointError as e:
            raise InvalidMetaAddressError(
                f"Meta-address contains an invalid point: {e.message}",
                code="INVALID_META_ADDRESS_POINT"
            )

        return cls(spending_public_key, viewing_public_key, tag)

    def __str__(self) -> str:
        return self.encode()

    def __eq__(self, other) -> bool:
        if not isinstance(other, StealthMetaAddress):
            return NotImplemented
        return self.encode() == other.encode()

    def __hash__(self) -> int:
        return hash(self.encode())


def get_stealth_meta_address(
    spending_public_key: Point,
    viewing_public_key: Point,
    curve_tag: str = DEFAULT_CURVE_TAG
) -> str:
    """
    Codifica (spending_pub, viewing_pub) come meta-address.

    Examples:
        >>> get_stealth_meta_address(spend_pub, view_pub)
        'st:eth:0x02...03...'
    """
    return StealthMetaAddress(
        parse_point(spending_public_key),
        parse_point(viewing_public_key),
        curve_tag
    ).encode()


def parse_stealth_meta_address(text: str, curve_tag: Optional[str] = None) -> StealthMetaAddress:
    """Inversa di get_stealth_meta_address"""
    return StealthMetaAddress.decode(text, curve_tag=curve_tag)


__all__ = [
    "KeyPair",
    "SpendingKeyPair",
    "ViewingKeyPair",
    "EphemeralKeyPair",
    "StealthKeys",
    "StealthMetaAddress",
    "derive_stealth_keys",
    "root_secret_from_signature",
    "derive_root_secret",
    "get_stealth_meta_address",
    "parse_stealth_meta_address",
]
