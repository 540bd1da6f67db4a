"""
StealthChat - External Collaborators
======================================
Interfacce dei collaboratori esterni (signer, announcement channel,
key registry) e record pubblici che vi transitano.

Security Level: HIGH
Last Updated: 2026-10-19
Version: 1.0.0

Il core consuma queste interfacce ma non le implementa: il channel è
un log pubblico append-only (es. eventi blockchain) con sole operazioni
publish/subscribe, senza delete o update.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from stealth_chat.constants import (
    ANNOUNCEMENT_SCHEME_ID,
    COMPRESSED_POINT_SIZE,
    MAX_METADATA_SIZE,
)
from stealth_chat.crypto.curve import is_valid_address, parse_point, point_to_hex
from stealth_chat.errors import (
    InvalidAnnouncementError,
    InvalidPointError,
    format_validation_error,
)


Record = Dict[str, Any]
RecordsCallback = Callable[[List[Record]], None]
Unsubscribe = Callable[[], None]


# ============================================================================
# RECORDS
# ============================================================================

def _hex_to_bytes(field_name: str, value: Any) -> bytes:
    if not isinstance(value, str) or not value.startswith("0x"):
        raise format_validation_error(field_name, value, "0x-prefixed hex string")
    try:
        return bytes.fromhex(value[2:])
    except ValueError:
        raise format_validation_error(field_name, value, "0x-prefixed hex string")


@dataclass(frozen=True)
class Announcement:
    """
    Announcement pubblico, immutabile una volta pubblicato.

    Attributes:
        stealth_address: Stealth address (0x...)
        ephemeral_public_key: R compresso (0x + 66 hex)
        view_tag: 0-255
        metadata: Bytes opzionali; se presenti il byte 0 è il view tag
        caller: Identità che ha pubblicato (optional)
        scheme_id: Scheme id (1 = secp256k1 + view tag)
    """
    stealth_address: str
    ephemeral_public_key: str
    view_tag: int
    metadata: bytes = b""
    caller: Optional[str] = None
    scheme_id: int = ANNOUNCEMENT_SCHEME_ID

    def to_record(self) -> Record:
        """Serializza in dict JSON-compatible per il channel"""
        return {
            "schemeId": self.scheme_id,
            "stealthAddress": self.stealth_address,
            "ephemeralPublicKey": self.ephemeral_public_key,
            "viewTag": self.view_tag,
            "metadata": "0x" + self.metadata.hex(),
            "caller": self.caller,
        }

    @classmethod
    def from_record(cls, record: Record) -> "Announcement":
        """
        Parsing + validazione di un record letto dal channel.

        Il channel è pubblico: qualunque campo può essere malformato.

        Raises:
            InvalidAnnouncementError: Se il record non è valido
        """
        if not isinstance(record, dict):
            raise InvalidAnnouncementError(
                f"Announcement record must be a dict, got {type(record).__name__}",
                code="INVALID_ANNOUNCEMENT"
            )

        stealth_address = record.get("stealthAddress")
        if not is_valid_address(stealth_address):
            raise format_validation_error("stealthAddress", stealth_address, "Ethereum address")

        ephemeral_raw = _hex_to_bytes("ephemeralPublicKey", record.get("ephemeralPublicKey"))
        if len(ephemeral_raw) != COMPRESSED_POINT_SIZE:
            raise format_validation_error(
                "ephemeralPublicKey", record.get("ephemeralPublicKey"), "33-byte compressed point"
            )
        try:
            ephemeral_public_key = point_to_hex(parse_point(ephemeral_raw))
        except InvalidPointError:
            raise format_validation_error(
                "ephemeralPublicKey", record.get("ephemeralPublicKey"), "point on secp256k1"
            )

        view_tag = record.get("viewTag")
        if isinstance(view_tag, bool) or not isinstance(view_tag, int) or not 0 <= view_tag <= 255:
            raise format_validation_error("viewTag", view_tag, "integer 0-255")

        metadata_field = record.get("metadata")
        metadata = b"" if metadata_field in (None, "", "0x") else _hex_to_bytes("metadata", metadata_field)
        if len(metadata) > MAX_METADATA_SIZE:
            raise format_validation_error("metadata", f"<{len(metadata)} bytes>", f"at most {MAX_METADATA_SIZE} bytes")
        if metadata and metadata[0] != view_tag:
            raise format_validation_error("metadata", metadata_field, "first byte equal to viewTag")

        scheme_id = record.get("schemeId", ANNOUNCEMENT_SCHEME_ID)
        if isinstance(scheme_id, bool) or not isinstance(scheme_id, int) or scheme_id < 0:
            raise format_validation_error("schemeId", scheme_id, "non-negative integer")

        caller = record.get("caller")
        if caller is not None and not isinstance(caller, str):
            raise format_validation_error("caller", caller, "string or null")

        return cls(
            stealth_address=stealth_address,
            ephemeral_public_key=ephemeral_public_key,
            view_tag=view_tag,
            metadata=metadata,
            caller=caller,
            scheme_id=scheme_id,
        )


@dataclass(frozen=True)
class Registration:
    """
    Meta-address registrato per un'identità root.

    Attributes:
        identity: Indirizzo del signer
        meta_address: Stealth meta-address testuale
        signature: Firma del signer sul meta-address
    """
    identity: str
    meta_address: str
    signature: bytes

    def to_record(self) -> Record:
        return {
            "identity": self.identity,
            "metaAddress": self.meta_address,
            "signature": "0x" + self.signature.hex(),
        }

    @classmethod
    def from_record(cls, record: Record) -> "Registration":
        return cls(
            identity=record["identity"],
            meta_address=record["metaAddress"],
            signature=_hex_to_bytes("signature", record["signature"]),
        )


# ============================================================================
# COLLABORATOR INTERFACES
# ============================================================================

class Signer(ABC):
    """Capability opaca di firma legata all'identità root dell'utente."""

    @property
    @abstractmethod
    def address(self) -> str:
        """Identità root (indirizzo del wallet)."""
        pass

    @abstractmethod
    def sign(self, message: bytes) -> bytes:
        """Firma un messaggio (deterministica per derivare il RootSecret)."""
        pass


class AnnouncementChannel(ABC):
    """Log pubblico append-only di announcement."""

    @abstractmethod
    def publish(self, record: Record) -> str:
        """Appende un record e ne restituisce l'id."""
        pass

    @abstractmethod
    def subscribe(self, callback: RecordsCallback) -> Unsubscribe:
        """
        Consegna a callback, in ordine, i batch di record pubblicati dopo
        la sottoscrizione. Restituisce la funzione di unsubscribe.
        """
        pass


class KeyRegistry(ABC):
    """Registry meta-address per identità (ultimo record = verità)."""

    @abstractmethod
    def publish_registration(self, registration: Registration) -> str:
        """Pubblica una registrazione e ne restituisce l'id."""
        pass

    @abstractmethod
    def latest_registration(self, identity: str) -> Optional[Registration]:
        """Ultima registrazione per l'identità, None se assente."""
        pass


__all__ = [
    "Record",
    "RecordsCallback",
    "Unsubscribe",
    "Announcement",
    "Registration",
    "Signer",
    "AnnouncementChannel",
    "KeyRegistry",
]
