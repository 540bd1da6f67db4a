"""
StealthChat - Announcement Registry Client
============================================
Pubblicazione di meta-address e announcement sui collaboratori esterni.

Security Level: HIGH
Last Updated: 2026-10-19
Version: 1.0.0

Nessuna logica crittografica oltre alla validazione degli input e
nessuna retry policy: gli errori transitori del channel si propagano
al chiamante, che decide se riprovare.
"""

from typing import Optional, Union

from stealth_chat.config import StealthSettings, get_settings
from stealth_chat.constants import MAX_METADATA_SIZE, VIEW_TAG_SIZE
from stealth_chat.crypto.curve import (
    Point,
    PointLike,
    is_valid_address,
    parse_point,
    point_to_hex,
    to_checksum,
)
from stealth_chat.errors import InvalidMetaAddressError, InvalidPointError, format_validation_error
from stealth_chat.logging_setup import get_logger, short_hex
from stealth_chat.registry.channel import (
    Announcement,
    AnnouncementChannel,
    KeyRegistry,
    Registration,
    RecordsCallback,
    Signer,
    Unsubscribe,
)
from stealth_chat.stealth.keys import get_stealth_meta_address, parse_stealth_meta_address


logger = get_logger("registry")


class AnnouncementRegistryClient:
    """
    Client per registry meta-address e announcement channel.

    Attributes:
        channel: Announcement channel (log append-only)
        registry: Key registry (meta-address per identità)
        settings: StealthSettings

    Examples:
        >>> client = AnnouncementRegistryClient(channel, registry)
        >>> client.register_stealth_keys(signer, keys.spending.public_key, keys.viewing.public_key)
        >>> client.announce_stealth_message(signer, addr, eph, tag)
    """

    def __init__(
        self,
        channel: AnnouncementChannel,
        registry: KeyRegistry,
        settings: Optional[StealthSettings] = None
    ):
        self.channel = channel
        self.registry = registry
        self.settings = settings or get_settings()

    # ========================================================================
    # REGISTRATION
    # ========================================================================

    def register_stealth_keys(
        self,
        signer: Signer,
        spending_public_key: PointLike,
        viewing_public_key: PointLike
    ) -> Registration:
        """
        Registra il meta-address legato all'identità del signer.

        Idempotente: se l'ultima registrazione dell'identità ha già
        questo meta-address non viene pubblicato nulla.

        Returns:
            Registration: Registrazione corrente (nuova o esistente)
        """
        meta_address = get_stealth_meta_address(
            parse_point(spending_public_key),
            parse_point(viewing_public_key),
            curve_tag=self.settings.curve_tag
        )
        identity = signer.address

        current = self.registry.latest_registration(identity)
        if current is not None and current.meta_address == meta_address:
            logger.info(
                "Stealth keys already registered",
                extra_data={"identity": short_hex(identity)}
            )
            return current

        registration = Registration(
            identity=identity,
            meta_address=meta_address,
            signature=signer.sign(meta_address.encode("utf-8")),
        )
        registration_id = self.registry.publish_registration(registration)

        logger.info(
            "Stealth keys registered",
            extra_data={
                "identity": short_hex(identity),
                "registration_id": registration_id,
                "replaced": current is not None,
            }
        )
        return registration

    def lookup_stealth_meta_address(self, identity: str) -> Optional[str]:
        """
        Meta-address registrato per un'identità.

        Registrazioni con meta-address non decodificabile sono trattate
        come assenti.
        """
        registration = self.registry.latest_registration(identity)
        if registration is None:
            return None

        try:
            parse_stealth_meta_address(registration.meta_address)
        except InvalidMetaAddressError as e:
            logger.warning(
                "Registered meta-address is invalid",
                extra_data={"identity": short_hex(identity), "error": str(e)}
            )
            return None

        return registration.meta_address

    # ========================================================================
    # ANNOUNCEMENTS
    # ========================================================================

    def announce_stealth_message(
        self,
        signer: Signer,
        stealth_address: str,
        ephemeral_public_key: Union[Point, str, bytes],
        view_tag: int,
        metadata: bytes = b""
    ) -> str:
        """
        Appende un announcement al channel.

        Args:
            signer: Chi pubblica (caller del record)
            stealth_address: Stealth address generata
            ephemeral_public_key: R
            view_tag: View tag 0-255
            metadata: Payload extra; il view tag viene anteposto

        Returns:
            str: Id del record pubblicato

        Raises:
            InvalidAnnouncementError: Input invalido (nessuna pubblicazione)
        """
        if not is_valid_address(stealth_address):
            raise format_validation_error("stealthAddress", stealth_address, "Ethereum address")

        if isinstance(view_tag, bool) or not isinstance(view_tag, int) or not 0 <= view_tag <= 255:
            raise format_validation_error("viewTag", view_tag, "integer 0-255")

        try:
            ephemeral_hex = point_to_hex(parse_point(ephemeral_public_key))
        except InvalidPointError:
            raise format_validation_error("ephemeralPublicKey", ephemeral_public_key, "point on secp256k1")

        if metadata and len(metadata) + VIEW_TAG_SIZE > MAX_METADATA_SIZE:
            raise format_validation_error(
                "metadata", f"<{len(metadata)} bytes>", f"at most {MAX_METADATA_SIZE - VIEW_TAG_SIZE} bytes"
            )

        announcement = Announcement(
            stealth_address=to_checksum(stealth_address),
            ephemeral_public_key=ephemeral_hex,
            view_tag=view_tag,
            metadata=bytes([view_tag]) + bytes(metadata) if metadata else b"",
            caller=signer.address,
            scheme_id=self.settings.announcement_scheme_id,
        )

        record_id = self.channel.publish(announcement.to_record())

        logger.info(
            "Stealth announcement published",
            extra_data={
                "record_id": record_id,
                "address": short_hex(announcement.stealth_address),
            }
        )
        return record_id

    def subscribe(self, callback: RecordsCallback) -> Unsubscribe:
        """Passthrough verso channel.subscribe"""
        return self.channel.subscribe(callback)


__all__ = ["AnnouncementRegistryClient"]
