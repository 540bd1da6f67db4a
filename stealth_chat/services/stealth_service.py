"""
StealthChat - Stealth Session Service
=======================================
Service layer per una sessione utente: chiavi, registrazione,
invio via stealth address e ricezione degli announcement.

Security Level: HIGH
Last Updated: 2026-10-19
Version: 1.0.0

Flusso:
1. initialize(): firma wallet -> RootSecret -> chiavi -> meta-address
2. register_keys(): pubblica il meta-address sul registry
3. send_to(): genera stealth address + announcement (fallimento = invio bloccato)
4. start_watching(): scanner sugli announcement nuovi
"""

import threading
from enum import Enum
from typing import List, Optional

from stealth_chat.config import StealthSettings, get_settings, validate_config
from stealth_chat.crypto.curve import PointLike, Scalar
from stealth_chat.errors import (
    InvalidConfigError,
    RecipientNotRegisteredError,
    StealthChatException,
    StealthError,
    StealthGenerationError,
)
from stealth_chat.logging_setup import configure_logging, get_logger, short_hex
from stealth_chat.registry.channel import Announcement, Registration, Signer
from stealth_chat.registry.client import AnnouncementRegistryClient
from stealth_chat.stealth.generation import (
    GeneratedStealthAddress,
    compute_stealth_private_key,
    generate_one_time_stealth_address,
)
from stealth_chat.stealth.keys import StealthKeys, derive_root_secret, derive_stealth_keys
from stealth_chat.stealth.scanner import (
    AnnouncementWatcher,
    is_stealth_address_for_user,
    watch_announcements_for_user,
)


# ============================================================================
# MODULE LOGGER
# ============================================================================

logger = get_logger("services.stealth")


class RegistrationStatus(str, Enum):
    """Stato della registrazione del meta-address"""
    IDLE = "idle"
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


# ============================================================================
# STEALTH SERVICE
# ============================================================================

class StealthService:
    """
    Service per una sessione stealth.

    Features:
    - Derivazione chiavi dal wallet (mai dall'indirizzo)
    - Registrazione meta-address con stato
    - Invio: generazione + announcement
    - Watching degli announcement in arrivo

    Attributes:
        signer: Wallet dell'utente
        client: AnnouncementRegistryClient
        settings: StealthSettings

    Examples:
        >>> service = StealthService(signer, client)
        >>> service.initialize()
        >>> service.register_keys()
        >>> sent = service.send_to(bob_meta_address)
    """

    def __init__(
        self,
        signer: Signer,
        client: AnnouncementRegistryClient,
        settings: Optional[StealthSettings] = None
    ):
        self.signer = signer
        self.client = client
        self.settings = settings or client.settings or get_settings()

        is_valid, errors = validate_config(self.settings)
        if not is_valid:
            raise InvalidConfigError(
                "Invalid stealth settings",
                code="INVALID_CONFIG",
                details={"errors": errors}
            )
        configure_logging(self.settings)

        self._keys: Optional[StealthKeys] = None
        self._meta_address: Optional[str] = None
        self._registration_status = RegistrationStatus.IDLE
        self._watcher: Optional[AnnouncementWatcher] = None
        self._announcements: List[Announcement] = []
        self._lock = threading.Lock()

        logger.info(
            "Stealth service initialized",
            extra_data={"identity": short_hex(signer.address)}
        )

    # ========================================================================
    # KEYS
    # ========================================================================

    def initialize(self) -> str:
        """
        Deriva chiavi e meta-address dalla firma del wallet.

        Returns:
            str: Stealth meta-address
        """
        if self._keys is None:
            root_secret = derive_root_secret(self.signer, self.settings.key_derivation_message)
            self._keys = derive_stealth_keys(root_secret)
            self._meta_address = self._keys.meta_address(self.settings.curve_tag)

            logger.info(
                "Stealth meta-address ready",
                extra_data={"meta_address": short_hex(self._meta_address, 20)}
            )

        return self._meta_address

    @property
    def keys(self) -> StealthKeys:
        if self._keys is None:
            self.initialize()
        return self._keys

    @property
    def meta_address(self) -> str:
        return self._meta_address or self.initialize()

    # ========================================================================
    # REGISTRATION
    # ========================================================================

    @property
    def registration_status(self) -> RegistrationStatus:
        return self._registration_status

    @property
    def is_registered(self) -> bool:
        if self._registration_status is RegistrationStatus.SUCCESS:
            return True
        return self.client.lookup_stealth_meta_address(self.signer.address) == self.meta_address

    def register_keys(self) -> Registration:
        """
        Registra il meta-address dell'utente.

        Raises:
            Exception: Errori del registry si propagano (status ERROR)
        """
        keys = self.keys
        self._registration_status = RegistrationStatus.PENDING

        try:
            registration = self.client.register_stealth_keys(
                self.signer,
                keys.spending.public_key,
                keys.viewing.public_key
            )
        except Exception:
            self._registration_status = RegistrationStatus.ERROR
            logger.exception("Stealth key registration failed")
            raise

        self._registration_status = RegistrationStatus.SUCCESS
        return registration

    # ========================================================================
    # SENDING
    # ========================================================================

    def send_to(self, recipient_meta_address: str, metadata: bytes = b"") -> GeneratedStealthAddress:
        """
        Genera una stealth address per il destinatario e la annuncia.

        Se la generazione fallisce l'invio è bloccato: nessun fallback
        su indirizzi non privati.

        Returns:
            GeneratedStealthAddress: Destinazione da usare per il messaggio

        Raises:
            StealthGenerationError: Generazione fallita
        """
        try:
            generated = generate_one_time_stealth_address(recipient_meta_address)
        except StealthChatException as e:
            logger.error(
                "Stealth address generation failed, send blocked",
                extra_data=e.to_dict()
            )
            raise StealthGenerationError(
                f"Cannot generate stealth address: {e.message}",
                code="SEND_BLOCKED",
                details={"cause": e.code}
            ) from e

        self.client.announce_stealth_message(
            self.signer,
            generated.stealth_address,
            generated.ephemeral_public_key,
            generated.view_tag,
            metadata=metadata
        )
        return generated

    def send_to_identity(self, identity: str, metadata: bytes = b"") -> GeneratedStealthAddress:
        """
        Come send_to, risolvendo il meta-address dal registry.

        Raises:
            RecipientNotRegisteredError: Nessun meta-address per l'identità
        """
        meta_address = self.client.lookup_stealth_meta_address(identity)
        if meta_address is None:
            raise RecipientNotRegisteredError(identity)
        return self.send_to(meta_address, metadata=metadata)

    # ========================================================================
    # RECEIVING
    # ========================================================================

    def start_watching(self, background: Optional[bool] = None) -> AnnouncementWatcher:
        """Avvia il watcher sugli announcement nuovi (idempotente)"""
        if self._watcher is not None and self._watcher.is_active:
            return self._watcher

        keys = self.keys
        self._watcher = watch_announcements_for_user(
            self.client,
            keys.viewing.private_key,
            keys.spending.public_key,
            self._on_announcements_received,
            background=background,
            settings=self.settings,
        )
        return self._watcher

    def stop_watching(self) -> None:
        if self._watcher is not None:
            self._watcher.unsubscribe()
            self._watcher = None

    def _on_announcements_received(self, announcements: List[Announcement]) -> None:
        with self._lock:
            self._announcements.extend(announcements)

    @property
    def watcher(self) -> Optional[AnnouncementWatcher]:
        return self._watcher

    @property
    def announcements(self) -> List[Announcement]:
        """Announcement ricevuti (copia)"""
        with self._lock:
            return list(self._announcements)

    def check_stealth_address(
        self,
        stealth_address: str,
        ephemeral_public_key: PointLike,
        view_tag: int
    ) -> bool:
        """Verifica puntuale di un announcement"""
        keys = self.keys
        return is_stealth_address_for_user(
            stealth_address,
            ephemeral_public_key,
            view_tag,
            keys.viewing.private_key,
            keys.spending.public_key
        )

    def recover_private_key(self, announcement: Announcement) -> Scalar:
        """
        Private key della stealth address di un announcement proprio.

        Raises:
            StealthError: Se l'announcement non è dell'utente
        """
        if not self.check_stealth_address(
            announcement.stealth_address,
            announcement.ephemeral_public_key,
            announcement.view_tag
        ):
            raise StealthError(
                "Announcement is not addressed to this user",
                code="NOT_OWNER",
                details={"stealth_address": announcement.stealth_address}
            )

        keys = self.keys
        return compute_stealth_private_key(
            keys.spending.private_key,
            keys.viewing.private_key,
            announcement.ephemeral_public_key
        )

    def close(self) -> None:
        self.stop_watching()


__all__ = ["StealthService", "RegistrationStatus"]
