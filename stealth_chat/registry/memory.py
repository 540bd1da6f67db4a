"""
StealthChat - In-Process Collaborators
========================================
Implementazioni in memoria di Signer, AnnouncementChannel e KeyRegistry
per sviluppo locale, demo e test.

Security Level: LOW
Last Updated: 2026-10-19
Version: 1.0.0

NON usare in production: il channel reale è un log pubblico durevole
(eventi blockchain), il signer reale è il wallet dell'utente.
"""

import itertools
import threading
from collections import deque
from typing import Deque, Dict, List, Optional, Tuple

from coincurve import PrivateKey, PublicKey

from stealth_chat.crypto.curve import (
    ScalarLike,
    keccak256,
    normalize_scalar,
    random_scalar,
    scalar_to_bytes,
    derive_address,
    addresses_equal,
)
from stealth_chat.errors import RegistryError
from stealth_chat.logging_setup import get_logger, short_hex
from stealth_chat.registry.channel import (
    AnnouncementChannel,
    KeyRegistry,
    Record,
    RecordsCallback,
    Registration,
    Signer,
    Unsubscribe,
)


logger = get_logger("registry.memory")


# ============================================================================
# SIGNER
# ============================================================================

def personal_message_hash(message: bytes) -> bytes:
    """Hash EIP-191 (personal_sign)"""
    prefix = b"\x19Ethereum Signed Message:\n" + str(len(message)).encode("ascii")
    return keccak256(prefix + message)


def recover_signer_address(message: bytes, signature: bytes) -> str:
    """
    Recupera l'indirizzo firmatario da firma personal_sign (r || s || v).

    Raises:
        RegistryError: Se la firma è malformata
    """
    if len(signature) != 65:
        raise RegistryError("Signature must be 65 bytes", code="INVALID_SIGNATURE")

    recovery_id = signature[64] - 27 if signature[64] >= 27 else signature[64]
    try:
        public_key = PublicKey.from_signature_and_message(
            signature[:64] + bytes([recovery_id]),
            personal_message_hash(message),
            hasher=None
        )
    except ValueError as e:
        raise RegistryError(f"Signature recovery failed: {e}", code="INVALID_SIGNATURE")

    return derive_address(public_key)


class LocalSigner(Signer):
    """
    Signer locale secp256k1 con firme personal_sign deterministiche
    (RFC 6979), quindi adatto a derive_root_secret.
    """

    def __init__(self, private_key: Optional[ScalarLike] = None):
        scalar = normalize_scalar(private_key) if private_key is not None else random_scalar()
        self._key = PrivateKey(scalar_to_bytes(scalar))
        self._address = derive_address(self._key.public_key)

    @property
    def address(self) -> str:
        return self._address

    def sign(self, message: bytes) -> bytes:
        signature = self._key.sign_recoverable(personal_message_hash(message), hasher=None)
        return signature[:64] + bytes([signature[64] + 27])

    def __repr__(self) -> str:
        return f"LocalSigner({self._address})"


# ============================================================================
# ANNOUNCEMENT CHANNEL
# ============================================================================

class InMemoryAnnouncementChannel(AnnouncementChannel):
    """
    Log append-only in memoria.

    I batch vengono consegnati fuori dal lock da un solo dispatcher alla
    volta, in ordine di log: un publish fatto da un subscriber (anche da
    un altro thread) viene accodato e consegnato dal dispatcher attivo.
    Un subscriber che solleva eccezione viene loggato e non blocca la
    consegna agli altri.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._records: List[Record] = []
        self._subscribers: Dict[int, RecordsCallback] = {}
        self._ids = itertools.count(1)
        self._undelivered: Deque[Tuple[int, int]] = deque()
        self._dispatching = False

    @property
    def records(self) -> List[Record]:
        """Snapshot del log"""
        with self._lock:
            return list(self._records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def publish(self, record: Record) -> str:
        return self.publish_batch([record])[0]

    def publish_batch(self, records: List[Record]) -> List[str]:
        """Appende più record consegnandoli come un unico batch"""
        with self._lock:
            start = len(self._records)
            self._records.extend(dict(r) for r in records)
            end = len(self._records)
            record_ids = [f"ann-{i}" for i in range(start, end)]

            self._undelivered.append((start, end))
            if self._dispatching:
                return record_ids
            self._dispatching = True

        self._dispatch()
        return record_ids

    def _dispatch(self) -> None:
        """Consegna i batch pendenti finché la coda è vuota"""
        try:
            while True:
                with self._lock:
                    if not self._undelivered:
                        self._dispatching = False
                        return
                    start, end = self._undelivered.popleft()
                    batch = self._records[start:end]
                    subscribers = list(self._subscribers.items())

                for subscription_id, callback in subscribers:
                    try:
                        callback([dict(r) for r in batch])
                    except Exception:
                        logger.exception(
                            "Channel subscriber failed",
                            extra_data={"subscription": subscription_id}
                        )
        except BaseException:
            with self._lock:
                self._dispatching = False
            raise

    def subscribe(self, callback: RecordsCallback, replay: bool = False) -> Unsubscribe:
        """
        Args:
            callback: Riceve liste di record
            replay: Consegna prima lo storico già consegnato agli altri
        """
        with self._lock:
            subscription_id = next(self._ids)
            self._subscribers[subscription_id] = callback

            delivered = self._undelivered[0][0] if self._undelivered else len(self._records)
            if replay and delivered:
                callback([dict(r) for r in self._records[:delivered]])

        logger.debug("Channel subscriber added", extra_data={"subscription": subscription_id})

        def unsubscribe() -> None:
            with self._lock:
                self._subscribers.pop(subscription_id, None)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)


# ============================================================================
# KEY REGISTRY
# ============================================================================

class InMemoryKeyRegistry(KeyRegistry):
    """
    Registry in memoria: storico per identità, ultimo record = verità.

    Rifiuta registrazioni la cui firma non è dell'identità dichiarata.
    """

    def __init__(self, verify_signatures: bool = True):
        self._lock = threading.Lock()
        self._history: Dict[str, List[Registration]] = {}
        self.verify_signatures = verify_signatures

    @staticmethod
    def _key(identity: str) -> str:
        return identity.lower()

    def publish_registration(self, registration: Registration) -> str:
        if self.verify_signatures:
            signer = recover_signer_address(
                registration.meta_address.encode("utf-8"),
                registration.signature
            )
            if not addresses_equal(signer, registration.identity):
                raise RegistryError(
                    "Registration signature does not match identity",
                    code="REGISTRATION_SIGNER_MISMATCH",
                    details={"identity": registration.identity, "signer": signer}
                )

        with self._lock:
            history = self._history.setdefault(self._key(registration.identity), [])
            history.append(registration)
            registration_id = f"reg-{registration.identity.lower()}-{len(history)}"

        logger.debug(
            "Registration stored",
            extra_data={"identity": short_hex(registration.identity)}
        )
        return registration_id

    def latest_registration(self, identity: str) -> Optional[Registration]:
        with self._lock:
            history = self._history.get(self._key(identity))
            return history[-1] if history else None

    def history(self, identity: str) -> List[Registration]:
        with self._lock:
            return list(self._history.get(self._key(identity), []))


__all__ = [
    "personal_message_hash",
    "recover_signer_address",
    "LocalSigner",
    "InMemoryAnnouncementChannel",
    "InMemoryKeyRegistry",
]
