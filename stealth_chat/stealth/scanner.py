"""
StealthChat - Announcement Scanner
====================================
Lato destinatario: filtra il flusso di announcement e riconosce le
stealth address proprie.

Security Level: HIGH
Last Updated: 2026-10-19
Version: 1.0.0

Pipeline per announcement:
1. View tag filter: S = v * R, keccak256(S)[0] == view_tag?
   (scarta ~255/256 degli announcement altrui con una sola moltiplicazione)
2. Full check: address(B + hS*G) == stealth_address?
   Un view tag uguale con indirizzo diverso è un falso positivo atteso:
   viene scartato in silenzio, non è un errore.

Il watcher è una sottoscrizione long-lived con stati IDLE -> SCANNING;
termina solo con unsubscribe() (STOPPED).
"""

import queue
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, List, Optional, Union

from stealth_chat.config import StealthSettings, get_settings
from stealth_chat.crypto.curve import (
    Point,
    PointLike,
    Scalar,
    ScalarLike,
    normalize_scalar,
    parse_point,
    derive_address,
    addresses_equal,
)
from stealth_chat.errors import InvalidAnnouncementError, InvalidPointError
from stealth_chat.logging_setup import get_logger, short_hex, PerformanceLogger
from stealth_chat.registry.channel import Announcement, AnnouncementChannel, Record
from stealth_chat.stealth.generation import (
    compute_shared_secret,
    compute_view_tag,
    compute_stealth_public_key,
)


logger = get_logger("scanner")


AnnouncementsCallback = Callable[[List[Announcement]], None]


# ============================================================================
# SINGLE-ANNOUNCEMENT CHECKS
# ============================================================================

def _view_tag_matches(viewing_private_key: Scalar, ephemeral_public_key: Point, view_tag: int) -> Optional[Point]:
    """Shared secret se il view tag coincide, altrimenti None"""
    shared_secret = compute_shared_secret(viewing_private_key, ephemeral_public_key)
    if compute_view_tag(shared_secret) != view_tag:
        return None
    return shared_secret


def check_view_tag(
    viewing_private_key: ScalarLike,
    ephemeral_public_key: PointLike,
    view_tag: int
) -> bool:
    """
    Filtro economico: solo ECDH + un hash.

    Returns:
        bool: True se il view tag coincide (match possibile, non certo)
    """
    v = normalize_scalar(viewing_private_key)
    try:
        ephemeral = parse_point(ephemeral_public_key)
    except InvalidPointError:
        return False
    return _view_tag_matches(v, ephemeral, view_tag) is not None


def is_stealth_address_for_user(
    stealth_address: str,
    ephemeral_public_key: PointLike,
    view_tag: int,
    viewing_private_key: ScalarLike,
    spending_public_key: PointLike
) -> bool:
    """
    Verifica completa: la stealth address appartiene all'utente?

    Args:
        stealth_address: Indirizzo annunciato
        ephemeral_public_key: R annunciata
        view_tag: View tag annunciato
        viewing_private_key: v del destinatario
        spending_public_key: B del destinatario

    Returns:
        bool: True solo con uguaglianza esatta dell'indirizzo

    Raises:
        InvalidScalarError: viewing_private_key invalida
        InvalidPointError: spending_public_key invalida
    """
    v = normalize_scalar(viewing_private_key)
    spending = parse_point(spending_public_key)

    try:
        ephemeral = parse_point(ephemeral_public_key)
    except InvalidPointError:
        return False

    shared_secret = _view_tag_matches(v, ephemeral, view_tag)
    if shared_secret is None:
        return False

    candidate = derive_address(compute_stealth_public_key(spending, shared_secret))
    return addresses_equal(candidate, stealth_address)


# ============================================================================
# BATCH SCANNER
# ============================================================================

@dataclass
class ScanStats:
    """Contatori cumulativi dello scanner"""
    scanned: int = 0
    view_tag_matches: int = 0
    matches: int = 0
    rejected: int = 0

    @property
    def false_positives(self) -> int:
        return self.view_tag_matches - self.matches


class AnnouncementScanner:
    """
    Scanner stateless rispetto al protocollo (solo contatori).

    Examples:
        >>> scanner = AnnouncementScanner(keys.viewing.private_key, keys.spending.public_key)
        >>> mine = scanner.scan(channel.records)
    """

    def __init__(self, viewing_private_key: ScalarLike, spending_public_key: PointLike):
        self._viewing_private_key = normalize_scalar(viewing_private_key)
        self._spending_public_key = parse_point(spending_public_key)
        self.stats = ScanStats()

    def check(self, announcement: Announcement) -> bool:
        """Filtro view tag + full check su un announcement già validato"""
        self.stats.scanned += 1

        ephemeral = parse_point(announcement.ephemeral_public_key)
        shared_secret = _view_tag_matches(self._viewing_private_key, ephemeral, announcement.view_tag)
        if shared_secret is None:
            return False

        self.stats.view_tag_matches += 1

        candidate = derive_address(compute_stealth_public_key(self._spending_public_key, shared_secret))
        if not addresses_equal(candidate, announcement.stealth_address):
            return False

        self.stats.matches += 1
        return True

    def scan(self, records: Iterable[Union[Record, Announcement]]) -> List[Announcement]:
        """
        Scanna un batch di record/announcement.

        Record malformati (il channel è pubblico) vengono loggati e saltati.

        Returns:
            list: Announcement indirizzati all'utente, in ordine di input
        """
        found: List[Announcement] = []

        for item in records:
            if isinstance(item, Announcement):
                announcement = item
            else:
                try:
                    announcement = Announcement.from_record(item)
                except InvalidAnnouncementError as e:
                    self.stats.rejected += 1
                    logger.warning("Skipping malformed announcement", extra_data=e.to_dict())
                    continue

            if self.check(announcement):
                found.append(announcement)

        return found


# ============================================================================
# LONG-LIVED WATCHER
# ============================================================================

class WatcherState(str, Enum):
    """Stati della sottoscrizione"""
    IDLE = "idle"          # sottoscritto, nessun announcement processato
    SCANNING = "scanning"  # processing continuo del flusso
    STOPPED = "stopped"    # unsubscribe() chiamato


class AnnouncementWatcher:
    """
    Sottoscrizione long-lived al channel.

    In background mode i batch del channel entrano in una FIFO e un
    worker thread li scanna: nessun batch viene perso mentre la
    sottoscrizione è attiva. Con queue_size > 0 il thread che consegna
    attende finché i batch in sospeso scendono sotto la soglia.
    on_announcements_received riceve solo liste non vuote di match; se
    solleva, l'errore viene loggato e lo scanning continua.

    Examples:
        >>> watcher = watch_announcements_for_user(channel, v, B, on_received)
        >>> ...
        >>> watcher.unsubscribe()
    """

    def __init__(
        self,
        channel: AnnouncementChannel,
        scanner: AnnouncementScanner,
        on_announcements_received: AnnouncementsCallback,
        background: bool = True,
        queue_size: int = 0,
        slow_batch_ms: Optional[int] = None
    ):
        self.channel = channel
        self.scanner = scanner
        self.on_announcements_received = on_announcements_received
        self.background = background
        self.slow_batch_ms = slow_batch_ms

        self._state = WatcherState.IDLE
        self._unsubscribe = None
        self._stopped = threading.Event()
        self.queue_size = queue_size
        self._queue: "queue.Queue[Optional[List[Record]]]" = queue.Queue()
        self._pending = 0
        self._cond = threading.Condition()
        self._thread: Optional[threading.Thread] = None

    @property
    def state(self) -> WatcherState:
        return self._state

    @property
    def stats(self) -> ScanStats:
        return self.scanner.stats

    @property
    def is_active(self) -> bool:
        return self._unsubscribe is not None and not self._stopped.is_set()

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    def start(self) -> "AnnouncementWatcher":
        """Sottoscrive il channel (stato IDLE)"""
        if self._unsubscribe is not None:
            return self

        if self.background:
            self._thread = threading.Thread(
                target=self._run,
                name="stealth-announcement-scanner",
                daemon=True
            )
            self._thread.start()

        self._unsubscribe = self.channel.subscribe(self._on_records)

        logger.info("Announcement watcher subscribed", extra_data={"background": self.background})
        return self

    def unsubscribe(self, timeout: Optional[float] = 5.0) -> None:
        """
        Termina la sottoscrizione: nessuna consegna dopo questa chiamata.
        I batch ancora in coda vengono scartati.
        """
        if self._stopped.is_set():
            return

        self._stopped.set()
        self._state = WatcherState.STOPPED
        with self._cond:
            self._cond.notify_all()

        if self._unsubscribe is not None:
            self._unsubscribe()

        if self._thread is not None:
            self._drain_queue()
            self._queue.put(None)
            if threading.current_thread() is not self._thread:
                self._thread.join(timeout)

        with self._cond:
            self._pending = 0
            self._cond.notify_all()

        logger.info(
            "Announcement watcher unsubscribed",
            extra_data={
                "scanned": self.stats.scanned,
                "matches": self.stats.matches,
            }
        )

    def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        """Attende che tutti i batch ricevuti siano processati"""
        with self._cond:
            return self._cond.wait_for(lambda: self._pending == 0, timeout)

    def __enter__(self) -> "AnnouncementWatcher":
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.unsubscribe()

    # ========================================================================
    # PROCESSING
    # ========================================================================

    def _on_records(self, records: List[Record]) -> None:
        """Callback del channel"""
        if self._stopped.is_set() or not records:
            return

        if not self.background:
            self._process(records)
            return

        with self._cond:
            # il worker non aspetta mai se stesso (publish dal callback)
            if self.queue_size and threading.current_thread() is not self._thread:
                self._cond.wait_for(
                    lambda: self._pending < self.queue_size or self._stopped.is_set()
                )
            if self._stopped.is_set():
                return
            self._pending += 1
        self._queue.put(list(records))

    def _process(self, records: List[Record]) -> None:
        if self._state is WatcherState.IDLE:
            self._state = WatcherState.SCANNING

        with PerformanceLogger(
            logger,
            "scan_batch",
            threshold_ms=self.slow_batch_ms,
            extra_data={"batch_size": len(records)}
        ):
            found = self.scanner.scan(records)

        if found and not self._stopped.is_set():
            logger.info(
                "Stealth announcements received",
                extra_data={
                    "count": len(found),
                    "addresses": [short_hex(a.stealth_address) for a in found],
                }
            )
            try:
                self.on_announcements_received(found)
            except Exception:
                logger.exception(
                    "on_announcements_received callback failed",
                    extra_data={"count": len(found)}
                )

    def _run(self) -> None:
        """Worker loop"""
        while True:
            records = self._queue.get()
            if records is None:
                break

            try:
                if not self._stopped.is_set():
                    self._process(records)
            except Exception:
                logger.exception("Announcement batch processing failed")
            finally:
                with self._cond:
                    self._pending = max(0, self._pending - 1)
                    self._cond.notify_all()

    def _drain_queue(self) -> None:
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                return


def watch_announcements_for_user(
    channel: AnnouncementChannel,
    viewing_private_key: ScalarLike,
    spending_public_key: PointLike,
    on_announcements_received: AnnouncementsCallback,
    background: Optional[bool] = None,
    settings: Optional[StealthSettings] = None
) -> AnnouncementWatcher:
    """
    Avvia il watcher per un utente.

    Args:
        channel: Announcement channel (o AnnouncementRegistryClient)
        viewing_private_key: v
        spending_public_key: B
        on_announcements_received: Callback con i match di ogni batch
        background: Worker thread (default da settings)
        settings: StealthSettings

    Returns:
        AnnouncementWatcher: Watcher già sottoscritto (stato IDLE)
    """
    settings = settings or get_settings()

    watcher = AnnouncementWatcher(
        channel=channel,
        scanner=AnnouncementScanner(viewing_private_key, spending_public_key),
        on_announcements_received=on_announcements_received,
        background=settings.scanner_background if background is None else background,
        queue_size=settings.scanner_queue_size,
        slow_batch_ms=settings.scanner_slow_batch_ms,
    )
    return watcher.start()


__all__ = [
    "check_view_tag",
    "is_stealth_address_for_user",
    "ScanStats",
    "AnnouncementScanner",
    "WatcherState",
    "AnnouncementWatcher",
    "watch_announcements_for_user",
]
