"""
StealthChat - Custom Exceptions
=================================
Gerarchia di eccezioni per il protocollo stealth address.

Security Level: HIGH
Last Updated: 2026-10-19
Version: 1.0.0
"""

from typing import Optional, Any


# ============================================================================
# BASE EXCEPTION
# ============================================================================

class StealthChatException(Exception):
    """
    Eccezione base per tutte le eccezioni StealthChat.

    Attributes:
        message (str): Messaggio errore
        code (str): Codice errore (es. "INVALID_META_ADDRESS")
        details (dict): Dettagli aggiuntivi
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Serializza eccezione per logging"""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        if self.details:
            return f"[{self.code}] {self.message} | Details: {self.details}"
        return f"[{self.code}] {self.message}"


# ============================================================================
# CONFIGURATION ERRORS
# ============================================================================

class ConfigError(StealthChatException):
    """Errore configurazione"""
    pass


class InvalidConfigError(ConfigError):
    """Configurazione invalida"""
    pass


# ============================================================================
# CRYPTOGRAPHY ERRORS
# ============================================================================

class CryptoError(StealthChatException):
    """Errore crittografia"""
    pass


class InvalidKeyError(CryptoError):
    """Chiave o root secret invalido"""
    pass


class InvalidScalarError(CryptoError):
    """Scalare congruente a 0 mod n (o fuori range)"""
    pass


class InvalidPointError(CryptoError):
    """Punto malformato o non sulla curva"""
    pass


class PointAtInfinityError(CryptoError):
    """Risultato = elemento identità della curva"""
    pass


class DegenerateStealthKeyError(PointAtInfinityError):
    """
    Stealth public key degenere (spend + hS*G = infinito).

    Il chiamante può riprovare: la ephemeral key è nuova ad ogni tentativo.
    """
    pass


# ============================================================================
# STEALTH PROTOCOL ERRORS
# ============================================================================

class StealthError(StealthChatException):
    """Errore protocollo stealth"""
    pass


class InvalidMetaAddressError(StealthError):
    """Meta-address malformato o con punti off-curve"""
    pass


class InvalidAnnouncementError(StealthError):
    """Record announcement malformato"""
    pass


class StealthGenerationError(StealthError):
    """Generazione stealth address fallita: l'invio deve essere bloccato"""
    pass


# ============================================================================
# REGISTRY ERRORS
# ============================================================================

class RegistryError(StealthChatException):
    """Errore registry meta-address"""
    pass


class RecipientNotRegisteredError(RegistryError):
    """Nessun meta-address registrato per l'identità"""

    def __init__(self, identity: str):
        super().__init__(
            f"No stealth meta-address registered for {identity}",
            code="RECIPIENT_NOT_REGISTERED",
            details={"identity": identity}
        )


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def format_validation_error(
    field: str,
    value: Any,
    expected: str,
    code: Optional[str] = None
) -> InvalidAnnouncementError:
    """
    Helper per creare errori di validazione record formattati.

    Args:
        field: Nome campo invalido
        value: Valore ricevuto
        expected: Valore/tipo atteso
        code: Codice errore custom

    Returns:
        InvalidAnnouncementError: Eccezione formattata

    Example:
        >>> raise format_validation_error("viewTag", 300, "integer 0-255")
    """
    return InvalidAnnouncementError(
        message=f"Invalid field '{field}': expected {expected}, got {value!r}",
        code=code or "INVALID_ANNOUNCEMENT",
        details={"field": field, "value": value, "expected": expected}
    )


# ============================================================================
# EXPORT ALL
# ============================================================================

__all__ = [
    # Base
    "StealthChatException",

    # Config
    "ConfigError",
    "InvalidConfigError",

    # Crypto
    "CryptoError",
    "InvalidKeyError",
    "InvalidScalarError",
    "InvalidPointError",
    "PointAtInfinityError",
    "DegenerateStealthKeyError",

    # Stealth
    "StealthError",
    "InvalidMetaAddressError",
    "InvalidAnnouncementError",
    "StealthGenerationError",

    # Registry
    "RegistryError",
    "RecipientNotRegisteredError",

    # Helpers
    "format_validation_error",
]
