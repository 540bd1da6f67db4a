"""
StealthChat - Configuration Management
========================================
Configurazione centralizzata con Pydantic Settings.
Supporta environment variables, file .env, override runtime.

Security Level: MEDIUM
Last Updated: 2026-10-19
Version: 1.0.0

Features:
- Validazione automatica tipi
- Environment variables con prefisso STEALTHCHAT_
- File .env support
"""

import os
import re
from pathlib import Path
from typing import Optional
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from stealth_chat.constants import (
    DEFAULT_CURVE_TAG,
    KEY_DERIVATION_MESSAGE,
    ANNOUNCEMENT_SCHEME_ID,
)


# ============================================================================
# MAIN CONFIGURATION CLASS
# ============================================================================

class StealthSettings(BaseSettings):
    """
    Configurazione principale StealthChat.

    Example:
        # Da environment
        export STEALTHCHAT_LOG_LEVEL=DEBUG
        export STEALTHCHAT_SCANNER_BACKGROUND=false

        # Da codice
        config = StealthSettings(curve_tag="eth")
    """

    model_config = SettingsConfigDict(
        env_prefix='STEALTHCHAT_',
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore',
    )

    # ========================================================================
    # PROTOCOL
    # ========================================================================

    curve_tag: str = Field(
        default=DEFAULT_CURVE_TAG,
        description="Curve tag nel meta-address (st:<tag>:0x...)"
    )

    key_derivation_message: str = Field(
        default=KEY_DERIVATION_MESSAGE,
        min_length=1,
        description="Messaggio firmato dal wallet per derivare il RootSecret"
    )

    announcement_scheme_id: int = Field(
        default=ANNOUNCEMENT_SCHEME_ID,
        ge=0,
        description="Scheme id scritto negli announcement"
    )

    # ========================================================================
    # SCANNER
    # ========================================================================

    scanner_background: bool = Field(
        default=True,
        description="Scanning su worker thread (False = nel thread del channel)"
    )

    scanner_queue_size: int = Field(
        default=0,
        ge=0,
        description="Max batch in coda per il worker (0 = illimitata, >0 = backpressure sul channel)"
    )

    scanner_slow_batch_ms: int = Field(
        default=500,
        ge=1,
        description="Soglia warning per batch lenti (ms)"
    )

    # ========================================================================
    # LOGGING
    # ========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level: DEBUG, INFO, WARNING, ERROR, CRITICAL"
    )

    log_format: str = Field(
        default="json",
        description="Formato log file: json, text"
    )

    log_to_file: bool = Field(
        default=False,
        description="Salva log su file"
    )

    log_dir: Path = Field(
        default=Path("./logs"),
        description="Directory log files"
    )

    enable_console: bool = Field(
        default=True,
        description="Log su console"
    )

    # ========================================================================
    # VALIDATORS
    # ========================================================================

    @field_validator('curve_tag')
    @classmethod
    def validate_curve_tag(cls, v: str) -> str:
        """Curve tag: lowercase alfanumerico, senza ':'"""
        if not re.fullmatch(r"[a-z0-9]{1,16}", v):
            raise ValueError(f"Invalid curve_tag: {v!r}")
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.upper()
        if v not in levels:
            raise ValueError(f"Invalid log_level: {v}. Must be one of {sorted(levels)}")
        return v

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("json", "text"):
            raise ValueError(f"Invalid log_format: {v}")
        return v

    # ========================================================================
    # HELPER METHODS
    # ========================================================================

    def to_dict(self) -> dict:
        """Serializza config"""
        return self.model_dump()

    def to_json(self) -> str:
        """Serializza config in JSON"""
        return self.model_dump_json(indent=2)

    @classmethod
    def from_file(cls, path: Path) -> "StealthSettings":
        """Carica config da file JSON"""
        return cls.model_validate_json(path.read_text())

    def __repr__(self) -> str:
        return (
            f"StealthSettings("
            f"curve_tag={self.curve_tag}, "
            f"scanner_background={self.scanner_background}, "
            f"log_level={self.log_level})"
        )


# ============================================================================
# SINGLETON INSTANCE
# ============================================================================

@lru_cache(maxsize=1)
def get_settings() -> StealthSettings:
    """
    Ottieni singleton instance di StealthSettings.

    Returns:
        StealthSettings: Instance configurazione (cached)
    """
    return StealthSettings()


def reload_settings() -> StealthSettings:
    """
    Ricarica settings (invalida cache).

    Usare quando si cambiano environment variables runtime.
    """
    get_settings.cache_clear()
    return get_settings()


def override_settings(**kwargs) -> StealthSettings:
    """
    Settings con valori custom (utile per testing).

    Example:
        >>> test_config = override_settings(scanner_background=False)
    """
    return StealthSettings(**kwargs)


# ============================================================================
# CONFIGURATION VALIDATION
# ============================================================================

def validate_config(config: StealthSettings) -> tuple[bool, list[str]]:
    """
    Valida configurazione completa.

    Args:
        config: StealthSettings da validare

    Returns:
        tuple: (is_valid, errors_list)
    """
    errors = []

    if config.log_to_file:
        log_dir: Optional[Path] = config.log_dir
        parent = log_dir if log_dir.exists() else log_dir.parent
        if not os.access(parent, os.W_OK):
            errors.append(f"Log directory not writable: {log_dir}")

    if not config.scanner_background and config.scanner_queue_size:
        errors.append("scanner_queue_size has no effect when scanner_background=False")

    if config.key_derivation_message.strip() != config.key_derivation_message:
        errors.append("key_derivation_message must not have leading/trailing whitespace")

    return (len(errors) == 0, errors)


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "StealthSettings",
    "get_settings",
    "reload_settings",
    "override_settings",
    "validate_config",
]
