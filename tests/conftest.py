"""
StealthChat - Pytest Configuration
====================================
Fixtures e configurazione per testing.

Last Updated: 2026-10-19
Version: 1.0.0
"""

import pytest

# Internal imports
from stealth_chat.config import override_settings
from stealth_chat.registry.client import AnnouncementRegistryClient
from stealth_chat.registry.memory import (
    LocalSigner,
    InMemoryAnnouncementChannel,
    InMemoryKeyRegistry,
)
from stealth_chat.stealth.keys import derive_stealth_keys


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: test lenti (100k announcement)")


# ============================================================================
# CONFIGURATION FIXTURES
# ============================================================================

@pytest.fixture
def test_config():
    """Test configuration (scanner sincrono)"""
    return override_settings(
        scanner_background=False,
        log_level="DEBUG",
        enable_console=False,
    )


@pytest.fixture
def background_config():
    """Test configuration con worker thread"""
    return override_settings(scanner_background=True, enable_console=False)


# ============================================================================
# KEY FIXTURES
# ============================================================================

@pytest.fixture
def alice_keys():
    """Chiavi deterministiche di Alice"""
    return derive_stealth_keys(b"\xaa" * 32)


@pytest.fixture
def bob_keys():
    """Chiavi deterministiche di Bob"""
    return derive_stealth_keys(b"\xbb" * 32)


@pytest.fixture
def carol_keys():
    """Chiavi deterministiche di Carol"""
    return derive_stealth_keys(b"\xcc" * 32)


# ============================================================================
# SIGNER FIXTURES
# ============================================================================

@pytest.fixture
def alice_signer():
    return LocalSigner(0xA11CE)


@pytest.fixture
def bob_signer():
    return LocalSigner(0xB0B)


# ============================================================================
# REGISTRY FIXTURES
# ============================================================================

@pytest.fixture
def channel():
    """Announcement channel in memoria"""
    return InMemoryAnnouncementChannel()


@pytest.fixture
def registry():
    """Key registry in memoria"""
    return InMemoryKeyRegistry()


@pytest.fixture
def client(channel, registry, test_config):
    """Registry client sincrono"""
    return AnnouncementRegistryClient(channel, registry, settings=test_config)
