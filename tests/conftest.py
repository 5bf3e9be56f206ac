"""
Shared pytest fixtures for keyrotate tests.
"""

from typing import Any, Dict, List

import pytest

from keyrotate import MemoryPublicKeyStore

TEST_SIGNING_KEY_AGE = 60 * 60
TEST_SIGNING_KEY_OVERLAP = 5 * 60


class RecordingStore:
    """Store that records every published JWK."""

    def __init__(self):
        self.published: List[Dict[str, Any]] = []

    async def store_public_key(self, jwk: Dict[str, Any]) -> None:
        self.published.append(jwk)


class FailingStore(RecordingStore):
    """Store that records the JWK and then rejects it."""

    async def store_public_key(self, jwk: Dict[str, Any]) -> None:
        self.published.append(jwk)
        raise ConnectionError("key store unavailable")


@pytest.fixture
def memory_store() -> MemoryPublicKeyStore:
    """Create an empty in-memory public key store."""
    return MemoryPublicKeyStore()


@pytest.fixture
def recording_store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def failing_store() -> FailingStore:
    return FailingStore()


@pytest.fixture
def make_options(recording_store):
    """Build rotation options with test defaults, overridable per test."""

    def _make(**overrides) -> Dict[str, Any]:
        options = {
            "public_key_store": recording_store,
            "signing_key_age": TEST_SIGNING_KEY_AGE,
            "signing_key_overlap": TEST_SIGNING_KEY_OVERLAP,
            "signing_key_type": "EC",
            "ec": {"crv": "P-256"},
            "rsa": {"signing_key_size": 2048},
        }
        options.update(overrides)
        return options

    return _make
