"""
Exception hierarchy for keyrotate.

ConfigError is raised synchronously while a KeyRotator is being built.
GenerationError and PublicationError surface per rotation cycle.
"""

from typing import Optional


class KeyRotationError(Exception):
    """Base class for all keyrotate errors."""


class ConfigError(KeyRotationError, ValueError):
    """Invalid rotation or algorithm configuration."""


class GenerationError(KeyRotationError):
    """An algorithm backend failed to produce a key pair."""


class PublicationError(KeyRotationError):
    """The public key store rejected or failed a publish call."""

    def __init__(self, message: str, key_id: Optional[str] = None):
        super().__init__(message)
        self.key_id = key_id
