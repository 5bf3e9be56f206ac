"""
keyrotate - Signing key rotation for token-issuing services.

Generates fresh RSA or EC signing keys on a schedule, publishes each public
JWK to a key store and keeps successive keys overlapping so tokens signed
just before a rotation stay verifiable.
"""

__version__ = "0.1.0"

# Rotation
from .rotator import KeyRotator, SigningKey
from .config import RotationConfig, default_options, EXPIRY_CLOCK_SKEW

# Algorithm backends
from .algorithms import (
    RSABackend,
    ECBackend,
    RSAOptions,
    ECOptions,
    KeyPair,
    get_backend,
)

# Public key stores
from .stores import (
    PublicKeyStore,
    PublicKeyStoreInterface,
    MemoryPublicKeyStore,
    RedisPublicKeyStore,
    is_public_key_store,
)

# Errors
from .errors import KeyRotationError, ConfigError, GenerationError, PublicationError

__all__ = [
    "__version__",
    # Rotation
    "KeyRotator",
    "SigningKey",
    "RotationConfig",
    "default_options",
    "EXPIRY_CLOCK_SKEW",
    # Backends
    "RSABackend",
    "ECBackend",
    "RSAOptions",
    "ECOptions",
    "KeyPair",
    "get_backend",
    # Stores
    "PublicKeyStore",
    "PublicKeyStoreInterface",
    "MemoryPublicKeyStore",
    "RedisPublicKeyStore",
    "is_public_key_store",
    # Errors
    "KeyRotationError",
    "ConfigError",
    "GenerationError",
    "PublicationError",
]
