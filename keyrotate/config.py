# keyrotate/config.py
"""
Configuration for keyrotate.

Deployment defaults are read from environment variables. Validation of a
rotation options mapping happens in ``RotationConfig.from_options``, which a
KeyRotator calls once when it is built.

Usage:
    from keyrotate.config import default_options

    rotator = KeyRotator(default_options(public_key_store=store))

Environment Variables:
    KEYROTATE_SIGNING_KEY_AGE: Seconds a key signs before the next takes over (default: 3600)
    KEYROTATE_SIGNING_KEY_OVERLAP: Seconds successive keys overlap (default: 300)
    KEYROTATE_SIGNING_KEY_TYPE: "RSA" or "EC" (default: EC)
    KEYROTATE_RSA_KEY_SIZE: RSA modulus length (default: 2048)
    KEYROTATE_EC_CURVE: EC named curve (default: P-256)
"""

import os
from dataclasses import dataclass
from typing import Any, Dict, Final, Mapping

from keyrotate.algorithms import AlgorithmBackend, AlgorithmOptions, get_backend
from keyrotate.errors import ConfigError
from keyrotate.stores import is_public_key_store

# =============================================================================
# Rotation Limits
# =============================================================================

# Published keys stay valid this long past their overlap window
EXPIRY_CLOCK_SKEW: Final[int] = 5 * 60

# Hard ceiling on how long one key may sign
MAX_SIGNING_KEY_AGE: Final[int] = 24 * 60 * 60

# Floor for the timer when signing_key_overlap == signing_key_age
MIN_ROTATION_INTERVAL: Final[int] = 1

# =============================================================================
# Environment Defaults
# =============================================================================

SIGNING_KEY_AGE: Final[int] = int(os.getenv("KEYROTATE_SIGNING_KEY_AGE", "3600"))

SIGNING_KEY_OVERLAP: Final[int] = int(os.getenv("KEYROTATE_SIGNING_KEY_OVERLAP", "300"))

SIGNING_KEY_TYPE: Final[str] = os.getenv("KEYROTATE_SIGNING_KEY_TYPE", "EC")

RSA_KEY_SIZE: Final[int] = int(os.getenv("KEYROTATE_RSA_KEY_SIZE", "2048"))

EC_CURVE: Final[str] = os.getenv("KEYROTATE_EC_CURVE", "P-256")


def default_options(public_key_store: Any) -> Dict[str, Any]:
    """
    Build a rotation options mapping from the environment defaults.

    Args:
        public_key_store: Destination for published public keys.

    Returns:
        A dict suitable for ``KeyRotator(...)``.
    """
    return {
        "public_key_store": public_key_store,
        "signing_key_age": SIGNING_KEY_AGE,
        "signing_key_overlap": SIGNING_KEY_OVERLAP,
        "signing_key_type": SIGNING_KEY_TYPE,
        "rsa": {"signing_key_size": RSA_KEY_SIZE},
        "ec": {"crv": EC_CURVE},
    }


# =============================================================================
# Validation
# =============================================================================


def _require_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    return value


@dataclass(frozen=True)
class RotationConfig:
    """
    Validated rotation settings.

    Attributes:
        signing_key_age: Seconds a key is the active signing key.
        signing_key_overlap: Seconds the next key overlaps the current one.
        signing_key_type: "RSA" or "EC".
        algorithm_options: Options normalized by the selected backend.
        public_key_store: Object exposing ``async store_public_key(jwk)``.
    """

    signing_key_age: int
    signing_key_overlap: int
    signing_key_type: str
    algorithm_options: AlgorithmOptions
    public_key_store: Any

    @classmethod
    def from_options(cls, options: Any) -> "RotationConfig":
        """
        Validate a rotation options mapping.

        Raises:
            ConfigError: Naming the first offending option.
        """
        if not isinstance(options, Mapping):
            raise ConfigError(f"options must be a mapping, got {type(options).__name__}")

        store = options.get("public_key_store")
        if not is_public_key_store(store):
            raise ConfigError(
                "public_key_store must expose an async store_public_key(jwk) method"
            )

        age = _require_int("signing_key_age", options.get("signing_key_age"))
        if age <= 0:
            raise ConfigError(f"signing_key_age must be positive, got {age}")
        if age > MAX_SIGNING_KEY_AGE:
            raise ConfigError(
                f"signing_key_age must not exceed {MAX_SIGNING_KEY_AGE} seconds, got {age}"
            )

        overlap = _require_int("signing_key_overlap", options.get("signing_key_overlap"))
        if overlap <= 0:
            raise ConfigError(f"signing_key_overlap must be positive, got {overlap}")
        if overlap > age:
            raise ConfigError(
                f"signing_key_overlap ({overlap}) must not exceed signing_key_age ({age})"
            )

        signing_key_type = options.get("signing_key_type")
        backend = get_backend(signing_key_type)
        section = "rsa" if signing_key_type == "RSA" else "ec"
        algorithm_options = backend.normalize(options.get(section))

        return cls(
            signing_key_age=age,
            signing_key_overlap=overlap,
            signing_key_type=signing_key_type,
            algorithm_options=algorithm_options,
            public_key_store=store,
        )

    @property
    def backend(self) -> AlgorithmBackend:
        return get_backend(self.signing_key_type)

    @property
    def rotation_interval(self) -> int:
        """Seconds between rotations: age minus overlap, never below one second."""
        return max(self.signing_key_age - self.signing_key_overlap, MIN_ROTATION_INTERVAL)

    @property
    def key_lifetime(self) -> int:
        """Seconds a published key stays valid for verification."""
        return self.signing_key_age + self.signing_key_overlap + EXPIRY_CLOCK_SKEW
