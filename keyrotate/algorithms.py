"""
Signing algorithm backends for keyrotate.

Two backends exist, RSA and EC. Each one validates its own options, generates
a key pair and renders the public half as a JWK. Backends know nothing about
rotation: they never set ``kid``, ``alg`` or ``exp`` on the public JWK.

Example:
    >>> backend = get_backend("EC")
    >>> opts = backend.normalize({"crv": "P-384"})
    >>> pair = backend.generate(opts)
    >>> pair.public_jwk["kty"], backend.algorithm(opts)
    ('EC', 'ES384')
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Final, Mapping, Optional, Union

from cryptography.hazmat.primitives.asymmetric import ec, rsa
from jwcrypto import jwk

from keyrotate.errors import ConfigError, GenerationError

logger = logging.getLogger(__name__)

RSA_PUBLIC_EXPONENT: Final[int] = 65537
RSA_KEY_SIZES: Final[tuple] = (2048, 3072, 4096)
DEFAULT_RSA_KEY_SIZE: Final[int] = 2048

# curve name -> (pyca curve class, JWS algorithm)
EC_CURVES: Final[Dict[str, tuple]] = {
    "P-256": (ec.SECP256R1, "ES256"),
    "P-384": (ec.SECP384R1, "ES384"),
    "P-521": (ec.SECP521R1, "ES512"),
}
DEFAULT_EC_CURVE: Final[str] = "P-256"


@dataclass(frozen=True)
class RSAOptions:
    """Normalized RSA options."""

    signing_key_size: int = DEFAULT_RSA_KEY_SIZE


@dataclass(frozen=True)
class ECOptions:
    """Normalized EC options."""

    crv: str = DEFAULT_EC_CURVE


AlgorithmOptions = Union[RSAOptions, ECOptions]


@dataclass(frozen=True)
class KeyPair:
    """
    A freshly generated key pair.

    Attributes:
        private_key: jwcrypto JWK holding the private key.
        public_jwk: Public parameters as a plain dict (``kty`` plus n/e or crv/x/y).
    """

    private_key: jwk.JWK
    public_jwk: Dict[str, Any]


def _section(options: Optional[Mapping[str, Any]], name: str) -> Mapping[str, Any]:
    """Return a backend's option section, treating a missing section as empty."""
    if options is None:
        return {}
    if not isinstance(options, Mapping):
        raise ConfigError(f"'{name}' options must be a mapping, got {type(options).__name__}")
    return options


def _export_public(private_key: jwk.JWK) -> Dict[str, Any]:
    public = private_key.export_public(as_dict=True)
    for field in ("kid", "alg", "exp"):
        public.pop(field, None)
    return public


class RSABackend:
    """RSA signing keys, always published as RS256."""

    key_type: Final[str] = "RSA"

    def normalize(self, options: Optional[Mapping[str, Any]]) -> RSAOptions:
        """
        Validate the ``rsa`` option section.

        Args:
            options: Mapping with an optional ``signing_key_size``, or None.

        Returns:
            Normalized RSAOptions.

        Raises:
            ConfigError: If the section is not a mapping or the size is not allowed.
        """
        section = _section(options, "rsa")
        size = section.get("signing_key_size", DEFAULT_RSA_KEY_SIZE)
        if isinstance(size, bool) or not isinstance(size, int):
            raise ConfigError(f"rsa.signing_key_size must be an integer, got {size!r}")
        if size not in RSA_KEY_SIZES:
            allowed = ", ".join(str(s) for s in RSA_KEY_SIZES)
            raise ConfigError(f"rsa.signing_key_size must be one of {allowed}, got {size}")
        return RSAOptions(signing_key_size=size)

    def generate(self, options: RSAOptions) -> KeyPair:
        """Generate an RSA key pair of the configured modulus length."""
        try:
            private = rsa.generate_private_key(
                public_exponent=RSA_PUBLIC_EXPONENT, key_size=options.signing_key_size
            )
            key = jwk.JWK.from_pyca(private)
            return KeyPair(private_key=key, public_jwk=_export_public(key))
        except Exception as e:
            raise GenerationError(f"RSA key generation failed: {e}") from e

    def algorithm(self, options: RSAOptions) -> str:
        return "RS256"


class ECBackend:
    """Elliptic-curve signing keys; the JWS algorithm follows the curve."""

    key_type: Final[str] = "EC"

    def normalize(self, options: Optional[Mapping[str, Any]]) -> ECOptions:
        """
        Validate the ``ec`` option section.

        Args:
            options: Mapping with an optional ``crv``, or None.

        Returns:
            Normalized ECOptions.

        Raises:
            ConfigError: If the section is not a mapping or the curve is unsupported.
        """
        section = _section(options, "ec")
        crv = section.get("crv", DEFAULT_EC_CURVE)
        if not isinstance(crv, str) or crv not in EC_CURVES:
            allowed = ", ".join(EC_CURVES)
            raise ConfigError(f"ec.crv must be one of {allowed}, got {crv!r}")
        return ECOptions(crv=crv)

    def generate(self, options: ECOptions) -> KeyPair:
        """Generate an EC key pair on the configured curve."""
        curve_cls, _ = EC_CURVES[options.crv]
        try:
            private = ec.generate_private_key(curve_cls())
            key = jwk.JWK.from_pyca(private)
            return KeyPair(private_key=key, public_jwk=_export_public(key))
        except Exception as e:
            raise GenerationError(f"EC key generation failed on {options.crv}: {e}") from e

    def algorithm(self, options: ECOptions) -> str:
        return EC_CURVES[options.crv][1]


AlgorithmBackend = Union[RSABackend, ECBackend]

RSA_BACKEND: Final[RSABackend] = RSABackend()
EC_BACKEND: Final[ECBackend] = ECBackend()

BACKENDS: Final[Dict[str, AlgorithmBackend]] = {
    "RSA": RSA_BACKEND,
    "EC": EC_BACKEND,
}


def get_backend(signing_key_type: Any) -> AlgorithmBackend:
    """
    Select the backend for a signing key type.

    Only the exact strings "RSA" and "EC" are accepted.

    Raises:
        ConfigError: For any other value, including other casings and non-strings.
    """
    if not isinstance(signing_key_type, str) or signing_key_type not in BACKENDS:
        allowed = " or ".join(f'"{t}"' for t in BACKENDS)
        raise ConfigError(f"signing_key_type must be {allowed}, got {signing_key_type!r}")
    return BACKENDS[signing_key_type]
