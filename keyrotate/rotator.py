"""
keyrotate signing key rotation manager.

A KeyRotator owns the current signing key. Each rotation cycle generates a
fresh key pair, publishes its public JWK to the configured store and arms a
one-shot timer for the next cycle. The timer fires ``signing_key_overlap``
seconds before the current key's signing window ends, so there is never a
moment without a key inside its active window.
"""

import asyncio
import json
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from jwcrypto import jwk, jws
from jwcrypto.common import json_encode

from keyrotate.algorithms import KeyPair
from keyrotate.config import RotationConfig
from keyrotate.errors import GenerationError, PublicationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SigningKey:
    """
    One generation of signing material.

    A new instance is created on every rotation, so holding a reference is
    a stable snapshot of the key that was current at the time.

    Attributes:
        key_id: Unique identifier, published as the JWK ``kid``.
        private_key: jwcrypto JWK with the private half. Never published.
        public_jwk: Published JWK, including ``kid``, ``alg`` and ``exp``.
        algorithm: JWS algorithm for this key (RS256, ES256, ...).
        created_at: Unix timestamp of the rotation.
        expires_at: Unix timestamp after which verifiers drop the key.
    """

    key_id: str
    private_key: jwk.JWK
    public_jwk: Dict[str, Any]
    algorithm: str
    created_at: int
    expires_at: int


class KeyRotator:
    """
    Rotates asymmetric signing keys on a fixed schedule.

    Building a KeyRotator validates its options, runs the first rotation
    before returning and arms the timer for the next one. It must be built
    inside a running event loop, which owns the timer and publication tasks.

    Example:
        >>> store = MemoryPublicKeyStore()
        >>> rotator = KeyRotator({
        ...     "public_key_store": store,
        ...     "signing_key_age": 3600,
        ...     "signing_key_overlap": 300,
        ...     "signing_key_type": "EC",
        ...     "ec": {"crv": "P-256"},
        ... })
        >>> await rotator.initial_publication
        >>> token = rotator.sign({"sub": "user-1"})
        >>> await rotator.aclose()
    """

    def __init__(self, options: Mapping[str, Any]):
        """
        Validate options and perform the first rotation.

        Args:
            options: Rotation options (see RotationConfig.from_options).

        Raises:
            ConfigError: If any option is invalid.
            GenerationError: If the first key pair cannot be generated.
            RuntimeError: If no event loop is running.
        """
        self._config = RotationConfig.from_options(options)
        self._backend = self._config.backend

        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:
            raise RuntimeError("KeyRotator must be created inside a running event loop") from None

        self._current: Optional[SigningKey] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._publication: Optional[asyncio.Future] = None
        self._scheduled: Optional[asyncio.Task] = None
        self._cycle_lock = asyncio.Lock()
        self._stopped = False

        self.initial_publication = self.generate_new_keys()
        if self._current is None:
            self.stop()
            raise self.initial_publication.exception()

    # ------------------------------------------------------------------
    # Rotation
    # ------------------------------------------------------------------

    def generate_new_keys(self) -> "asyncio.Future[None]":
        """
        Run one rotation cycle.

        The new key becomes current before this returns. Publication runs
        in the background; the returned future settles when the store call
        does and fails with PublicationError if the store rejects the key.
        If generation fails, the future fails with GenerationError and the
        previous key stays current. The next rotation is armed either way.
        """
        try:
            key_pair = self._generate()
        except GenerationError as e:
            kept = self._current.key_id if self._current else None
            logger.error(f"Key generation failed, keeping key {kept}: {e}")
            self._arm_timer()
            failed = self._loop.create_future()
            failed.set_exception(e)
            failed.add_done_callback(self._log_publication)
            return failed

        return self._rotate_to(key_pair)

    def _generate(self) -> KeyPair:
        try:
            return self._backend.generate(self._config.algorithm_options)
        except GenerationError:
            raise
        except Exception as e:
            raise GenerationError(f"Key generation failed: {e}") from e

    def _rotate_to(self, key_pair: KeyPair) -> "asyncio.Future[None]":
        created_at = round(time.time())
        key_id = str(uuid.uuid4())
        algorithm = self._backend.algorithm(self._config.algorithm_options)
        expires_at = created_at + self._config.key_lifetime

        public_jwk = dict(key_pair.public_jwk)
        public_jwk.update(kid=key_id, alg=algorithm, exp=expires_at)

        signing_key = SigningKey(
            key_id=key_id,
            private_key=key_pair.private_key,
            public_jwk=public_jwk,
            algorithm=algorithm,
            created_at=created_at,
            expires_at=expires_at,
        )
        self._current = signing_key
        logger.info(f"Rotated to signing key {key_id} ({algorithm}, exp={expires_at})")

        publication = self._loop.create_task(self._publish(signing_key, self._publication))
        publication.add_done_callback(self._log_publication)
        self._publication = publication

        self._arm_timer()
        return publication

    async def _publish(
        self, signing_key: SigningKey, previous: Optional[asyncio.Future] = None
    ) -> None:
        # Publishes run one at a time, in rotation order
        if previous is not None and not previous.done():
            await asyncio.wait([previous])

        store = self._config.public_key_store
        try:
            await store.store_public_key(dict(signing_key.public_jwk))
        except Exception as e:
            raise PublicationError(
                f"Failed to publish key {signing_key.key_id}: {e}", key_id=signing_key.key_id
            ) from e
        logger.debug(f"Published key {signing_key.key_id}")

    def _log_publication(self, future: asyncio.Future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if isinstance(error, PublicationError):
            logger.error(f"Public key publication failed: {error}")

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _arm_timer(self) -> None:
        if self._stopped:
            return
        if self._timer is not None:
            self._timer.cancel()
        delay = self._config.rotation_interval
        self._timer = self._loop.call_later(delay, self._on_timer)
        logger.debug(f"Next rotation in {delay}s")

    def _on_timer(self) -> None:
        self._timer = None
        if self._stopped:
            return
        self._scheduled = self._loop.create_task(self._scheduled_cycle())

    async def _scheduled_cycle(self) -> None:
        # Cycles never overlap: wait for the previous publish to settle first
        async with self._cycle_lock:
            previous = self._publication
            if previous is not None and not previous.done():
                await asyncio.wait([previous])
            if self._stopped:
                return

            try:
                key_pair = await self._loop.run_in_executor(None, self._generate)
            except GenerationError as e:
                kept = self._current.key_id if self._current else None
                logger.error(f"Scheduled key generation failed, keeping key {kept}: {e}")
                self._arm_timer()
                return

            publication = self._rotate_to(key_pair)
            await asyncio.wait([publication])

    def stop(self) -> None:
        """Cancel the pending rotation timer. In-flight work is left to finish."""
        self._stopped = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def aclose(self) -> None:
        """
        Stop rotating and wait for any in-flight cycle or publication.

        Publications are chained, so waiting on the latest one also waits
        for every earlier publish.
        """
        self.stop()
        pending = [
            f for f in (self._scheduled, self._publication) if f is not None and not f.done()
        ]
        if pending:
            await asyncio.wait(pending)

    async def __aenter__(self) -> "KeyRotator":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def current_key(self) -> SigningKey:
        """Snapshot of the key currently used for signing."""
        return self._current

    @property
    def config(self) -> RotationConfig:
        return self._config

    @property
    def rotation_interval(self) -> int:
        """Seconds between scheduled rotations."""
        return self._config.rotation_interval

    @property
    def is_running(self) -> bool:
        return not self._stopped

    @property
    def next_rotation_at(self) -> Optional[float]:
        """Event loop time of the armed rotation timer, or None."""
        return self._timer.when() if self._timer is not None else None

    def sign(self, payload: Dict[str, Any], headers: Optional[Dict[str, Any]] = None) -> str:
        """
        Sign ``payload`` with the current key.

        Args:
            payload: JSON-serializable claims.
            headers: Extra protected header fields. ``alg`` and ``kid`` always
                come from the signing key.

        Returns:
            JWS compact serialization.
        """
        signing_key = self._current
        protected = {"typ": "JWT"}
        protected.update(headers or {})
        protected.update(alg=signing_key.algorithm, kid=signing_key.key_id)

        token = jws.JWS(json.dumps(payload, sort_keys=True, separators=(",", ":")))
        token.add_signature(signing_key.private_key, None, json_encode(protected), None)
        return token.serialize(compact=True)
