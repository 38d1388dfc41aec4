"""Pluggable credential storage backends.

Provides the CredentialStore ABC and concrete implementations for
in-memory, JSON file, OS keyring, and Redis-backed persistence of the
access token, refresh token and organization id.

Stores are synchronous so that a session transition and its persisted
mirror change together, with no suspension point in between.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ..exceptions import ConfigurationError, CredentialStoreError


if TYPE_CHECKING:
    from ..config import CredentialSettings


logger = logging.getLogger("calendar_client.auth")

ACCESS_TOKEN_KEY = "auth-token"  # noqa: S105
REFRESH_TOKEN_KEY = "refresh-token"  # noqa: S105
ORGANIZATION_ID_KEY = "organization-id"

CREDENTIAL_KEYS: tuple[str, str, str] = (
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    ORGANIZATION_ID_KEY,
)


@dataclass(frozen=True)
class CredentialRecord:
    """Durable mirror of the session credentials.

    Attributes
    ----------
    access_token : str or None
        Short-lived credential attached to outbound requests.
    refresh_token : str or None
        Longer-lived credential exchanged for a new token pair.
    organization_id : str or None
        Identity fact resolved after login.
    """

    access_token: str | None = None
    refresh_token: str | None = None
    organization_id: str | None = None

    @property
    def is_empty(self) -> bool:
        """True when none of the three keys is present."""
        return not self.to_mapping()

    @property
    def is_complete(self) -> bool:
        """True when both tokens are present."""
        return bool(self.access_token) and bool(self.refresh_token)

    def to_mapping(self) -> dict[str, str]:
        """Map the present fields to their storage keys."""
        values = (self.access_token, self.refresh_token, self.organization_id)
        return {key: value for key, value in zip(CREDENTIAL_KEYS, values) if value is not None}

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> CredentialRecord:
        """Build a record from whichever storage keys are present."""

        def _get(key: str) -> str | None:
            value = data.get(key)
            return value if isinstance(value, str) and value else None

        return cls(
            access_token=_get(ACCESS_TOKEN_KEY),
            refresh_token=_get(REFRESH_TOKEN_KEY),
            organization_id=_get(ORGANIZATION_ID_KEY),
        )


class CredentialStore(ABC):
    """Abstract base class for credential persistence.

    ``write`` replaces all three keys together and ``erase`` removes all
    three. ``load`` returns whichever subset is present.
    """

    backend_name: str = "abstract"

    @abstractmethod
    def load(self) -> CredentialRecord:
        """Load the stored credentials.

        Returns
        -------
        CredentialRecord
            The stored record; empty if nothing is stored.
        """

    @abstractmethod
    def write(self, record: CredentialRecord) -> None:
        """Replace the stored credentials with ``record``.

        Fields that are None are removed from the store.

        Parameters
        ----------
        record : CredentialRecord
            The credentials to persist.

        Raises
        ------
        CredentialStoreError
            If the backend cannot persist the record.
        """

    @abstractmethod
    def erase(self) -> None:
        """Remove all stored credentials. Never raises."""


class MemoryCredentialStore(CredentialStore):
    """In-memory credential store for tests and throwaway sessions."""

    backend_name = "memory"

    def __init__(self, record: CredentialRecord | None = None) -> None:
        """Initialize the memory store, optionally pre-populated."""
        self._data: dict[str, str] = record.to_mapping() if record else {}

    def load(self) -> CredentialRecord:
        """Load credentials from memory."""
        return CredentialRecord.from_mapping(self._data)

    def write(self, record: CredentialRecord) -> None:
        """Replace the in-memory credentials."""
        self._data = record.to_mapping()

    def erase(self) -> None:
        """Drop the in-memory credentials."""
        self._data = {}

    @property
    def data(self) -> dict[str, str]:
        """A copy of the raw key/value contents."""
        return dict(self._data)


class FileCredentialStore(CredentialStore):
    """JSON file credential store.

    The three keys live in a single JSON object. Writes go through a
    temporary file in the same directory followed by ``os.replace``.

    Parameters
    ----------
    path : Path or str
        Location of the credentials file.
    """

    backend_name = "file"

    def __init__(self, path: Path | str) -> None:
        """Initialize the file store."""
        self.path = Path(path).expanduser()

    def load(self) -> CredentialRecord:
        """Load credentials from disk."""
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return CredentialRecord()
        except OSError as exc:
            logger.warning("Could not read credentials file %s: %s", self.path, exc)
            return CredentialRecord()

        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Credentials file %s is corrupt, ignoring it", self.path)
            return CredentialRecord()

        if not isinstance(data, dict):
            logger.warning("Credentials file %s does not hold an object, ignoring it", self.path)
            return CredentialRecord()
        return CredentialRecord.from_mapping(data)

    def write(self, record: CredentialRecord) -> None:
        """Atomically replace the credentials file."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(record.to_mapping(), fh)
                os.chmod(tmp_name, 0o600)
                os.replace(tmp_name, self.path)
            except BaseException:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
                raise
        except OSError as exc:
            raise CredentialStoreError(
                f"Failed to write credentials: {exc}",
                backend=self.backend_name,
                path=str(self.path),
            ) from exc

    def erase(self) -> None:
        """Delete the credentials file."""
        try:
            self.path.unlink(missing_ok=True)
        except OSError:
            logger.exception("Failed to erase credentials file %s", self.path)


class KeyringCredentialStore(CredentialStore):
    """OS keyring-backed credential store.

    Requires the ``keyring`` package: ``pip install calendar-client[keyring]``

    Parameters
    ----------
    service_name : str
        Service name for keyring storage (default "calendar-client").
    profile : str
        Profile name prefixed to each key.
    """

    backend_name = "keyring"

    def __init__(self, service_name: str = "calendar-client", profile: str = "default") -> None:
        """Initialize the keyring store."""
        try:
            import keyring as _keyring

            from keyring.errors import PasswordDeleteError
        except ImportError:
            msg = "Install keyring for OS credential storage: pip install calendar-client[keyring]"
            raise ImportError(msg) from None
        self._service_name = service_name
        self._profile = profile
        self._keyring = _keyring
        self._delete_error = PasswordDeleteError

    def _username(self, key: str) -> str:
        return f"{self._profile}:{key}"

    def load(self) -> CredentialRecord:
        """Load credentials from the OS keyring."""
        data: dict[str, Any] = {}
        for key in CREDENTIAL_KEYS:
            try:
                data[key] = self._keyring.get_password(self._service_name, self._username(key))
            except Exception as exc:  # noqa: BLE001
                logger.warning("Keyring lookup for %s failed: %s", key, exc)
        return CredentialRecord.from_mapping(data)

    def write(self, record: CredentialRecord) -> None:
        """Write credentials to the OS keyring."""
        mapping = record.to_mapping()
        try:
            for key in CREDENTIAL_KEYS:
                if key in mapping:
                    username = self._username(key)
                    self._keyring.set_password(self._service_name, username, mapping[key])
                else:
                    self._delete(key)
        except Exception as exc:
            raise CredentialStoreError(
                f"Failed to write credentials: {exc}",
                backend=self.backend_name,
            ) from exc

    def erase(self) -> None:
        """Delete all credential entries from the OS keyring."""
        for key in CREDENTIAL_KEYS:
            try:
                self._delete(key)
            except Exception:
                logger.exception("Failed to erase keyring entry %s", key)

    def _delete(self, key: str) -> None:
        # Deleting a missing entry is not an error
        with contextlib.suppress(self._delete_error):
            self._keyring.delete_password(self._service_name, self._username(key))


class RedisCredentialStore(CredentialStore):
    """Redis-backed credential store for shared or headless deployments.

    The three keys are fields of one Redis hash per profile.

    Parameters
    ----------
    redis_url : str
        Redis connection URL.
    prefix : str
        Key prefix for namespacing (default "calendar_client").
    profile : str
        Profile name (default "default").
    client : Any, optional
        A pre-built ``redis.Redis`` compatible client.
    """

    backend_name = "redis"

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        prefix: str = "calendar_client",
        profile: str = "default",
        client: Any = None,
    ) -> None:
        """Initialize the Redis store."""
        if client is None:
            try:
                from redis import Redis as RedisClient
            except ImportError:
                msg = "Redis backend requires the 'redis' package. Install with: pip install redis"
                raise ImportError(msg) from None
            client = RedisClient.from_url(redis_url, decode_responses=True)

        self._redis: Any = client
        self._key = f"{prefix}:credentials:{profile}"

    def load(self) -> CredentialRecord:
        """Load credentials from the Redis hash."""
        try:
            data = self._redis.hgetall(self._key)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Redis credential lookup failed: %s", exc)
            return CredentialRecord()
        return CredentialRecord.from_mapping(
            {_decode(k): _decode(v) for k, v in (data or {}).items()}
        )

    def write(self, record: CredentialRecord) -> None:
        """Replace the Redis hash in a single transaction."""
        mapping = record.to_mapping()
        try:
            pipe = self._redis.pipeline(transaction=True)
            pipe.delete(self._key)
            if mapping:
                pipe.hset(self._key, mapping=mapping)
            pipe.execute()
        except Exception as exc:
            raise CredentialStoreError(
                f"Failed to write credentials: {exc}",
                backend=self.backend_name,
            ) from exc

    def erase(self) -> None:
        """Delete the Redis hash."""
        try:
            self._redis.delete(self._key)
        except Exception:
            logger.exception("Failed to erase Redis credentials")


def _decode(value: Any) -> Any:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


def create_credential_store(settings: CredentialSettings) -> CredentialStore:
    """Build the credential store selected by ``settings.backend``.

    Parameters
    ----------
    settings : CredentialSettings
        Backend selection and backend options.

    Returns
    -------
    CredentialStore
        A configured credential store instance.
    """
    if settings.backend == "memory":
        return MemoryCredentialStore()
    if settings.backend == "keyring":
        return KeyringCredentialStore(service_name=settings.service_name, profile=settings.profile)
    if settings.backend == "redis":
        return RedisCredentialStore(
            redis_url=settings.redis_url,
            prefix=settings.prefix,
            profile=settings.profile,
        )
    if settings.backend == "file":
        path = settings.path
        if settings.profile != "default":
            path = path.with_name(f"{path.stem}.{settings.profile}{path.suffix}")
        return FileCredentialStore(path)

    msg = "Unknown credential store backend"
    raise ConfigurationError(msg, backend=settings.backend)
