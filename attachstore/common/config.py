from __future__ import annotations

import os
import re
import threading
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping, Protocol

import yaml

from attachstore.infra.storage.client import StorageError

ENV_FILE = Path(".env")

CONFIG_PATH_ENV = "ATTACHSTORE_CONFIG"
ENVIRONMENT_ENV = "ATTACHSTORE_ENV"
DEFAULT_CONFIG_PATH = Path("config") / "s3.yml"
DEFAULT_ENVIRONMENT = "development"
DEFAULT_REGION = "us-east-1"
ADDRESSING_STYLES = ("auto", "virtual", "path")

_DURATION_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([smhd]?)\s*$", re.IGNORECASE)
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


class ConfigError(StorageError):
    """Raised when storage configuration is missing, unreadable or malformed."""


class ConfigSource(Protocol):
    """Yields the storage settings mapping for the current deployment."""

    def read(self) -> Mapping[str, Any]: ...


def _load_env_file() -> None:
    if not ENV_FILE.exists():
        return
    for raw_line in ENV_FILE.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "t", "yes", "y", "on"}


def parse_duration(value: Any) -> int | None:
    """Normalise a duration to whole seconds.

    Accepts seconds as int/float, ``timedelta``, or strings like ``"3600"``,
    ``"15m"``, ``"1h"`` and ``"7d"``. ``None`` and ``""`` mean "not set".
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ConfigError(f"Invalid duration: {value!r}")
    if isinstance(value, timedelta):
        seconds = value.total_seconds()
    elif isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, str):
        match = _DURATION_PATTERN.match(value)
        if not match:
            raise ConfigError(f"Invalid duration: {value!r}")
        seconds = float(match.group(1)) * _DURATION_UNITS[match.group(2).lower()]
    else:
        raise ConfigError(f"Invalid duration: {value!r}")
    if seconds <= 0:
        raise ConfigError(f"Duration must be positive: {value!r}")
    return int(seconds)


class YamlConfigSource:
    """Per-environment settings from a YAML file.

    The file's top-level keys are environment names. ``${VAR}`` references are
    expanded from the process environment before parsing, so secrets can stay
    out of the file::

        production:
          access_key_id: ${S3_ACCESS_KEY_ID}
          secret_access_key: ${S3_SECRET_ACCESS_KEY}
          bucket: files
          private: true
          expires: 1h
    """

    def __init__(self, path: str | Path, environment: str) -> None:
        self.path = Path(path)
        self.environment = environment

    def read(self) -> Mapping[str, Any]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Cannot read storage config {self.path}: {exc}") from exc
        try:
            document = yaml.safe_load(os.path.expandvars(raw))
        except yaml.YAMLError as exc:
            raise ConfigError(f"Malformed storage config {self.path}: {exc}") from exc

        if not isinstance(document, dict):
            raise ConfigError(f"Storage config {self.path} must be a mapping")
        section = document.get(self.environment)
        if not isinstance(section, dict):
            raise ConfigError(
                f"Storage config {self.path} has no section for '{self.environment}'"
            )
        return section


class EnvConfigSource:
    """Settings from ``S3_*`` environment variables (and a local ``.env`` file)."""

    KEYS = (
        "access_key_id",
        "secret_access_key",
        "bucket",
        "endpoint",
        "private",
        "expires",
        "secure",
        "region",
        "addressing_style",
    )

    def __init__(self, prefix: str = "S3_") -> None:
        self.prefix = prefix

    def read(self) -> Mapping[str, Any]:
        _load_env_file()
        values: dict[str, Any] = {}
        for key in self.KEYS:
            raw = os.environ.get(f"{self.prefix}{key.upper()}")
            if raw is not None and raw.strip():
                values[key] = raw.strip()
        return values


def default_config_source() -> ConfigSource:
    path = Path(os.environ.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH)
    if path.exists():
        environment = os.environ.get(ENVIRONMENT_ENV) or DEFAULT_ENVIRONMENT
        return YamlConfigSource(path, environment)
    return EnvConfigSource()


@dataclass(frozen=True, slots=True)
class PublicAccess:
    """Objects are world-readable and served from stable URLs."""

    secure: bool


@dataclass(frozen=True, slots=True)
class PrivateAccess:
    """Objects are private and served through time-limited signed URLs."""

    secure: bool
    expires: int | None = None


AccessPolicy = PublicAccess | PrivateAccess


class ConnectionConfig:
    """Lazily loaded storage connection settings.

    Fields passed to the constructor are kept as-is; anything left unset is
    read from ``source`` the first time it is asked for. Loading is guarded by
    a lock so concurrent first readers populate the record once.
    """

    def __init__(
        self,
        *,
        source: ConfigSource | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        bucket: str | None = None,
        endpoint: str | None = None,
        private: bool | None = None,
        expires: Any = None,
        secure: bool | None = None,
        region: str | None = None,
        addressing_style: str | None = None,
    ) -> None:
        self._source = source
        self._lock = threading.Lock()
        self._source_read = False
        self._access_key_id = access_key_id
        self._secret_access_key = secret_access_key
        self._bucket = bucket
        self._endpoint = endpoint
        self._private = private
        self._expires = parse_duration(expires)
        self._secure = secure
        self._region = region
        self._addressing_style = addressing_style

    def __repr__(self) -> str:
        return (
            f"ConnectionConfig(bucket={self._bucket!r}, endpoint={self._endpoint!r}, "
            f"private={self._private!r}, secure={self._secure!r})"
        )

    def has_credentials(self) -> bool:
        return bool(self._access_key_id and self._secret_access_key)

    def load(self, *, force: bool = False) -> None:
        """Populate settings from the config source.

        A no-op once credentials are present, unless ``force`` is set.

        Raises:
            ConfigError: If there is no source, or it is unreadable or malformed.
        """
        with self._lock:
            if self.has_credentials() and not force:
                return
            self._populate()

    def _populate(self) -> None:
        if self._source is None:
            raise ConfigError("No storage configuration source available")
        values = self._source.read()
        if not isinstance(values, Mapping):
            raise ConfigError("Storage configuration must be a mapping")

        self._access_key_id = values.get("access_key_id") or self._access_key_id
        self._secret_access_key = (
            values.get("secret_access_key") or self._secret_access_key
        )
        self._bucket = values.get("bucket") or self._bucket
        self._endpoint = values.get("endpoint") or self._endpoint
        if "private" in values:
            self._private = _as_bool(values["private"], False)
        if "secure" in values:
            self._secure = _as_bool(values["secure"], False)
        if values.get("expires") not in (None, ""):
            self._expires = parse_duration(values["expires"])
        self._region = values.get("region") or self._region
        self._addressing_style = values.get("addressing_style") or self._addressing_style
        self._source_read = True

    def _fill(self, value: Any) -> None:
        # Optional fields load at most once; a missing key in the source stays missing.
        if value is None and not self._source_read and self._source is not None:
            with self._lock:
                if not self._source_read:
                    self._populate()

    def access_key_id(self) -> str | None:
        self._fill(self._access_key_id)
        return self._access_key_id

    def secret_access_key(self) -> str | None:
        self._fill(self._secret_access_key)
        return self._secret_access_key

    def bucket(self) -> str | None:
        self._fill(self._bucket)
        return self._bucket

    def endpoint(self) -> str | None:
        self._fill(self._endpoint)
        return self._endpoint

    def expires(self) -> int | None:
        self._fill(self._expires)
        return self._expires

    def is_private(self) -> bool:
        self._fill(self._private)
        return bool(self._private)

    def is_secure(self) -> bool:
        self._fill(self._secure)
        return bool(self._secure)

    def region(self) -> str:
        self._fill(self._region)
        return self._region or DEFAULT_REGION

    def addressing_style(self) -> str:
        self._fill(self._addressing_style)
        style = (self._addressing_style or "auto").strip().lower()
        if style not in ADDRESSING_STYLES:
            raise ConfigError(f"Unsupported addressing style: {style}")
        return style

    def access_policy(self) -> AccessPolicy:
        if self.is_private():
            return PrivateAccess(secure=self.is_secure(), expires=self.expires())
        return PublicAccess(secure=self.is_secure())

    def require_remote_settings(self) -> None:
        """Fail unless credentials and bucket are usable for a remote call."""
        if not self.has_credentials():
            self.load()
        if not self.access_key_id() or not self.secret_access_key():
            raise ConfigError("access_key_id and secret_access_key are required")
        if not self.bucket():
            raise ConfigError("bucket is required")


@lru_cache(maxsize=1)
def get_connection_config() -> ConnectionConfig:
    return ConnectionConfig(source=default_config_source())
