"""
Configuration for a sync run.

Loads the service-account credentials file and combines it with the
source table and destination collection settings. Everything is
validated here so a bad setup fails before any client touches Firestore.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from google.oauth2 import service_account

from .retry import RetryPolicy

DEFAULT_CREDENTIALS_FILE = "bigquery-firestore-sync.json"
DEFAULT_DATASET = "testdataset"
DEFAULT_TABLE = "nps_data_final"
DEFAULT_COLLECTION = "nps-data"
DEFAULT_CHUNK_SIZE = 5000  # docs per BulkWriter session
DEFAULT_DELETE_BATCH_SIZE = 500

# Firestore rejects batched writes with more operations than this
MAX_BATCH_SIZE = 500

REQUIRED_CREDENTIAL_FIELDS = ["project_id", "client_email", "private_key"]


class ConfigError(Exception):
    """Raised when the credentials file or settings are unusable."""
    pass


@dataclass(frozen=True)
class ServiceAccount:
    project_id: str
    client_email: str
    private_key: str = field(repr=False)
    info: Dict[str, Any] = field(repr=False, compare=False)

    def credentials(self) -> service_account.Credentials:
        return service_account.Credentials.from_service_account_info(self.info)


@dataclass(frozen=True)
class SyncConfig:
    """Settings for one sync run. Built once at startup by load_config."""

    service_account: ServiceAccount
    dataset: str = DEFAULT_DATASET
    table: str = DEFAULT_TABLE
    collection: str = DEFAULT_COLLECTION
    chunk_size: int = DEFAULT_CHUNK_SIZE
    delete_batch_size: int = DEFAULT_DELETE_BATCH_SIZE
    write_retry: RetryPolicy = field(default_factory=RetryPolicy)

    def __post_init__(self):
        for name in ("dataset", "table", "collection"):
            if not _is_non_empty_str(getattr(self, name)):
                raise ConfigError(f"Setting '{name}' must be a non-empty string")
        if self.chunk_size < 1:
            raise ConfigError(f"chunk_size must be at least 1, got {self.chunk_size}")
        if not 1 <= self.delete_batch_size <= MAX_BATCH_SIZE:
            raise ConfigError(
                f"delete_batch_size must be between 1 and {MAX_BATCH_SIZE}, "
                f"got {self.delete_batch_size}"
            )

    @property
    def project_id(self) -> str:
        return self.service_account.project_id

    @property
    def table_ref(self) -> str:
        return f"{self.project_id}.{self.dataset}.{self.table}"

    @property
    def query(self) -> str:
        return f"SELECT * FROM `{self.table_ref}`"


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def load_service_account(path: Path) -> ServiceAccount:
    """
    Read a Google service-account JSON file.

    Raises:
        ConfigError: If the file is missing, not JSON, or lacks a required field
    """
    if not path.exists():
        raise ConfigError(f"Credentials file not found: {path}")
    try:
        with path.open("r", encoding="utf-8") as f:
            info = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Credentials file is not valid JSON: {path} ({e})") from e
    except OSError as e:
        raise ConfigError(f"Cannot read credentials file: {path} ({e})") from e

    if not isinstance(info, dict):
        raise ConfigError(f"Credentials file must contain a JSON object: {path}")

    missing = [f for f in REQUIRED_CREDENTIAL_FIELDS if not _is_non_empty_str(info.get(f))]
    if missing:
        raise ConfigError(
            f"Credentials file {path} is missing required fields: {', '.join(missing)}"
        )

    return ServiceAccount(
        project_id=info["project_id"],
        client_email=info["client_email"],
        private_key=info["private_key"],
        info=info,
    )


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


def load_config(
    credentials_path: Optional[Path] = None,
    dataset: Optional[str] = None,
    table: Optional[str] = None,
    collection: Optional[str] = None,
    chunk_size: Optional[int] = None,
    delete_batch_size: Optional[int] = None,
    max_write_attempts: Optional[int] = None,
    backoff: Optional[str] = None,
) -> SyncConfig:
    """
    Build the run configuration.

    Explicit arguments win over BQSYNC_* environment variables, which win
    over the built-in defaults.

    Raises:
        ConfigError: On any missing or invalid setting
    """
    if credentials_path is None:
        credentials_path = Path(os.getenv("BQSYNC_CREDENTIALS") or DEFAULT_CREDENTIALS_FILE)

    account = load_service_account(Path(credentials_path))

    if max_write_attempts is None:
        max_write_attempts = _env_int("BQSYNC_MAX_WRITE_ATTEMPTS")
    try:
        retry_policy = RetryPolicy(
            max_attempts=max_write_attempts if max_write_attempts is not None else 15,
            backoff=backoff or os.getenv("BQSYNC_BACKOFF") or "exponential",
        )
    except ValueError as e:
        raise ConfigError(str(e)) from e

    if chunk_size is None:
        chunk_size = _env_int("BQSYNC_CHUNK_SIZE")
    if delete_batch_size is None:
        delete_batch_size = _env_int("BQSYNC_DELETE_BATCH_SIZE")

    return SyncConfig(
        service_account=account,
        dataset=dataset or os.getenv("BQSYNC_DATASET") or DEFAULT_DATASET,
        table=table or os.getenv("BQSYNC_TABLE") or DEFAULT_TABLE,
        collection=collection or os.getenv("BQSYNC_COLLECTION") or DEFAULT_COLLECTION,
        chunk_size=chunk_size if chunk_size is not None else DEFAULT_CHUNK_SIZE,
        delete_batch_size=(
            delete_batch_size if delete_batch_size is not None else DEFAULT_DELETE_BATCH_SIZE
        ),
        write_retry=retry_policy,
    )
