# Runtime configuration for the chat functions.
#
# OpenAI env:
#   - OPENAI_API_KEY (required)
#   - OPENAI_MODEL (default gpt-4o-mini), OPENAI_CLASSIFIER_MODEL (defaults to OPENAI_MODEL)
#   - OPENAI_MAX_RETRIES (default 0; requests are never retried)
#
# Storage env (pick one auth path):
#   - AZURE_STORAGE_CONNECTION_STRING or BLOB_CONN (connection string), or
#   - STORAGE_ACCOUNT_NAME + SAS_TOKEN, or
#   - STORAGE_ACCOUNT_URL (uses DefaultAzureCredential / MSI)
#   plus: DATASETS_CONTAINER (default "datasets")
#
# Pipeline env:
#   - CONFIDENCE_THRESHOLD (0.4), REQUEST_TIMEOUT_SEC (25), CLASSIFY_TIMEOUT_SEC (10)
#   - MAX_LISTED_MATCHES (10)

import logging
import os
import re
import threading
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Mapping, Optional

from azure.core.credentials import AzureSasCredential
from azure.identity.aio import DefaultAzureCredential
from azure.storage.blob.aio import BlobServiceClient
from openai import AsyncOpenAI

from .errors import ConfigError

logger = logging.getLogger(__name__)

_ENV_LINE = re.compile(r"^\s*([A-Za-z_][A-Za-z0-9_]*)\s*(=|:)\s*(.*?)\s*$")


def load_local_env_file(env_path: str) -> None:
    """Copy KEY=value pairs from a local .env into os.environ (existing keys win)."""
    try:
        with open(env_path, "r", encoding="utf-8") as f:
            raw = f.read()
    except OSError:
        return

    for line in raw.splitlines():
        s = line.strip()
        if not s or s.startswith("#"):
            continue
        m = _ENV_LINE.match(s)
        if not m:
            continue
        key, _, value = m.groups()
        if key in os.environ:
            continue
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            value = value[1:-1]
        os.environ[key] = value


def _normalize_sas(token: Optional[str]) -> Optional[str]:
    if not token:
        return None
    t = token.strip()
    if t.startswith("?"):
        t = t[1:]
    return t or None


def _env(environ: Mapping[str, str], name: str, default: str = "") -> str:
    return (environ.get(name) or default).strip()


def _number(environ: Mapping[str, str], name: str, default, cast=float):
    raw = _env(environ, name)
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None


@dataclass(frozen=True)
class AppConfig:
    openai_api_key: str
    openai_model: str = "gpt-4o-mini"
    classifier_model: str = "gpt-4o-mini"
    openai_max_retries: int = 0
    storage_connection_string: Optional[str] = None
    storage_account_url: Optional[str] = None
    storage_sas_token: Optional[str] = None
    datasets_container: str = "datasets"
    confidence_threshold: float = 0.4
    request_timeout: float = 25.0
    classify_timeout: float = 10.0
    max_listed_matches: int = 10

    @property
    def storage_auth_mode(self) -> str:
        if self.storage_connection_string:
            return "connection string"
        if self.storage_sas_token:
            return "account + SAS"
        return "account URL (DefaultAzureCredential)"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AppConfig":
        """
        Validate the environment and build a config.

        Raises ConfigError naming the first problem found; nothing here
        talks to the network.
        """
        env = os.environ if environ is None else environ

        api_key = _env(env, "OPENAI_API_KEY")
        if not api_key:
            raise ConfigError("Missing required env var: OPENAI_API_KEY")

        conn = _env(env, "AZURE_STORAGE_CONNECTION_STRING") or _env(env, "BLOB_CONN")
        account_url = None
        sas = None
        if not conn:
            acct = _env(env, "STORAGE_ACCOUNT_NAME")
            sas = _normalize_sas(env.get("SAS_TOKEN"))
            if acct and sas:
                account_url = f"https://{acct}.blob.core.windows.net"
            else:
                sas = None
                account_url = _env(env, "STORAGE_ACCOUNT_URL") or None
            if not account_url:
                raise ConfigError(
                    "Missing storage auth: set AZURE_STORAGE_CONNECTION_STRING (or BLOB_CONN), "
                    "STORAGE_ACCOUNT_NAME+SAS_TOKEN, or STORAGE_ACCOUNT_URL"
                )

        threshold = _number(env, "CONFIDENCE_THRESHOLD", 0.4)
        if not 0.0 <= threshold <= 1.0:
            raise ConfigError(f"CONFIDENCE_THRESHOLD must be between 0 and 1, got {threshold}")
        request_timeout = _number(env, "REQUEST_TIMEOUT_SEC", 25.0)
        classify_timeout = _number(env, "CLASSIFY_TIMEOUT_SEC", 10.0)
        if request_timeout <= 0 or classify_timeout <= 0:
            raise ConfigError("REQUEST_TIMEOUT_SEC and CLASSIFY_TIMEOUT_SEC must be positive")
        max_listed = _number(env, "MAX_LISTED_MATCHES", 10, int)
        if max_listed < 1:
            raise ConfigError("MAX_LISTED_MATCHES must be at least 1")

        model = _env(env, "OPENAI_MODEL", "gpt-4o-mini")
        return cls(
            openai_api_key=api_key,
            openai_model=model,
            classifier_model=_env(env, "OPENAI_CLASSIFIER_MODEL", model),
            openai_max_retries=_number(env, "OPENAI_MAX_RETRIES", 0, int),
            storage_connection_string=conn or None,
            storage_account_url=account_url,
            storage_sas_token=sas,
            datasets_container=_env(env, "DATASETS_CONTAINER", "datasets"),
            confidence_threshold=threshold,
            request_timeout=request_timeout,
            classify_timeout=classify_timeout,
            max_listed_matches=max_listed,
        )


_config_lock = threading.Lock()
_config_cached: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Validated config for this process; failures are not cached."""
    global _config_cached
    if _config_cached is not None:
        return _config_cached

    with _config_lock:
        if _config_cached is None:
            _config_cached = AppConfig.from_env()
            logger.info("Config loaded (storage auth: %s)", _config_cached.storage_auth_mode)
    return _config_cached


def openai_client(config: AppConfig) -> AsyncOpenAI:
    return AsyncOpenAI(api_key=config.openai_api_key, max_retries=config.openai_max_retries)


@asynccontextmanager
async def open_container(config: AppConfig):
    """Yield an async container client for the datasets container, closing it afterwards."""
    credential = None
    if config.storage_connection_string:
        bsc = BlobServiceClient.from_connection_string(config.storage_connection_string)
    elif config.storage_sas_token:
        bsc = BlobServiceClient(
            account_url=config.storage_account_url,
            credential=AzureSasCredential(config.storage_sas_token),
        )
    else:
        credential = DefaultAzureCredential()
        bsc = BlobServiceClient(account_url=config.storage_account_url, credential=credential)

    try:
        async with bsc:
            yield bsc.get_container_client(config.datasets_container)
    finally:
        if credential is not None:
            await credential.close()
