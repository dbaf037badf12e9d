import logging
import os
import sys
from enum import Enum, StrEnum
from pathlib import Path
from typing import Any, TypeVar

import yaml
from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from searchsync.domain.index.model.delivery import DeliveryMode
from searchsync.domain.index.model.mapper import DatabaseParams
from searchsync.domain.shared.error import ConfigurationError

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)


class OperatingMode(StrEnum):
    """Where the search engine runs.

    MEMORY: in-process engine, nothing persisted (tests, demos).
    LOCAL: a single local node (one shard, no replicas).
    CLUSTER: a multi-node cluster (sniffing, three shards, three replicas).
    """

    LOCAL = "LOCAL"
    MEMORY = "MEMORY"
    CLUSTER = "CLUSTER"


def parse_enum(enum_cls: type[E], raw: Any, default: E, field: str) -> E:
    """Parse an enum value by name, case-insensitively.

    Unparseable values are a ConfigurationError, recovered here: the error is
    logged and ``default`` is returned. Configuration never aborts startup.
    """
    if raw is None or isinstance(raw, enum_cls):
        return raw if raw is not None else default
    try:
        return enum_cls[str(raw).strip().upper()]
    except KeyError:
        error = ConfigurationError(
            f"'{raw}' is not one of {[m.name for m in enum_cls]}", field=field
        )
    logger.error(f"Error! Using default {field} '{default.name}' : {error.message}")
    return default


# =============================================================================
# Section Configuration
# =============================================================================


class DeliveryConfig(BaseModel):
    """Index event delivery (nested in Config, uses env_nested_delimiter)."""

    mode: DeliveryMode = DeliveryMode.LOCAL
    workers: int = 4  # ASYNC: number of ordered worker queues
    max_retries: int = 3  # ASYNC/QUEUED: retries before an operation is dropped
    retry_backoff: float = 0.5  # Seconds, multiplied by the attempt number
    batch_size: int = 100  # QUEUED: operations per bulk call
    batch_timeout: float = 2.0  # QUEUED: max seconds an operation waits in the buffer

    @field_validator("mode", mode="before")
    @classmethod
    def _parse_mode(cls, value: Any) -> DeliveryMode:
        return parse_enum(DeliveryMode, value, DeliveryMode.LOCAL, "delivery mode")


class ElasticsearchConfig(BaseModel):
    """Elasticsearch connection (used in LOCAL and CLUSTER modes)."""

    hosts: list[str] = ["http://localhost:9200"]
    api_key: str | None = None
    request_timeout: float = 10.0
    index_prefix: str = ""  # Prepended to every type name to form the index name


class DatabaseConfig(BaseModel):
    """Host database parameters, forwarded to change feeds (rivers)."""

    driver: str | None = None  # SQLAlchemy drivername override, e.g. "postgresql+asyncpg"
    url: str | None = None
    user: str | None = None
    password: str | None = None

    def params(self) -> DatabaseParams | None:
        """Connection parameters for change feeds, or None if no database is configured."""
        if self.url is None:
            return None
        return DatabaseParams(
            driver=self.driver, url=self.url, user=self.user, password=self.password
        )


class DiscoveryConfig(BaseModel):
    """Which searchable domain types are indexed at startup."""

    include_modules: list[str] = []  # Module prefixes; empty means every module
    exclude: list[str] = []  # Fully qualified class names (test fixtures, samples)


class LoggingConfig(BaseModel):
    """Logging configuration (nested in Config, uses env_nested_delimiter)."""

    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"

    @property
    def file(self) -> str | None:
        """Get log file path from SEARCHSYNC_LOG_FILE env var."""
        return os.environ.get("SEARCHSYNC_LOG_FILE")


# =============================================================================
# Application Configuration
# =============================================================================


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """Load settings from YAML file specified by SEARCHSYNC_CONFIG_FILE env var."""

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        """Get the value for a field from the YAML config."""
        yaml_data = self._load_yaml_config()
        field_value = yaml_data.get(field_name)
        return field_value, field_name, False

    def __call__(self) -> dict[str, Any]:
        """Return all settings from YAML file."""
        return self._load_yaml_config()

    def _load_yaml_config(self) -> dict[str, Any]:
        """Load config from YAML file if specified."""
        config_file = os.environ.get("SEARCHSYNC_CONFIG_FILE")
        if config_file:
            path = Path(config_file)
            if path.exists():
                return yaml.safe_load(path.read_text()) or {}
        return {}


class Config(BaseSettings):
    mode: OperatingMode = OperatingMode.LOCAL
    cluster_name: str = "searchsync"
    delivery: DeliveryConfig = DeliveryConfig()
    elasticsearch: ElasticsearchConfig = ElasticsearchConfig()
    database: DatabaseConfig = DatabaseConfig()
    discovery: DiscoveryConfig = DiscoveryConfig()
    logging: LoggingConfig = LoggingConfig()

    model_config = {
        "env_prefix": "SEARCHSYNC_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_nested_delimiter": "__",  # Allows SEARCHSYNC_DELIVERY__MODE override
        "extra": "ignore",
    }

    @field_validator("mode", mode="before")
    @classmethod
    def _parse_mode(cls, value: Any) -> OperatingMode:
        return parse_enum(OperatingMode, value, OperatingMode.LOCAL, "mode")

    @field_validator("cluster_name", mode="before")
    @classmethod
    def _parse_cluster_name(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            logger.error(f"Error! Using default cluster name 'searchsync' : got {value!r}")
            return "searchsync"
        return value.strip()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources to include YAML config.

        Priority (highest to lowest):
        1. init_settings - values passed to Config()
        2. env_settings - environment variables
        3. dotenv_settings - .env file
        4. yaml_settings - SEARCHSYNC_CONFIG_FILE yaml
        5. file_secret_settings - secrets from files
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )


def configure_logging(config: LoggingConfig) -> None:
    """Configure Python logging based on config.

    Should be called once by the host application before the plugin starts.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(config.level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(config.format, datefmt=config.date_format)

    if config.file:
        log_path = Path(config.file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(log_path)
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(config.level)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("elastic_transport").setLevel(logging.WARNING)
    logging.getLogger("elasticsearch").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    logging.debug("Logging configured: level=%s, file=%s", config.level, config.file)
