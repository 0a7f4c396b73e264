"""Settings and configuration management using Pydantic."""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Literal, Tuple, Type

import yaml
from pydantic import Field, field_validator, model_validator
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from queuecast.logging.config import get_logger

logger = get_logger(__name__)

CONFIG_FILE = Path("queuecast.yaml")


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """
    Settings source that loads values from ``queuecast.yaml`` in the
    current working directory.
    """

    def _load(self) -> Dict[str, Any]:
        if not CONFIG_FILE.exists():
            return {}

        encoding = self.config.get("env_file_encoding")
        try:
            content = yaml.safe_load(CONFIG_FILE.read_text(encoding))
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to load {CONFIG_FILE}: {e}")
            return {}

        if not isinstance(content, dict):
            logger.warning(f"Ignoring {CONFIG_FILE}: top level is not a mapping")
            return {}
        return content

    def get_field_value(
        self, field: FieldInfo, field_name: str
    ) -> Tuple[Any, str, bool]:
        return self._load().get(field_name), field_name, False

    def __call__(self) -> Dict[str, Any]:
        return {
            key: value
            for key, value in self._load().items()
            if key in self.settings_cls.model_fields
        }


class Settings(BaseSettings):
    """queuecast configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="QUEUECAST_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    # Discovery
    discovery_timeout: float = Field(
        default=3.0,
        gt=0,
        description="Seconds to collect SSDP replies",
    )
    ssdp_mx: int = Field(
        default=2,
        ge=1,
        le=5,
        description="MX response window advertised in M-SEARCH",
    )
    search_target: str = Field(
        default="urn:schemas-upnp-org:service:AVTransport:1",
        description="SSDP search target",
    )

    # Renderer control
    http_timeout: float = Field(
        default=5.0,
        gt=0,
        description="Timeout for every HTTP round-trip (descriptor, SOAP, room service)",
    )
    control_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Extra attempts for a control exchange that hit a network error",
    )
    control_backoff: float = Field(
        default=0.5,
        ge=0,
        description="Initial backoff in seconds, doubled per retry",
    )

    # Synchronization
    poll_interval: float = Field(
        default=2.0,
        gt=0,
        description="Seconds between room state fetches",
    )
    status_interval: float = Field(
        default=1.0,
        gt=0,
        description="Seconds between renderer transport status queries",
    )
    recovery_interval: float = Field(
        default=5.0,
        gt=0,
        description="Seconds between recovery attempts after device loss",
    )
    max_recovery_attempts: int = Field(
        default=5,
        ge=1,
        description="Recovery attempts before the device is declared lost",
    )
    near_end_seconds: float = Field(
        default=0.0,
        ge=0,
        description="Advance when this little playback time remains (0 disables)",
    )

    # Room service
    room_state_path: str = Field(
        default="/api/rooms/{room_id}",
        description="Path template for fetching room state",
    )
    room_advance_path: str = Field(
        default="/api/rooms/{room_id}/next",
        description="Path template for requesting the next track",
    )
    user_agent: str = Field(
        default="queuecast/0.1 UPnP/1.0 DLNADOC/1.50",
        description="User-Agent sent to renderers and the room service",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_file: Path = Field(
        default=Path("~/.local/state/queuecast/queuecast.log"),
        description="Log file path, used when log_to_file is enabled",
    )
    log_to_file: bool = Field(
        default=False,
        description="Write a persistent log file",
    )

    # Development
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    @field_validator("log_file", mode="before")
    @classmethod
    def expand_path(cls, v: str | Path) -> Path:
        """Expand environment variables and user paths."""
        if isinstance(v, str):
            v = os.path.expandvars(os.path.expanduser(v))
        return Path(v).expanduser()

    @field_validator("room_state_path", "room_advance_path")
    @classmethod
    def validate_path_template(cls, v: str) -> str:
        """Room paths must be absolute and mention the room id."""
        if not v.startswith("/"):
            raise ValueError("Path template must start with '/'")
        if "{room_id}" not in v:
            raise ValueError("Path template must contain '{room_id}'")
        return v

    @model_validator(mode="after")
    def check_mx_fits_timeout(self) -> "Settings":
        """Devices answer within MX seconds, so MX must not outlast the search."""
        if self.ssdp_mx > self.discovery_timeout:
            self.ssdp_mx = max(1, int(self.discovery_timeout))
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
