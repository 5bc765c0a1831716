import logging
import os
from pathlib import Path
from typing import Annotated, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from .cron import ScheduleSpec, build_schedule
from .dns.cloudflare import CLOUDFLARE_API_BASE_URL
from .dns.types import ReconcileSettings, ReconciliationTarget, RecordType
from .system import get_host_identifier

_CONFIG_PATH = os.getenv("CF_DDNS_CONFIG", "config.toml")
_ENV_PATH = os.getenv("ENV_FILE", ".env")


def parse_targets(
    record_names: str, default_type: RecordType = RecordType.A
) -> list[ReconciliationTarget]:
    """
    Parse a comma separated list of domain names into targets.

    An entry may carry its own record type, e.g. ``v6.example.com:AAAA``.
    Empty entries are ignored and duplicates keep their first position.

    Raises:
        ValueError: If an entry names an unsupported record type
    """
    targets: list[ReconciliationTarget] = []
    for entry in record_names.split(","):
        entry = entry.strip()
        if not entry:
            continue

        name, _, type_suffix = entry.partition(":")
        name = name.strip().rstrip(".").lower()
        if not name:
            raise ValueError(f"Missing domain name in entry '{entry}'")

        if type_suffix:
            try:
                record_type = RecordType(type_suffix.strip().upper())
            except ValueError:
                raise ValueError(
                    f"Unsupported record type '{type_suffix}' in entry '{entry}'"
                ) from None
        else:
            record_type = default_type

        target = ReconciliationTarget(domain_name=name, record_type=record_type)
        if target not in targets:
            targets.append(target)

    return targets


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        toml_file=_CONFIG_PATH,
        env_file=_ENV_PATH,
        env_ignore_empty=True,
        extra="ignore",
    )

    # Cloudflare API
    cf_api_token: SecretStr
    cf_zone_id: str
    cf_api_base_url: str = CLOUDFLARE_API_BASE_URL
    api_timeout: Annotated[float, Field(gt=0)] = 30
    discovery_timeout: Annotated[float, Field(gt=0)] = 5

    # DNS records
    dns_record_name: str
    dns_record_type: RecordType = RecordType.A
    proxy: bool = False
    ttl: Annotated[int, Field(ge=1, le=86400)] = 120

    # Scheduling, exactly one of update_interval / update_cron
    update_interval: Optional[Annotated[float, Field(gt=0)]] = None
    update_cron: Optional[str] = None
    run_on_start: bool = True
    tz_name: str = "UTC"

    # Informational
    network: Optional[str] = None
    platform_identifier: str = Field(default_factory=get_host_identifier)

    log_level: str = "INFO"
    logs_dir: Optional[Path] = None

    @field_validator("dns_record_type", mode="before")
    @classmethod
    def _normalize_record_type(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("dns_record_name")
    @classmethod
    def _validate_record_names(cls, value: str) -> str:
        if not parse_targets(value):
            raise ValueError("No valid domain names found in DNS_RECORD_NAME")
        return value

    @field_validator("tz_name")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        value = value.strip()
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError, OSError) as e:
            raise ValueError(f"Unknown timezone '{value}'") from e
        return value

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        value = value.strip().upper()
        if not isinstance(logging.getLevelName(value), int):
            raise ValueError(f"Unknown log level '{value}'")
        return value

    @field_validator("cf_zone_id")
    @classmethod
    def _validate_zone_id(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("CF_ZONE_ID must be set")
        return value.strip()

    @field_validator("cf_api_token")
    @classmethod
    def _validate_api_token(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().strip():
            raise ValueError("CF_API_TOKEN must be set")
        return value

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Source order: init args (CLI) > OS env > .env > config.toml > secrets
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    def targets(self) -> list[ReconciliationTarget]:
        return parse_targets(self.dns_record_name, self.dns_record_type)

    def reconcile_settings(self) -> ReconcileSettings:
        return ReconcileSettings(
            zone_id=self.cf_zone_id,
            api_token=self.cf_api_token.get_secret_value(),
            ttl=self.ttl,
            proxied=self.proxy,
        )

    def schedule(self) -> ScheduleSpec:
        """
        Raises:
            ConfigurationConflict: If neither or both scheduling modes are set
        """
        return build_schedule(self.update_interval, self.update_cron, self.tz_name)
