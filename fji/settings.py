"""Settings resolution with profile support, plus the TOML-backed settings store."""

import os
from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path

import tomlkit
import typer
from pydantic import SecretStr
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

CONFIG_PATH = Path.home() / ".config" / "fji" / "config.toml"

DEFAULT_INSERT_TEMPLATE = "[{key}: {summary}]({url})"

REQUIRED_FIELDS = ("tracker_url", "username", "api_token", "project_key")


class FjiSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="FJI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    default_tracker: str | None = None  # profile name

    # Jira
    tracker_url: str | None = None  # https://your-domain.atlassian.net
    username: str | None = None  # account email
    api_token: SecretStr | None = None
    project_key: str | None = None  # ABC

    insert_format_template: str = DEFAULT_INSERT_TEMPLATE

    # Search tuning
    max_results: int = 20
    debounce_ms: int = 300
    status_cache_ttl: float = 3600.0  # seconds

    log_level: str = "WARNING"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Profile values arrive as init kwargs; env vars and .env win over them.
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    @property
    def base_url(self) -> str:
        return (self.tracker_url or "").rstrip("/")

    def missing_fields(self) -> list[str]:
        return [name for name in REQUIRED_FIELDS if not getattr(self, name)]


@lru_cache(maxsize=1)
def _load_toml() -> tomlkit.TOMLDocument:
    """Load ~/.config/fji/config.toml, returning empty document if missing."""
    if not CONFIG_PATH.exists():
        return tomlkit.document()
    return tomlkit.load(CONFIG_PATH.open())


def _list_profiles(config: Mapping) -> list[str]:
    # tomlkit Table implements MutableMapping but not dict, so check Mapping
    return [k for k, v in config.items() if isinstance(v, Mapping)]


def get_settings(tracker: str | None = None) -> FjiSettings:
    """Resolve the active profile and return a fully populated FjiSettings.

    Precedence (highest to lowest):
    1. tracker argument (--tracker CLI flag)
    2. FJI_DEFAULT_TRACKER env var
    3. default_tracker key in ~/.config/fji/config.toml
    4. First profile defined in ~/.config/fji/config.toml

    Environment variables (and .env) always override values from the profile.
    """
    toml_config = _load_toml()

    active = (
        tracker
        or os.environ.get("FJI_DEFAULT_TRACKER")
        or toml_config.get("default_tracker")
        or ((_profiles := _list_profiles(toml_config)) and _profiles[0] or None)
    )

    profile_defaults: dict = {}
    if active:
        if active in toml_config and isinstance(toml_config[active], Mapping):
            profile_defaults = dict(toml_config[active])
        else:
            profiles = _list_profiles(toml_config)
            typer.echo(f"Profile '{active}' not found in {CONFIG_PATH}. Available: {profiles or '(none)'}")
            raise typer.Exit(1)

    settings = FjiSettings(**profile_defaults)

    missing = settings.missing_fields()
    if missing:
        env_names = ", ".join(f"FJI_{name.upper()}" for name in missing)
        typer.echo(
            f"Missing Jira settings: {', '.join(missing)}. Set {env_names} or add them "
            f"to the [{active or 'profile'}] section of {CONFIG_PATH}, or run: fji init"
        )
        raise typer.Exit(1)

    return settings


def save_profile(name: str, values: Mapping, make_default: bool = False) -> Path:
    """Write a profile block into the config file, preserving existing comments."""
    CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    doc = tomlkit.load(CONFIG_PATH.open()) if CONFIG_PATH.exists() else tomlkit.document()

    doc[name] = dict(values)
    if make_default:
        doc["default_tracker"] = name

    CONFIG_PATH.write_text(tomlkit.dumps(doc))
    _load_toml.cache_clear()
    return CONFIG_PATH


def set_default_profile(name: str) -> Path:
    """Point default_tracker at an existing profile. Exits if the profile is unknown."""
    if not CONFIG_PATH.exists():
        CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
        doc = tomlkit.document()
        doc.add("default_tracker", name)
        CONFIG_PATH.write_text(tomlkit.dumps(doc))
        _load_toml.cache_clear()
        return CONFIG_PATH

    doc = tomlkit.load(CONFIG_PATH.open())
    profiles = _list_profiles(doc)
    if name not in profiles:
        typer.echo(f"Profile '{name}' not found in {CONFIG_PATH}. Available: {profiles or '(none)'}")
        raise typer.Exit(1)

    doc["default_tracker"] = name
    CONFIG_PATH.write_text(tomlkit.dumps(doc))
    _load_toml.cache_clear()
    return CONFIG_PATH
