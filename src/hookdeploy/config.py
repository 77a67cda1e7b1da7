"""Configuration models and loading for hookdeploy.

Module settings live in a YAML file (``hookdeploy.yaml``). Application configs
are validated with the same pydantic models whether they come from that file,
from the configuration store or from the management API. Keys used by the
older pm2 module config (``service``, ``nopm2``, ``testCmd``...) are accepted
as aliases.
"""

from __future__ import annotations

import os
from enum import StrEnum
from pathlib import Path
from typing import Any

import yaml
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

CONFIG_FILE_NAME = "hookdeploy.yaml"
WILDCARD_BRANCH = "*"


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""


class Provider(StrEnum):
    """Webhook providers with an authentication strategy."""

    GITHUB = "github"
    GITLAB = "gitlab"
    JENKINS = "jenkins"
    DRONECI = "droneci"
    BITBUCKET = "bitbucket"


class TestConfig(BaseModel):
    """Test settings for an application."""

    __test__ = False

    model_config = ConfigDict(frozen=True, extra="ignore")

    command: str | None = Field(default=None, validation_alias=AliasChoices("command", "testCmd"))
    last_good_commit: str | None = Field(
        default=None, validation_alias=AliasChoices("last_good_commit", "lastGoodCommit")
    )
    deploy_on_failure: bool = Field(
        default=False, validation_alias=AliasChoices("deploy_on_failure", "deployAnyway")
    )
    token: str | None = Field(default=None, validation_alias=AliasChoices("token", "githubToken"))


class ApplicationConfig(BaseModel):
    """Configuration of one managed application (or one branch variant of it)."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(..., min_length=1)
    secret: str = ""
    provider: Provider = Field(
        default=Provider.GITHUB, validation_alias=AliasChoices("provider", "service")
    )
    cwd: str | None = None
    prehook: str | None = Field(default=None, validation_alias=AliasChoices("prehook", "pre_hook"))
    posthook: str | None = Field(
        default=None, validation_alias=AliasChoices("posthook", "post_hook")
    )
    skip_reload: bool = Field(default=False, validation_alias=AliasChoices("skip_reload", "nopm2"))
    branch: str | None = None
    branches: list[str] = Field(default_factory=list)
    tests: TestConfig | None = None
    notify_channel: str | None = Field(
        default=None,
        validation_alias=AliasChoices("notify_channel", "slack_channel", "slackChannel"),
    )
    process_name: str | None = Field(
        default=None, validation_alias=AliasChoices("process_name", "pm2App")
    )
    debug: bool = False

    @field_validator("provider", mode="before")
    @classmethod
    def _unknown_provider_is_github(cls, value: Any) -> Any:
        # Anything unrecognised is handled like a GitHub hook
        if value is None or str(value).lower() not in {p.value for p in Provider}:
            return Provider.GITHUB
        return str(value).lower()

    @property
    def has_tests(self) -> bool:
        return self.tests is not None and bool(self.tests.command)

    @property
    def accepts_any_branch(self) -> bool:
        return WILDCARD_BRANCH in self.branches

    def masked(self) -> dict[str, Any]:
        """Dump the config with secrets blanked, for display."""
        data = self.model_dump(mode="json")
        if data.get("secret"):
            data["secret"] = "********"
        if data.get("tests") and data["tests"].get("token"):
            data["tests"]["token"] = "********"
        return data


class Settings(BaseModel):
    """Module-wide settings."""

    model_config = ConfigDict(extra="ignore")

    host: str = "http://127.0.0.1"
    port: int = Field(default=8888, ge=1, le=65535)
    bind_host: str = "0.0.0.0"
    bind_retries: int = Field(default=2, ge=0)
    bind_retry_delay: float = Field(default=3.0, ge=0)
    slack_webhook: str | None = Field(
        default=None, validation_alias=AliasChoices("slack_webhook", "slackWebhook")
    )
    slack_channel: str | None = Field(
        default=None, validation_alias=AliasChoices("slack_channel", "slackChannel")
    )
    data_dir: str = Field(default="./tmp", validation_alias=AliasChoices("data_dir", "dataDir"))
    db_path: str | None = None
    auth_name: str = Field(default="admin", validation_alias=AliasChoices("auth_name", "authName"))
    auth_password: str = Field(
        default="", validation_alias=AliasChoices("auth_password", "authPassword")
    )
    log_dir: str | None = Field(default=None, validation_alias=AliasChoices("log_dir", "logDir"))
    log_level: str | None = Field(
        default=None, validation_alias=AliasChoices("log_level", "logLevel")
    )
    default_branch: str = "master"
    coverage_threshold: float = 90.0
    apps: dict[str, ApplicationConfig] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _name_apps_from_keys(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("apps"), dict):
            apps = {}
            for name, app in data["apps"].items():
                app = dict(app or {})
                app.setdefault("name", name)
                apps[name] = app
            data = {**data, "apps": apps}
        return data

    @property
    def database_path(self) -> str:
        if self.db_path:
            return self.db_path
        return str(Path(self.data_dir) / "hookdeploy.db")


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load module settings from a YAML file.

    Args:
        config_path: Path to hookdeploy.yaml. When None, HOOKDEPLOY_CONFIG is
            used, then the file is searched for from the current directory.
            If nothing is found, defaults are returned.

    Returns:
        Validated settings.

    Raises:
        ConfigError: If the file is unreadable or invalid.
    """
    if config_path is None:
        config_path = os.environ.get("HOOKDEPLOY_CONFIG")
    if config_path is None:
        try:
            config_path = find_config()
        except ConfigError:
            return _apply_env(Settings())

    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Configuration must be a YAML mapping, got {type(data).__name__}")

    try:
        settings = Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_path}: {e}") from e
    return _apply_env(settings)


def find_config(start_path: Path | str | None = None) -> Path:
    """Find hookdeploy.yaml by walking up the directory tree.

    Raises:
        ConfigError: If no config file is found.
    """
    current = Path.cwd() if start_path is None else Path(start_path)
    current = current.resolve()

    while True:
        candidate = current / CONFIG_FILE_NAME
        if candidate.exists():
            return candidate
        if current.parent == current:
            break
        current = current.parent

    raise ConfigError(f"No {CONFIG_FILE_NAME} found in current directory or parents")


def _apply_env(settings: Settings) -> Settings:
    webhook = os.environ.get("SLACK_WEBHOOK_URL")
    if webhook:
        return settings.model_copy(update={"slack_webhook": webhook})
    return settings
