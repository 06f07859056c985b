"""Configuration helpers for the Confluence CLI."""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, HttpUrl, ValidationError, model_validator

from .replication.models import DEFAULT_COPY_SUFFIX, DEFAULT_DELAY_MS, DEFAULT_MAX_DEPTH


class ConfigError(RuntimeError):
    """Raised when no usable configuration can be assembled."""


class ConfluenceCredentials(BaseModel):
    """Connection information for the Confluence REST API."""

    base_url: HttpUrl = Field(..., description="Base URL of the Confluence instance")
    api_token: str = Field(..., description="API token or personal access token")
    email: Optional[str] = Field(None, description="Account email used with basic authentication")
    auth_type: Optional[Literal["basic", "bearer"]] = Field(
        None, description="Authentication scheme; inferred from the presence of an email when omitted"
    )

    @model_validator(mode="after")
    def _normalize_auth_type(self) -> "ConfluenceCredentials":
        if self.auth_type is None:
            self.auth_type = "basic" if self.email else "bearer"
        if self.auth_type == "basic" and not self.email:
            raise ValueError("Basic authentication requires an email address")
        return self


class CopyDefaults(BaseModel):
    """Default policy for copy-tree operations."""

    max_depth: int = Field(DEFAULT_MAX_DEPTH, ge=0, description="Levels below the root to copy")
    delay_ms: int = Field(DEFAULT_DELAY_MS, ge=0, description="Pause between sibling page creations")
    copy_suffix: str = Field(DEFAULT_COPY_SUFFIX, description="Suffix appended to the copied root title")
    exclude: list[str] = Field(default_factory=list, description="Title patterns always excluded")


class ConfluenceConfig(BaseModel):
    """Aggregate configuration for the CLI."""

    credentials: ConfluenceCredentials
    copy_defaults: CopyDefaults = Field(default_factory=CopyDefaults, alias="copy")

    model_config = {"populate_by_name": True}


ENV_PREFIX = "CONFLUENCE"
DEFAULT_CONFIG_PATHS = (
    Path.cwd() / "confluence-cli.toml",
    Path.home() / ".config" / "confluence-cli" / "config.toml",
)


@dataclasses.dataclass
class ConfigSource:
    """Result of attempting to resolve configuration data."""

    config: Optional[ConfluenceConfig]
    path: Optional[Path]
    error: Optional[Exception]


def _normalize_base_url(value: str) -> str:
    value = value.strip()
    if "://" not in value:
        value = "https://" + value
    return value


def _load_from_env() -> dict[str, object]:
    """Return credential values extracted from ``CONFLUENCE_*`` environment variables."""

    def _get(name: str) -> Optional[str]:
        value = os.getenv(f"{ENV_PREFIX}_{name}")
        return value.strip() if value and value.strip() else None

    base_url = _get("BASE_URL") or _get("DOMAIN") or _get("HOST")
    api_token = _get("API_TOKEN")
    if not base_url or not api_token:
        return {}

    credentials: dict[str, object] = {
        "base_url": _normalize_base_url(base_url),
        "api_token": api_token,
    }
    email = _get("EMAIL")
    if email:
        credentials["email"] = email
    auth_type = _get("AUTH_TYPE")
    if auth_type and auth_type.lower() in ("basic", "bearer"):
        credentials["auth_type"] = auth_type.lower()
    return {"credentials": credentials}


def _load_toml(path: Path) -> Optional[dict]:
    if not path.exists():
        return None

    try:  # Python 3.11+
        import tomllib  # type: ignore
    except ModuleNotFoundError:  # pragma: no cover - Python <3.11 fallback
        import tomli as tomllib  # type: ignore

    with path.open("rb") as handle:
        return tomllib.load(handle)


def resolve_config(explicit_path: Optional[Path] = None) -> ConfigSource:
    """Discover configuration using the first available source.

    The priority order is:
    1. Explicit path provided via CLI argument.
    2. Default configuration files in the working directory or the user's config directory.
    3. Environment variables with the `CONFLUENCE_` prefix.
    """

    errors: list[Exception] = []
    sources: list[tuple[Optional[Path], dict]] = []

    if explicit_path:
        try:
            data = _load_toml(explicit_path)
        except (OSError, ValueError) as exc:
            errors.append(exc)
        else:
            if data is None:
                errors.append(FileNotFoundError(f"Configuration file {explicit_path} does not exist"))
            else:
                sources.append((explicit_path, data))

    if not sources:
        for path in DEFAULT_CONFIG_PATHS:
            try:
                data = _load_toml(path)
            except (OSError, ValueError) as exc:  # pragma: no cover
                errors.append(exc)
                continue
            if data is not None:
                sources.append((path, data))
                break

    if not sources:
        env_data = _load_from_env()
        if env_data:
            sources.append((None, env_data))

    for path, data in sources:
        try:
            config = ConfluenceConfig.model_validate(data)
            return ConfigSource(config=config, path=path, error=None)
        except ValidationError as exc:
            errors.append(exc)

    error = errors[0] if errors else None
    return ConfigSource(config=None, path=None, error=error)


def ensure_config(
    *,
    base_url: Optional[str] = None,
    email: Optional[str] = None,
    api_token: Optional[str] = None,
    config_path: Optional[Path] = None,
) -> ConfluenceConfig:
    """Resolve configuration from precedence order and fall back to explicit CLI options."""

    source = resolve_config(config_path)

    try:
        if source.config:
            config = source.config.model_copy(deep=True)
            if any([base_url, email, api_token]):
                credentials = config.credentials.model_dump(mode="json")
                if base_url:
                    credentials["base_url"] = _normalize_base_url(base_url)
                if email:
                    credentials["email"] = email
                    credentials["auth_type"] = "basic"
                if api_token:
                    credentials["api_token"] = api_token
                config.credentials = ConfluenceCredentials.model_validate(credentials)
            return config

        if not all([base_url, api_token]):
            detail = f" ({source.error})" if source.error else ""
            raise ConfigError(
                "Missing Confluence credentials. Provide them via CLI options, a configuration file"
                " or CONFLUENCE_* environment variables" + detail
            )
        return ConfluenceConfig(
            credentials=ConfluenceCredentials(
                base_url=_normalize_base_url(base_url),
                email=email,
                api_token=api_token,
            ),
        )
    except ValidationError as exc:
        raise ConfigError(f"Invalid Confluence configuration: {exc}") from exc
