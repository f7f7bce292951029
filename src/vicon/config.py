"""Configuration management for vicon."""

from __future__ import annotations

import os
from enum import Enum

import keyring
from keyring.errors import KeyringError, PasswordDeleteError
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from vicon.core.lazy import Lazy
from vicon.errors import CredentialsMissingError, CredentialStoreError, ProviderNotConfiguredError

SECRETS_SERVICE = "vicon"
CONFIG_KEY = "config"
CONFIG_ENV_VAR = "VICON_CONFIG"

LIBSECRET_HINT = (
    "Install libsecret:\n"
    "  Ubuntu/Debian: sudo apt install libsecret-1-0 libsecret-tools\n"
    "  Fedora:        sudo dnf install libsecret\n"
    "  Arch:          sudo pacman -S libsecret"
)


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="VICON_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Remote chat backend
    cloudflare_model: str = Field(default="@cf/openai/gpt-oss-120b", description="Workers AI model id")
    cloudflare_api_base: str = Field(
        default="https://api.cloudflare.com/client/v4", description="Cloudflare API base URL"
    )
    max_tokens: int = Field(default=2048, description="Maximum tokens for responses")
    request_timeout_seconds: float = Field(default=120, description="Timeout for the chat completion request")

    # Local agent backend
    agent_binary: str = Field(default="claude", description="Local agent executable")
    claude_model: str = Field(default="sonnet", description="Model passed to the local agent")
    agent_timeout_seconds: float = Field(default=300, description="Timeout for one local agent run")

    # Probed tools
    ffmpeg_binary: str = Field(default="ffmpeg", description="Transcoder executable")
    magick_binary: str = Field(default="magick", description="Image tool executable")

    # Logging
    log_level: str = Field(default="WARNING", description="Log level")


class Provider(str, Enum):
    """Generation backends. The set is closed."""

    CLOUDFLARE = "cloudflare"
    CLAUDE = "claude"

    @property
    def label(self) -> str:
        return _PROVIDER_LABELS[self]


_PROVIDER_LABELS = {
    Provider.CLOUDFLARE: "Cloudflare AI",
    Provider.CLAUDE: "Claude Code CLI",
}


class CloudflareCredentials(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    account_id: str = Field(..., alias="accountId", min_length=1)
    api_token: str = Field(..., alias="apiToken", min_length=1, repr=False)


class ProviderConfig(BaseModel):
    """Which backend to use and, for the remote one, its credentials."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    default_provider: Provider = Field(..., alias="defaultProvider")
    cloudflare: CloudflareCredentials | None = None

    def with_provider(self, provider: Provider) -> ProviderConfig:
        return self.model_copy(update={"default_provider": provider})

    def cloudflare_credentials(self) -> CloudflareCredentials:
        if self.cloudflare is None:
            raise CredentialsMissingError("Cloudflare credentials missing. Run: vicon setup")
        return self.cloudflare

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


def ensure_dispatchable(config: ProviderConfig | None) -> ProviderConfig:
    """Fail fast when the configuration cannot reach any backend."""

    if config is None:
        raise ProviderNotConfiguredError("No provider configured. Run: vicon setup")
    if config.default_provider is Provider.CLOUDFLARE:
        config.cloudflare_credentials()
    return config


def apply_provider_override(config: ProviderConfig | None, override: Provider | None) -> ProviderConfig | None:
    if override is None:
        return config
    if config is None:
        return ProviderConfig(default_provider=override)
    return config.with_provider(override)


def _parse_config(payload: str, *, source: str) -> ProviderConfig | None:
    try:
        return ProviderConfig.model_validate_json(payload)
    except ValidationError as exc:
        logger.warning("config.invalid source={} errors={}", source, exc.error_count())
        return None


class ConfigStore:
    """Provider configuration persisted in the OS keychain.

    The environment variable ``VICON_CONFIG`` (a JSON document) takes
    precedence over the keychain. Loads are cached for the process lifetime,
    including the "nothing stored" outcome.
    """

    def __init__(self, *, service: str = SECRETS_SERVICE, key: str = CONFIG_KEY) -> None:
        self._service = service
        self._key = key
        self._cache: Lazy[ProviderConfig] = Lazy()

    def load(self) -> ProviderConfig | None:
        if self._cache.loaded:
            return self._cache.get()

        config = self._load_uncached()
        self._cache.set(config)
        return config

    def _load_uncached(self) -> ProviderConfig | None:
        env_value = os.getenv(CONFIG_ENV_VAR)
        if env_value:
            config = _parse_config(env_value, source="env")
            if config is not None:
                logger.debug("config.loaded source=env provider={}", config.default_provider.value)
                return config

        try:
            stored = keyring.get_password(self._service, self._key)
        except KeyringError as exc:
            logger.debug("config.keyring.unavailable error={}", exc)
            return None
        if not stored:
            return None
        config = _parse_config(stored, source="keyring")
        if config is not None:
            logger.debug("config.loaded source=keyring provider={}", config.default_provider.value)
        return config

    def save(self, config: ProviderConfig) -> None:
        try:
            keyring.set_password(self._service, self._key, config.to_json())
        except KeyringError as exc:
            message = str(exc)
            lowered = message.lower()
            if "libsecret" in lowered or "secret service" in lowered or "no recommended backend" in lowered:
                raise CredentialStoreError(
                    f"Failed to store config in keychain: {message}\n{LIBSECRET_HINT}"
                ) from exc
            raise CredentialStoreError(f"Failed to store config in keychain: {message}") from exc
        self._cache.set(config)
        logger.info("config.saved provider={}", config.default_provider.value)

    def delete(self) -> None:
        self._cache.reset()
        try:
            keyring.delete_password(self._service, self._key)
        except PasswordDeleteError:
            logger.debug("config.delete.not_found")
            return
        except KeyringError as exc:
            raise CredentialStoreError(f"Failed to delete config from keychain: {exc}") from exc
        logger.info("config.deleted")


def load_settings() -> Settings:
    return Settings()
