"""
Interceptor configuration loaded from environment variables.

Uses pydantic-settings so every field can be supplied through the
environment (prefix BEARER_) or a .env file:

- BEARER_INTERACTION_TYPE: "popup" or "redirect"
- BEARER_BASE_URL: origin of the calling application; requests to it are
  also matched in their relative form ("/api/items")
- BEARER_PROTECTED_RESOURCE_MAP: JSON object of pattern -> scopes, in order
- BEARER_PROTECTED_RESOURCES_FILE: JSON file with the same shape, used when
  the map itself is empty
- BEARER_AUTH_REQUEST: JSON object of static token request overrides
  (e.g. {"authority": "https://login.microsoftonline.com/common"})
- BEARER_LOG_LEVEL: level of the "bearer-interceptor" logger, applied by
  InterceptorConfiguration.from_settings

A dynamic auth-request customizer is code, not configuration: pass it to
InterceptorConfiguration directly.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

from pydantic_settings import BaseSettings

from bearer_interceptor.acquisition import AuthRequestConfig, TokenAcquirer
from bearer_interceptor.interceptor import ProtectedResourceAuth
from bearer_interceptor.log import configure_logging
from bearer_interceptor.models import InteractionType
from bearer_interceptor.providers.base import IdentityProvider
from bearer_interceptor.resources import ProtectedResourceTable

ScopeItemSetting = Union[str, dict[str, list[str]]]


class Settings(BaseSettings):
    """
    Interceptor settings with environment variable bindings.

    Each field maps to an environment variable with the BEARER_ prefix, e.g.
    `interaction_type` reads BEARER_INTERACTION_TYPE.
    """

    # --- Interceptor settings ---

    # Fallback used when silent acquisition yields no token. SILENT is
    # accepted here but rejected per request with invalid_interaction_type.
    interaction_type: InteractionType = InteractionType.POPUP

    base_url: str | None = None

    # Pattern -> scopes. JSON objects keep their key order when parsed.
    protected_resource_map: dict[str, Union[list[ScopeItemSetting], None]] = {}

    protected_resources_file: Path | None = None

    auth_request: dict[str, Any] = {}

    log_level: str = "info"

    # --- Local development identity provider ---

    local_signing_key: str = "dev-secret-change-me"
    local_token_algorithm: str = "HS256"
    local_token_lifetime_minutes: float = 60.0
    default_authority: str = "https://login.microsoftonline.com/common"

    model_config = {
        "env_prefix": "BEARER_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    def resource_table(self) -> ProtectedResourceTable:
        """The configured table: the inline map, else the file, else empty."""
        if self.protected_resource_map:
            return ProtectedResourceTable(self.protected_resource_map)
        if self.protected_resources_file is not None:
            return ProtectedResourceTable.from_json_file(self.protected_resources_file)
        return ProtectedResourceTable()


@dataclass
class InterceptorConfiguration:
    """
    Everything needed to build a ProtectedResourceAuth, minus the provider.

    ``auth_request`` is either a mapping of static overrides or a callable
    ``(provider, http_request, base_request) -> AuthRequest``.
    """

    protected_resources: ProtectedResourceTable
    interaction_type: InteractionType | str = InteractionType.POPUP
    auth_request: AuthRequestConfig = None
    base_url: str | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "InterceptorConfiguration":
        """Build the configuration from settings and apply their log level."""
        configure_logging(settings.log_level)
        return cls(
            protected_resources=settings.resource_table(),
            interaction_type=settings.interaction_type,
            auth_request=dict(settings.auth_request) or None,
            base_url=settings.base_url,
        )

    def create_auth(self, provider: IdentityProvider) -> ProtectedResourceAuth:
        acquirer = TokenAcquirer(provider, self.interaction_type, self.auth_request)
        return ProtectedResourceAuth(acquirer, self.protected_resources, self.base_url)


# Singleton instance: import this from other modules.
settings = Settings()
