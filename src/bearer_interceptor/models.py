"""
Value types shared by the matcher, the acquisition orchestrator and providers.
"""

import enum
from dataclasses import dataclass, field, fields, replace
from typing import Any, Mapping


class InteractionType(str, enum.Enum):
    """How a token may be obtained when the silent attempt does not yield one."""

    POPUP = "popup"
    REDIRECT = "redirect"
    SILENT = "silent"


@dataclass(frozen=True)
class Account:
    """
    A signed-in user as reported by the identity provider.

    Attributes:
        home_account_id: Provider-wide identifier, stable across tenants
        local_account_id: Identifier within the account's home tenant
        environment: Identity provider host (e.g. "login.microsoftonline.com")
        tenant_id: Directory (tenant) the account belongs to
        username: Display/login name
    """

    home_account_id: str
    local_account_id: str
    environment: str
    tenant_id: str
    username: str


@dataclass
class AuthRequest:
    """
    Parameters of a single token request.

    ``extra`` holds provider-specific passthrough fields (claims, prompt,
    login_hint, ...) that the interceptor does not interpret.
    """

    scopes: list[str]
    account: Account | None = None
    authority: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def merged(self, overrides: Mapping[str, Any]) -> "AuthRequest":
        """Return a copy with ``overrides`` applied on top of this request.

        Keys naming a field replace it; any other key lands in ``extra``.
        """
        known = {f.name for f in fields(self)} - {"extra"}
        updates = {k: v for k, v in overrides.items() if k in known}
        extra = dict(self.extra)
        extra.update(overrides.get("extra", {}))
        extra.update({k: v for k, v in overrides.items() if k not in known and k != "extra"})
        if "scopes" in updates:
            updates["scopes"] = list(updates["scopes"])
        return replace(self, extra=extra, **updates)


@dataclass
class AuthenticationResult:
    """What a provider returns for a token request. ``access_token`` may be None."""

    access_token: str | None
    account: Account | None = None
    scopes: list[str] = field(default_factory=list)
    authority: str | None = None
