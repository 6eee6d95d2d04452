"""
Local identity provider that signs its own access tokens.

Intended for development and tests: it behaves like a real provider at the
interface the interceptor uses (silent, popup, redirect, accounts) but keeps
its sessions in memory and mints HS256 JWTs with PyJWT instead of talking to
an authorization server.

Token payload:
    {
        "sub": "<local account id>",
        "tid": "<tenant id>",
        "preferred_username": "<username>",
        "scp": "user.read mail.read",       # space-separated, like Entra ID
        "iss": "<authority the token was requested from>",
        "iat": 1738796400,
        "exp": 1738800000
    }
"""

import datetime
from dataclasses import dataclass
from typing import Callable, Iterable
from urllib.parse import urlencode

import jwt

from bearer_interceptor.errors import ProviderError
from bearer_interceptor.models import Account, AuthenticationResult, AuthRequest, InteractionType

DEFAULT_AUTHORITY = "https://login.microsoftonline.com/common"


@dataclass(frozen=True)
class TokenInfo:
    """
    Claims recovered from a token issued by LocalIdentityProvider.

    Attributes:
        subject: The "sub" claim (local account id)
        scopes: Scopes granted, split from the "scp" claim
        authority: The "iss" claim, i.e. the authority the request targeted
        tenant_id: The "tid" claim
    """

    subject: str
    scopes: list[str]
    authority: str | None = None
    tenant_id: str | None = None


class LocalIdentityProvider:
    """
    In-memory identity provider issuing signed development tokens.

    Silent acquisition succeeds only for accounts that are signed in. Popup
    acquisition signs in ``interactive_account`` (simulating the user picking
    it in a prompt). Redirect acquisition records the request and hands the
    authorize URL to ``navigate``.
    """

    def __init__(
        self,
        signing_key: str = "dev-secret-change-me",
        *,
        algorithm: str = "HS256",
        authority: str = DEFAULT_AUTHORITY,
        token_lifetime_minutes: float = 60.0,
        accounts: Iterable[Account] = (),
        interactive_account: Account | None = None,
        navigate: Callable[[str], None] | None = None,
    ):
        self.signing_key = signing_key
        self.algorithm = algorithm
        self.authority = authority
        self.token_lifetime_minutes = token_lifetime_minutes
        self.interactive_account = interactive_account
        self.navigate = navigate
        self.pending_redirects: list[AuthRequest] = []
        self._accounts: dict[str, Account] = {a.home_account_id: a for a in accounts}
        self._active_account: Account | None = None

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "LocalIdentityProvider":
        """Build a provider from the local_* fields of a Settings instance."""
        return cls(
            settings.local_signing_key,
            algorithm=settings.local_token_algorithm,
            authority=settings.default_authority,
            token_lifetime_minutes=settings.local_token_lifetime_minutes,
            **kwargs,
        )

    # ----- Accounts -----

    def get_active_account(self) -> Account | None:
        return self._active_account

    def set_active_account(self, account: Account | None) -> None:
        if account is not None:
            self._accounts.setdefault(account.home_account_id, account)
        self._active_account = account

    def get_all_accounts(self) -> list[Account]:
        return list(self._accounts.values())

    def sign_in(self, account: Account) -> None:
        self._accounts[account.home_account_id] = account

    def sign_out(self, account: Account) -> None:
        self._accounts.pop(account.home_account_id, None)
        if self._active_account == account:
            self._active_account = None

    # ----- Tokens -----

    def issue_token(self, account: Account, scopes: list[str], authority: str | None = None) -> str:
        """Sign an access token for ``account`` carrying ``scopes``."""
        now = datetime.datetime.now(datetime.timezone.utc)
        payload = {
            "sub": account.local_account_id,
            "tid": account.tenant_id,
            "preferred_username": account.username,
            "scp": " ".join(scopes),
            "iss": authority or self.authority,
            "iat": now,
            "exp": now + datetime.timedelta(minutes=self.token_lifetime_minutes),
        }
        return jwt.encode(payload, self.signing_key, algorithm=self.algorithm)

    def decode_token(self, token: str) -> TokenInfo:
        """
        Verify a token issued by this provider and return its claims.

        Accepts the raw token or a full "Bearer <token>" header value.

        Raises:
            ProviderError: If the signature, expiry or required claims are invalid
        """
        scheme, _, value = token.partition(" ")
        if value and scheme.lower() == "bearer":
            token = value

        try:
            payload = jwt.decode(
                token,
                self.signing_key,
                algorithms=[self.algorithm],
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            raise ProviderError("invalid_token", "Token has expired")
        except jwt.InvalidTokenError as e:
            raise ProviderError("invalid_token", f"Invalid token: {e}")

        return TokenInfo(
            subject=payload["sub"],
            scopes=payload.get("scp", "").split(),
            authority=payload.get("iss"),
            tenant_id=payload.get("tid"),
        )

    def authorize_url(self, request: AuthRequest) -> str:
        """The URL a redirect sign-in for ``request`` would navigate to."""
        params = {"response_type": "code", "scope": " ".join(request.scopes)}
        if request.account is not None:
            params["login_hint"] = request.account.username
        authority = (request.authority or self.authority).rstrip("/")
        return f"{authority}/oauth2/v2.0/authorize?{urlencode(params)}"

    # ----- IdentityProvider -----

    async def acquire_token_silent(self, request: AuthRequest) -> AuthenticationResult:
        account = request.account
        if account is None:
            raise ProviderError("no_account_error", "No account provided for silent token acquisition")
        if account.home_account_id not in self._accounts:
            raise ProviderError("interaction_required", f"Account {account.username} is not signed in")
        return self._result(account, request)

    async def acquire_token_interactive(
        self, interaction_type: InteractionType, request: AuthRequest
    ) -> AuthenticationResult | None:
        if interaction_type is InteractionType.REDIRECT:
            url = self.authorize_url(request)
            self.pending_redirects.append(request)
            if self.navigate is not None:
                self.navigate(url)
            return None

        if interaction_type is not InteractionType.POPUP:
            raise ProviderError(
                "invalid_interaction_type", f"Unsupported interaction type: {interaction_type}"
            )

        account = self.interactive_account
        if account is None:
            raise ProviderError("user_cancelled", "The interactive sign-in was cancelled")
        self.sign_in(account)
        self._active_account = account
        return self._result(account, request)

    def _result(self, account: Account, request: AuthRequest) -> AuthenticationResult:
        authority = request.authority or self.authority
        return AuthenticationResult(
            access_token=self.issue_token(account, request.scopes, authority),
            account=account,
            scopes=list(request.scopes),
            authority=authority,
        )
