"""
Identity provider backed by MSAL for Python (msal.PublicClientApplication).

Maps the interceptor's provider surface onto MSAL:

- silent      -> acquire_token_silent_with_error (uses MSAL's token cache)
- popup       -> acquire_token_interactive (system browser prompt)
- redirect    -> initiate_auth_code_flow; the auth_uri is handed to
                 ``navigate`` and the flow is finished later with
                 complete_redirect(auth_response)

MSAL is synchronous, so each SDK call runs in a worker thread.
Keys in AuthRequest.extra are passed through to MSAL as keyword arguments
(e.g. claims_challenge, prompt, domain_hint).
"""

import asyncio
import logging
from collections import OrderedDict
from typing import Any, Callable

import msal

from bearer_interceptor.errors import ProviderError
from bearer_interceptor.log import LOGGER_NAME
from bearer_interceptor.models import Account, AuthenticationResult, AuthRequest, InteractionType

logger = logging.getLogger(LOGGER_NAME)


def _account_from_msal(entry: dict[str, Any]) -> Account:
    return Account(
        home_account_id=entry.get("home_account_id", ""),
        local_account_id=entry.get("local_account_id", ""),
        environment=entry.get("environment", ""),
        tenant_id=entry.get("realm", ""),
        username=entry.get("username", ""),
    )


def _raise_for_error(result: dict[str, Any] | None, default_code: str) -> dict[str, Any]:
    if not result:
        raise ProviderError(default_code, "MSAL returned no result")
    if "error" in result:
        raise ProviderError(result["error"], result.get("error_description", ""))
    return result


class MsalIdentityProvider:
    """
    IdentityProvider implementation wrapping an MSAL public client.

    Args:
        app: A configured msal.PublicClientApplication (or compatible object)
        redirect_uri: Redirect URI registered for the app, needed for
                      redirect interactions
        navigate: Called with the authorize URL when a redirect starts
        max_pending_redirects: Redirect flows kept while waiting for their
                               response; the oldest is dropped beyond this
    """

    def __init__(
        self,
        app: msal.PublicClientApplication,
        *,
        redirect_uri: str | None = None,
        navigate: Callable[[str], None] | None = None,
        max_pending_redirects: int = 16,
    ):
        self.app = app
        self.redirect_uri = redirect_uri
        self.navigate = navigate
        self._active_account: Account | None = None
        self.max_pending_redirects = max_pending_redirects
        self._pending_flows: OrderedDict[str, dict[str, Any]] = OrderedDict()

    @classmethod
    def create(
        cls,
        client_id: str,
        authority: str | None = None,
        token_cache: msal.TokenCache | None = None,
        **kwargs,
    ) -> "MsalIdentityProvider":
        app = msal.PublicClientApplication(client_id, authority=authority, token_cache=token_cache)
        return cls(app, **kwargs)

    # ----- Accounts -----

    def get_active_account(self) -> Account | None:
        return self._active_account

    def set_active_account(self, account: Account | None) -> None:
        self._active_account = account

    def get_all_accounts(self) -> list[Account]:
        return [_account_from_msal(entry) for entry in self.app.get_accounts()]

    def _msal_account(self, account: Account | None) -> dict[str, Any] | None:
        if account is None:
            return None
        for entry in self.app.get_accounts():
            if entry.get("home_account_id") == account.home_account_id:
                return entry
        return None

    def _account_from_result(self, result: dict[str, Any]) -> Account | None:
        claims = result.get("id_token_claims") or {}
        oid, tid = claims.get("oid"), claims.get("tid")
        if not oid or not tid:
            return None
        home_account_id = f"{oid}.{tid}"
        for entry in self.app.get_accounts():
            if entry.get("home_account_id") == home_account_id:
                return _account_from_msal(entry)
        return Account(
            home_account_id=home_account_id,
            local_account_id=oid,
            environment="",
            tenant_id=tid,
            username=claims.get("preferred_username", ""),
        )

    # ----- IdentityProvider -----

    async def acquire_token_silent(self, request: AuthRequest) -> AuthenticationResult:
        msal_account = self._msal_account(request.account)
        if msal_account is None:
            raise ProviderError("no_account_error", "No cached MSAL account for silent acquisition")

        result = await asyncio.to_thread(
            self.app.acquire_token_silent_with_error,
            request.scopes,
            msal_account,
            authority=request.authority,
            **request.extra,
        )
        result = _raise_for_error(result, "interaction_required")
        return AuthenticationResult(
            access_token=result.get("access_token"),
            account=request.account,
            scopes=list(request.scopes),
            authority=request.authority,
        )

    async def acquire_token_interactive(
        self, interaction_type: InteractionType, request: AuthRequest
    ) -> AuthenticationResult | None:
        login_hint = request.account.username if request.account else None

        if interaction_type is InteractionType.REDIRECT:
            if not self.redirect_uri:
                raise ProviderError("redirect_uri_missing", "A redirect_uri is required for redirect sign-in")
            flow = await asyncio.to_thread(
                self.app.initiate_auth_code_flow,
                request.scopes,
                redirect_uri=self.redirect_uri,
                login_hint=login_hint,
            )
            _raise_for_error(flow, "redirect_failed")
            self._pending_flows[flow["state"]] = flow
            while len(self._pending_flows) > self.max_pending_redirects:
                state, _ = self._pending_flows.popitem(last=False)
                logger.info(
                    "Dropping abandoned redirect sign-in",
                    extra={"auth_data": {"state": state, "decision": "redirect_evicted"}},
                )
            if self.navigate is not None:
                self.navigate(flow["auth_uri"])
            return None

        if interaction_type is not InteractionType.POPUP:
            raise ProviderError(
                "invalid_interaction_type", f"Unsupported interaction type: {interaction_type}"
            )

        if request.authority:
            logger.debug("MSAL interactive acquisition uses the application authority")
        result = await asyncio.to_thread(
            self.app.acquire_token_interactive,
            request.scopes,
            login_hint=login_hint,
            **request.extra,
        )
        result = _raise_for_error(result, "user_cancelled")
        account = self._account_from_result(result) or request.account
        if account is not None:
            self._active_account = account
        return AuthenticationResult(
            access_token=result.get("access_token"),
            account=account,
            scopes=list(request.scopes),
        )

    async def complete_redirect(self, auth_response: dict[str, str]) -> AuthenticationResult:
        """
        Finish a redirect sign-in with the query parameters of the redirect.

        Raises:
            ProviderError: If no matching flow is pending or MSAL rejects the response
        """
        flow = self._pending_flows.pop(auth_response.get("state", ""), None)
        if flow is None:
            raise ProviderError("state_mismatch", "No pending redirect sign-in for this response")
        try:
            result = await asyncio.to_thread(self.app.acquire_token_by_auth_code_flow, flow, auth_response)
        except ValueError as e:
            raise ProviderError("state_mismatch", str(e))
        result = _raise_for_error(result, "redirect_failed")
        account = self._account_from_result(result)
        if account is not None:
            self._active_account = account
        return AuthenticationResult(
            access_token=result.get("access_token"),
            account=account,
            scopes=result.get("scope", "").split(),
        )
