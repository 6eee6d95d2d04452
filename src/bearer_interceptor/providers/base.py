"""
The identity-provider surface the interceptor depends on.
"""

from typing import Protocol, runtime_checkable

from bearer_interceptor.models import Account, AuthenticationResult, AuthRequest, InteractionType


@runtime_checkable
class IdentityProvider(Protocol):
    """
    Anything that can hand out access tokens for a set of scopes.

    Silent acquisition may raise any exception or return a result without a
    token; both are treated as "interaction needed". Interactive acquisition
    with InteractionType.REDIRECT navigates away and returns None.
    """

    async def acquire_token_silent(self, request: AuthRequest) -> AuthenticationResult:
        ...

    async def acquire_token_interactive(
        self, interaction_type: InteractionType, request: AuthRequest
    ) -> AuthenticationResult | None:
        ...

    def get_active_account(self) -> Account | None:
        ...

    def get_all_accounts(self) -> list[Account]:
        ...
