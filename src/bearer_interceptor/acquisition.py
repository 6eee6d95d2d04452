"""
Token acquisition: silent first, interactive when silent does not produce a token.

Per protected request the orchestrator runs this sequence:

    START -> SILENT_ATTEMPT
    SILENT_ATTEMPT  --token-->                 SUCCESS
    SILENT_ATTEMPT  --no token / exception-->  INTERACTIVE_ATTEMPT
    INTERACTIVE_ATTEMPT (popup)    --token-->  SUCCESS
    INTERACTIVE_ATTEMPT (popup)    --error-->  INTERACTIVE_FAILURE
    INTERACTIVE_ATTEMPT (redirect) -->         REDIRECTING

An interaction type other than popup or redirect is reported as
CONFIGURATION_ERROR before the provider is called at all.

The result is returned as an AcquisitionOutcome rather than raised, so the
caller (the httpx auth flow) decides what each outcome means for the request.
"""

import enum
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Sequence, Union

import httpx

from bearer_interceptor.errors import (
    AuthError,
    InteractionTypeError,
    InteractiveAcquisitionError,
)
from bearer_interceptor.log import LOGGER_NAME
from bearer_interceptor.models import Account, AuthRequest, InteractionType
from bearer_interceptor.providers.base import IdentityProvider

logger = logging.getLogger(LOGGER_NAME)

INTERACTIVE_TYPES = (InteractionType.POPUP, InteractionType.REDIRECT)

AuthRequestCustomizer = Callable[
    [IdentityProvider, Union[httpx.Request, None], AuthRequest],
    Union[AuthRequest, Awaitable[AuthRequest]],
]
AuthRequestConfig = Union[Mapping[str, Any], AuthRequestCustomizer, None]


class OutcomeKind(enum.Enum):
    SUCCESS = "success"
    REDIRECTING = "redirecting"
    CONFIGURATION_ERROR = "configuration_error"
    INTERACTIVE_FAILURE = "interactive_failure"


@dataclass(frozen=True)
class AcquisitionOutcome:
    """
    Result of one acquisition attempt.

    Attributes:
        kind: Which terminal state the state machine reached
        access_token: The token, only for SUCCESS
        error: The error to surface, for CONFIGURATION_ERROR and INTERACTIVE_FAILURE
    """

    kind: OutcomeKind
    access_token: str | None = None
    error: Exception | None = None

    @classmethod
    def success(cls, access_token: str) -> "AcquisitionOutcome":
        return cls(OutcomeKind.SUCCESS, access_token=access_token)

    @classmethod
    def redirecting(cls) -> "AcquisitionOutcome":
        return cls(OutcomeKind.REDIRECTING)

    @classmethod
    def configuration_error(cls, error: Exception) -> "AcquisitionOutcome":
        return cls(OutcomeKind.CONFIGURATION_ERROR, error=error)

    @classmethod
    def interactive_failure(cls, error: Exception) -> "AcquisitionOutcome":
        return cls(OutcomeKind.INTERACTIVE_FAILURE, error=error)


def auth_request_strategy(config: AuthRequestConfig) -> AuthRequestCustomizer:
    """
    Turn the ``auth_request`` configuration into a single callable.

    A callable is used as-is: its return value replaces the base request. A
    mapping becomes a callable that merges the mapping over the base request.
    None leaves the base request untouched.
    """
    if config is None:
        return lambda provider, http_request, base: base
    if callable(config):
        return config

    overrides = dict(config)

    def _apply_static(provider, http_request, base: AuthRequest) -> AuthRequest:
        return base.merged(overrides)

    return _apply_static


class TokenAcquirer:
    """
    Obtains access tokens from an identity provider for a list of scopes.

    Holds only configuration; every call to acquire() is independent, so one
    instance serves concurrent requests.
    """

    def __init__(
        self,
        provider: IdentityProvider,
        interaction_type: InteractionType | str = InteractionType.POPUP,
        auth_request: AuthRequestConfig = None,
    ):
        self.provider = provider
        try:
            self.interaction_type: InteractionType | str = InteractionType(interaction_type)
        except ValueError:
            self.interaction_type = interaction_type
        self._customize = auth_request_strategy(auth_request)

    def resolve_account(self) -> Account | None:
        """Active account first, then the first known account, else None."""
        account = self.provider.get_active_account()
        if account is not None:
            return account
        accounts = self.provider.get_all_accounts()
        if accounts:
            return accounts[0]
        return None

    async def build_request(
        self, scopes: Sequence[str], http_request: httpx.Request | None = None
    ) -> AuthRequest:
        """Default request, then static overrides or the dynamic customizer."""
        base = AuthRequest(scopes=list(scopes), account=self.resolve_account())
        auth_request = self._customize(self.provider, http_request, base)
        if inspect.isawaitable(auth_request):
            auth_request = await auth_request
        return auth_request

    async def acquire(
        self,
        scopes: Sequence[str],
        http_request: httpx.Request | None = None,
        request_id: str | None = None,
    ) -> AcquisitionOutcome:
        """
        Run the silent -> interactive sequence for ``scopes``.

        Args:
            scopes: Scopes required by the outgoing request
            http_request: The outgoing request, handed to a dynamic customizer
            request_id: Correlation id for log lines

        Returns:
            AcquisitionOutcome describing the terminal state
        """
        log_data = {"request_id": request_id, "scopes": list(scopes)}

        if self.interaction_type not in INTERACTIVE_TYPES:
            error = InteractionTypeError()
            logger.error(
                "Invalid interaction type in interceptor configuration",
                extra={
                    "auth_data": {
                        **log_data,
                        "interaction_type": getattr(
                            self.interaction_type, "value", self.interaction_type
                        ),
                        "decision": "configuration_error",
                        "error_code": error.error_code,
                    }
                },
            )
            return AcquisitionOutcome.configuration_error(error)

        auth_request = await self.build_request(scopes, http_request)

        try:
            result = await self.provider.acquire_token_silent(auth_request)
        except Exception as e:
            logger.info(
                "Silent token acquisition failed, falling back to interaction",
                extra={
                    "auth_data": {
                        **log_data,
                        "decision": "interaction_required",
                        "reason": getattr(e, "error_code", type(e).__name__),
                    }
                },
            )
        else:
            if result is not None and result.access_token:
                logger.info(
                    "Token acquired silently",
                    extra={"auth_data": {**log_data, "decision": "silent"}},
                )
                return AcquisitionOutcome.success(result.access_token)
            logger.info(
                "Silent token acquisition returned no access token, falling back to interaction",
                extra={
                    "auth_data": {
                        **log_data,
                        "decision": "interaction_required",
                        "reason": "no_access_token",
                    }
                },
            )

        return await self._acquire_interactively(auth_request, log_data)

    async def _acquire_interactively(
        self, auth_request: AuthRequest, log_data: dict
    ) -> AcquisitionOutcome:
        interaction_type = self.interaction_type

        try:
            result = await self.provider.acquire_token_interactive(interaction_type, auth_request)
        except Exception as e:
            logger.warning(
                "Interactive token acquisition failed",
                extra={
                    "auth_data": {
                        **log_data,
                        "interaction_type": interaction_type.value,
                        "decision": "failed",
                        "reason": getattr(e, "error_code", type(e).__name__),
                    }
                },
            )
            return AcquisitionOutcome.interactive_failure(e)

        if interaction_type is InteractionType.REDIRECT:
            logger.info(
                "Redirecting for interactive sign-in, request abandoned",
                extra={"auth_data": {**log_data, "decision": "redirecting"}},
            )
            return AcquisitionOutcome.redirecting()

        if result is None or not result.access_token:
            error: AuthError = InteractiveAcquisitionError(
                "no_access_token", "Interactive acquisition returned no access token"
            )
            logger.warning(
                "Interactive token acquisition returned no access token",
                extra={
                    "auth_data": {
                        **log_data,
                        "interaction_type": interaction_type.value,
                        "decision": "failed",
                        "reason": error.error_code,
                    }
                },
            )
            return AcquisitionOutcome.interactive_failure(error)

        logger.info(
            "Token acquired interactively",
            extra={
                "auth_data": {
                    **log_data,
                    "interaction_type": interaction_type.value,
                    "decision": "interactive",
                }
            },
        )
        return AcquisitionOutcome.success(result.access_token)
