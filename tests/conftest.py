"""
Shared test fixtures for the interceptor test suite.

Key fixtures:
- protected_resources: The protected-resource table used across the suite
- sample_account: A signed-in account with tenant "test-tenant"
- make_token: Factory for JWTs signed like LocalIdentityProvider tokens
- make_provider: Factory for FakeProvider, a scriptable IdentityProvider
- upstream: A Starlette app that records every request it receives
- make_client: Factory for an httpx.AsyncClient wired to the upstream app
  through ProtectedResourceAuth (in-memory, no network)

Testing approach:
- test_resources.py: Unit tests for the matcher, table in isolation
- test_acquisition.py: Unit tests for TokenAcquirer against FakeProvider
- test_interceptor.py: Integration tests; real httpx requests go through the
  auth flow into the upstream app, which reports the headers it saw
"""

import datetime
import inspect
import logging

import httpx
import jwt
import pytest
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from bearer_interceptor.config import InterceptorConfiguration
from bearer_interceptor.log import LOGGER_NAME
from bearer_interceptor.models import Account, InteractionType
from bearer_interceptor.resources import ProtectedResourceTable

# Signing key shared by LocalIdentityProvider instances in tests.
TEST_SECRET = "test-secret"

# Origin of the application making the requests; relative URLs resolve here.
BASE_URL = "http://localhost:4200"

PROTECTED_RESOURCE_MAP = {
    "https://graph.microsoft.com/v1.0/me": ["user.read"],
    "https://myapplication.com/user/*": ["customscope.read"],
    "http://localhost:4200/details": ["details.read"],
    "https://*.myapplication.com/*": ["mail.read"],
    "https://api.test.com": ["default.scope1"],
    "https://*.test.com": ["default.scope2"],
    "http://localhost:3000/unprotect": None,
    "http://localhost:3000/": ["base.scope"],
    "http://apps.com/tenant?abc": ["query.scope"],
    "http://applicationA/slash/": ["custom.scope"],
    "http://applicationB/noSlash": ["custom.scope"],
    "http://applicationC.com": [{"POST": ["write.scope"]}],
    "http://applicationD.com": ["all.scope", {"GET": ["read.scope"]}],
}


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
@pytest.fixture(autouse=True)
def reset_interceptor_logger():
    """Drop handlers installed by configure_logging so they never outlive a test."""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# Resource table and account fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def protected_resources() -> ProtectedResourceTable:
    return ProtectedResourceTable(PROTECTED_RESOURCE_MAP)


@pytest.fixture
def sample_account() -> Account:
    return Account(
        home_account_id="test",
        local_account_id="test",
        environment="test",
        tenant_id="test-tenant",
        username="test",
    )


# ---------------------------------------------------------------------------
# Scriptable identity provider
# ---------------------------------------------------------------------------
class FakeProvider:
    """
    IdentityProvider whose responses are set per test.

    ``silent`` and ``interactive`` may each be:
    - an AuthenticationResult (returned as-is)
    - an Exception instance (raised)
    - a callable (sync or async) taking the AuthRequest and returning a result
    - None (returned as-is)

    Every call is recorded so tests can assert on what was requested.
    """

    def __init__(self, *, silent=None, interactive=None, active_account=None, accounts=()):
        self.silent = silent
        self.interactive = interactive
        self.active_account = active_account
        self.accounts = list(accounts)
        self.silent_requests = []
        self.interactive_calls = []

    async def acquire_token_silent(self, request):
        self.silent_requests.append(request)
        return await self._respond(self.silent, request)

    async def acquire_token_interactive(self, interaction_type, request):
        self.interactive_calls.append((interaction_type, request))
        return await self._respond(self.interactive, request)

    def get_active_account(self):
        return self.active_account

    def get_all_accounts(self):
        return list(self.accounts)

    @staticmethod
    async def _respond(behavior, request):
        if isinstance(behavior, Exception):
            raise behavior
        if callable(behavior):
            result = behavior(request)
            if inspect.isawaitable(result):
                result = await result
            return result
        return behavior


@pytest.fixture
def make_provider():
    """
    Factory fixture for FakeProvider.

    Usage in tests:
        def test_something(make_provider):
            provider = make_provider(silent=AuthenticationResult("access-token"))
    """

    def _make_provider(**kwargs) -> FakeProvider:
        return FakeProvider(**kwargs)

    return _make_provider


# ---------------------------------------------------------------------------
# Upstream app and client fixtures
# ---------------------------------------------------------------------------
class Upstream:
    """Starlette app answering every path and remembering what it received."""

    def __init__(self):
        self.requests: list[dict] = []
        self.app = Starlette(
            routes=[
                Route(
                    "/{path:path}",
                    self._echo,
                    methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
                )
            ]
        )

    async def _echo(self, request: Request) -> JSONResponse:
        seen = {
            "method": request.method,
            "url": str(request.url),
            "authorization": request.headers.get("authorization"),
        }
        self.requests.append(seen)
        return JSONResponse(seen)


@pytest.fixture
def upstream() -> Upstream:
    return Upstream()


@pytest.fixture
async def make_client(upstream):
    """
    Factory fixture returning httpx.AsyncClients that send through the interceptor.

    Each client routes requests to the in-memory upstream app regardless of
    host, with ProtectedResourceAuth built from PROTECTED_RESOURCE_MAP.
    """
    clients = []

    def _make_client(
        provider,
        *,
        interaction_type=InteractionType.POPUP,
        auth_request=None,
        base_url: str = BASE_URL,
    ) -> httpx.AsyncClient:
        config = InterceptorConfiguration(
            protected_resources=ProtectedResourceTable(PROTECTED_RESOURCE_MAP),
            interaction_type=interaction_type,
            auth_request=auth_request,
            base_url=base_url,
        )
        client = httpx.AsyncClient(
            transport=httpx.ASGITransport(app=upstream.app),
            auth=config.create_auth(provider),
            base_url=base_url,
        )
        clients.append(client)
        return client

    yield _make_client

    for client in clients:
        await client.aclose()


# ---------------------------------------------------------------------------
# Token factory fixture
# ---------------------------------------------------------------------------
@pytest.fixture
def make_token():
    """
    Factory fixture to generate JWTs shaped like LocalIdentityProvider tokens.

    Usage in tests:
        def test_something(make_token):
            token = make_token(sub="alice", scopes=["user.read"])
    """

    def _make_token(
        sub: str = "test-user",
        scopes: list[str] | None = None,
        secret: str = TEST_SECRET,
        algorithm: str = "HS256",
        exp_minutes: float = 60.0,
        extra_claims: dict | None = None,
        include_exp: bool = True,
        include_sub: bool = True,
    ) -> str:
        now = datetime.datetime.now(datetime.timezone.utc)
        payload: dict = {"iat": now}

        if include_sub:
            payload["sub"] = sub
        if scopes is not None:
            payload["scp"] = " ".join(scopes)
        if include_exp:
            payload["exp"] = now + datetime.timedelta(minutes=exp_minutes)
        if extra_claims:
            payload.update(extra_claims)

        return jwt.encode(payload, secret, algorithm=algorithm)

    return _make_token
