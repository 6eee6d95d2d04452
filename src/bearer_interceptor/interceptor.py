"""
httpx auth flow that attaches bearer tokens to requests for protected resources.

Usage:

    auth = ProtectedResourceAuth(
        TokenAcquirer(provider, InteractionType.POPUP),
        ProtectedResourceTable({"https://graph.microsoft.com/v1.0/me": ["user.read"]}),
    )
    async with httpx.AsyncClient(auth=auth) as client:
        await client.get("https://graph.microsoft.com/v1.0/me")

For every outgoing request the flow:

1. Builds the candidate URL forms (absolute, relative to base_url, both
   trailing-slash variants)
2. Asks the matcher which scopes the request needs
3. No scopes: sends the request unchanged
4. Otherwise runs the acquisition orchestrator and acts on its outcome:
   - SUCCESS: sets "Authorization: Bearer <token>" and sends the request
   - CONFIGURATION_ERROR / INTERACTIVE_FAILURE: raises the error, nothing is sent
   - REDIRECTING: the request is abandoned; the flow never resumes, so the
     caller's await only ends when the caller cancels it
"""

import logging
import uuid
from typing import AsyncGenerator, Generator

import anyio
import httpx

from bearer_interceptor.acquisition import OutcomeKind, TokenAcquirer
from bearer_interceptor.log import LOGGER_NAME
from bearer_interceptor.resources import (
    ProtectedResourceTable,
    endpoint_candidates,
    match_scopes_to_endpoint,
)

logger = logging.getLogger(LOGGER_NAME)


class ProtectedResourceAuth(httpx.Auth):
    """
    Bearer-token middleware for httpx.AsyncClient.

    Holds no per-request state: one instance can be shared by a client
    sending many requests concurrently.
    """

    def __init__(
        self,
        acquirer: TokenAcquirer,
        protected_resources: ProtectedResourceTable,
        base_url: str | None = None,
    ):
        self.acquirer = acquirer
        self.protected_resources = protected_resources
        self.base_url = base_url

    def scopes_for(self, request: httpx.Request) -> list[str] | None:
        """Scopes required for ``request``, or None if it is not protected."""
        candidates = endpoint_candidates(str(request.url), self.base_url)
        return match_scopes_to_endpoint(self.protected_resources, candidates, request.method)

    def sync_auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        raise RuntimeError(
            "ProtectedResourceAuth acquires tokens asynchronously; use it with httpx.AsyncClient"
        )

    async def async_auth_flow(
        self, request: httpx.Request
    ) -> AsyncGenerator[httpx.Request, httpx.Response]:
        request_id = str(uuid.uuid4())[:8]
        scopes = self.scopes_for(request)

        if scopes is None:
            logger.debug(
                "Request not protected",
                extra={
                    "auth_data": {
                        "request_id": request_id,
                        "method": request.method,
                        "url": str(request.url.copy_with(query=None)),
                        "decision": "not_protected",
                    }
                },
            )
            yield request
            return

        logger.info(
            "Protected request, acquiring token",
            extra={
                "auth_data": {
                    "request_id": request_id,
                    "method": request.method,
                    "url": str(request.url.copy_with(query=None)),
                    "scopes": scopes,
                }
            },
        )
        outcome = await self.acquirer.acquire(scopes, request, request_id)

        if outcome.kind is OutcomeKind.SUCCESS:
            request.headers["Authorization"] = f"Bearer {outcome.access_token}"
            yield request
            return

        if outcome.kind is OutcomeKind.REDIRECTING:
            # Control has passed to a full sign-in navigation.
            await anyio.sleep_forever()

        raise outcome.error
