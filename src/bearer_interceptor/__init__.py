"""
Bearer-token middleware for httpx that authorizes requests to protected resources.
"""

from bearer_interceptor.acquisition import AcquisitionOutcome, OutcomeKind, TokenAcquirer
from bearer_interceptor.config import InterceptorConfiguration, Settings
from bearer_interceptor.errors import (
    AuthError,
    InteractionTypeError,
    InteractiveAcquisitionError,
    ProviderError,
    ResourceMapError,
)
from bearer_interceptor.interceptor import ProtectedResourceAuth
from bearer_interceptor.models import Account, AuthenticationResult, AuthRequest, InteractionType
from bearer_interceptor.resources import ProtectedResourceTable, match_scopes_to_endpoint

__all__ = [
    "AcquisitionOutcome",
    "Account",
    "AuthError",
    "AuthRequest",
    "AuthenticationResult",
    "InteractionType",
    "InteractionTypeError",
    "InteractiveAcquisitionError",
    "InterceptorConfiguration",
    "OutcomeKind",
    "ProtectedResourceAuth",
    "ProtectedResourceTable",
    "ProviderError",
    "ResourceMapError",
    "Settings",
    "TokenAcquirer",
    "match_scopes_to_endpoint",
]
