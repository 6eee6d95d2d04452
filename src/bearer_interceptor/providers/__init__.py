from bearer_interceptor.providers.base import IdentityProvider
from bearer_interceptor.providers.local import LocalIdentityProvider, TokenInfo
from bearer_interceptor.providers.msal_client import MsalIdentityProvider

__all__ = ["IdentityProvider", "LocalIdentityProvider", "MsalIdentityProvider", "TokenInfo"]
