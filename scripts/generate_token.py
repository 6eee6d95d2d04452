"""
CLI utility to resolve the scopes a URL needs and mint a development token for them.

Uses the same matcher as the interceptor, so it doubles as a way to check a
protected-resource table before deploying it. The token is signed by
LocalIdentityProvider with BEARER_LOCAL_SIGNING_KEY.

Usage examples:

    # Which scopes does a GET to this URL need? (table from BEARER_* settings)
    uv run python -m scripts.generate_token --url https://graph.microsoft.com/v1.0/me

    # Table from a JSON file, POST request
    uv run python -m scripts.generate_token --resources resources.json \\
        --url http://applicationC.com --method POST

    # Token for a specific user and tenant, against a tenant authority
    uv run python -m scripts.generate_token --url https://api.test.com \\
        --username alice@contoso.com --tenant contoso \\
        --authority https://login.microsoftonline.com/contoso
"""

import argparse
import sys

from bearer_interceptor.config import settings
from bearer_interceptor.log import configure_logging
from bearer_interceptor.models import Account
from bearer_interceptor.providers.local import LocalIdentityProvider
from bearer_interceptor.resources import (
    ProtectedResourceTable,
    endpoint_candidates,
    match_scopes_to_endpoint,
)


def resolve_scopes(
    table: ProtectedResourceTable, url: str, method: str = "GET", base_url: str | None = None
) -> list[str] | None:
    """Scopes the interceptor would request for ``method url``, or None."""
    return match_scopes_to_endpoint(table, endpoint_candidates(url, base_url), method)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Resolve required scopes for a URL and mint a local development token.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Scopes for a URL:
    %(prog)s --url https://graph.microsoft.com/v1.0/me

  Method-specific scopes from a table file:
    %(prog)s --resources resources.json --url http://applicationC.com --method POST
        """,
    )

    parser.add_argument("--url", required=True, help="Absolute or relative request URL")
    parser.add_argument("--method", default="GET", help="HTTP method (default: GET)")
    parser.add_argument(
        "--resources",
        help="JSON file with the protected-resource table (default: BEARER_* settings)",
    )
    parser.add_argument(
        "--base-url",
        default=settings.base_url,
        help="Origin of the calling application, for relative matching",
    )
    parser.add_argument("--username", default="dev@localhost", help="Account username")
    parser.add_argument("--tenant", default="dev-tenant", help="Account tenant id")
    parser.add_argument(
        "--authority",
        default=settings.default_authority,
        help="Authority to stamp into the token's iss claim",
    )

    args = parser.parse_args(argv)
    configure_logging(settings.log_level, sys.stderr)

    table = (
        ProtectedResourceTable.from_json_file(args.resources)
        if args.resources
        else settings.resource_table()
    )
    scopes = resolve_scopes(table, args.url, args.method, args.base_url)

    print(f"Request:    {args.method} {args.url}")
    if scopes is None:
        print("Scopes:     none (not a protected resource, no token needed)")
        return 1

    account = Account(
        home_account_id=f"{args.username}.{args.tenant}",
        local_account_id=args.username,
        environment="localhost",
        tenant_id=args.tenant,
        username=args.username,
    )
    provider = LocalIdentityProvider.from_settings(settings)
    token = provider.issue_token(account, scopes, args.authority)

    print(f"Scopes:     {scopes}")
    print(f"Account:    {args.username} ({args.tenant})")
    print(f"Authority:  {args.authority}")
    print()
    print(f"Authorization: Bearer {token}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
