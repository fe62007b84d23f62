"""
Simple script to verify Microsoft Graph credentials against the directory API.

Supports two modes:
- Application (default): client-credentials token, then GET /organization
- Delegated: an access token you paste in (optionally with a refresh token),
  then GET /me and GET /me/joinedTeams

Usage:
    # Application mode - uses client secret
    uv run python scripts/verify_graph_credentials.py

    # Delegated mode - token copied from a signed-in client
    uv run python scripts/verify_graph_credentials.py --token eyJ0eXAi... --refresh-token 0.AX...

Required environment variables in .env:
    AZURE_TENANT_ID=your-tenant-id
    AZURE_CLIENT_ID=your-client-id
    AZURE_CLIENT_SECRET=your-client-secret
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.auth import (
    AuthError,
    CredentialStore,
    DecodeError,
    DelegatedCredentialManager,
    RequestCredentials,
    TokenEndpoint,
)
from src.auth.claims import token_expiry, token_identity
from src.cli.validate_config import missing_settings
from src.config import DATA_DIR
from src.graph import DirectoryClient, DirectoryError


def print_header(text: str) -> None:
    print(f"\n{'='*60}")
    print(f"  {text}")
    print(f"{'='*60}\n")


def print_success(text: str) -> None:
    print(f"[OK] {text}")


def print_error(text: str) -> None:
    print(f"[ERROR] {text}")


def print_info(text: str) -> None:
    print(f"[INFO] {text}")


def _explain(error: DirectoryError) -> None:
    if error.code == "Authorization_RequestDenied" or error.status == 403:
        print_info("Permission denied. Check the API permissions and admin consent in Azure Portal")
    elif error.code == "InvalidAuthenticationToken" or error.status == 401:
        print_info("Graph rejected the token (expired or issued for another resource)")


async def verify_application() -> bool:
    """Acquire an app-only token and read the tenant's organization record."""
    print_header("Microsoft Graph - Application Permissions")

    missing = missing_settings()
    if missing:
        print_error(f"Missing environment variables: {', '.join(missing)}")
        return False
    print_success("Required environment variables found")

    print_info("Acquiring client-credentials token...")
    try:
        grant = await TokenEndpoint().acquire_for_client()
    except AuthError as e:
        print_error(f"Failed to acquire token: {e}")
        print_info("Check your AZURE_TENANT_ID, AZURE_CLIENT_ID, and AZURE_CLIENT_SECRET")
        return False
    print_success(f"Access token acquired (expires in {grant.expires_in}s)")

    print_header("Testing Graph API Access")
    try:
        async with DirectoryClient(grant.access_token) as client:
            org = await client.get("/organization")
    except DirectoryError as e:
        print_error(f"GET /organization failed: {e}")
        _explain(e)
        return False

    for entry in (org or {}).get("value") or []:
        print_success(f"Tenant: {entry.get('displayName')} ({entry.get('id')})")

    print_header("Verification Complete")
    print_success("Application credentials are working.")
    return True


async def verify_delegated(access_token: str, refresh_token: str | None) -> bool:
    """Run a user token through the delegated manager and call /me with the result."""
    print_header("Microsoft Graph - Delegated Permissions")
    try:
        print_info(f"Token identity: {token_identity(access_token)}")
        print_info(f"Token expiry:   {token_expiry(access_token) or 'unknown'}")
    except DecodeError as e:
        print_info(f"Token is not a readable JWT ({e}); continuing anyway")

    # Scratch store so verification never touches the server's token store
    manager = DelegatedCredentialManager(CredentialStore(DATA_DIR / "verify_token_store.json"), TokenEndpoint())
    try:
        token = await manager.obtain(RequestCredentials(access_token=access_token, refresh_token=refresh_token))
    except AuthError as e:
        print_error(f"Could not obtain a usable token: {e}")
        return False
    if token != access_token:
        print_success("Token was refreshed")

    print_header("Testing Graph API Access")
    try:
        async with DirectoryClient(token) as client:
            me = await client.get("/me")
            print_success(f"Signed in as {me.get('displayName')} <{me.get('userPrincipalName')}>")
            teams = [t async for t in client.iter_collection("/me/joinedTeams")]
    except DirectoryError as e:
        print_error(f"Graph call failed: {e}")
        _explain(e)
        return False

    print_success(f"Member of {len(teams)} team(s)")
    for team in teams[:10]:
        print(f"   - {team.get('displayName')} ({team.get('id')})")

    print_header("Verification Complete")
    print_success("Delegated token is working.")
    return True


def main():
    parser = argparse.ArgumentParser(
        description="Verify Microsoft Graph credentials",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--token", help="Delegated access token to verify instead of app credentials")
    parser.add_argument("--refresh-token", help="Refresh token to use if --token has expired")
    args = parser.parse_args()

    if args.token:
        success = asyncio.run(verify_delegated(args.token, args.refresh_token))
    else:
        success = asyncio.run(verify_application())

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
