"""
Tool: Token Manager
Purpose: Exchange stored refresh tokens for access tokens and persist rotation

Handles:
- Google and Microsoft refresh_token grants
- Refresh-token rotation (kept when the provider omits a new one)
- Persisting the (possibly unchanged) refresh token before returning

Usage:
    from linkcal.token_manager import refresh_and_persist

    access_token = await refresh_and_persist(store, account.id, account.provider,
                                             account.refresh_token)

Dependencies:
    - aiohttp (pip install aiohttp)
"""

import asyncio
import os
from typing import Any

import aiohttp

from linkcal.errors import ReauthorizationRequired
from linkcal.logging_config import get_logger
from linkcal.models import Provider
from linkcal.store import MeetingStore

logger = get_logger(__name__)


# OAuth endpoints
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
MICROSOFT_TOKEN_URL = "https://login.microsoftonline.com/{tenant}/oauth2/v2.0/token"

TOKEN_REQUEST_TIMEOUT = aiohttp.ClientTimeout(total=30)


def get_google_credentials() -> tuple[str, str]:
    """
    Get Google OAuth credentials from the environment.

    Returns:
        Tuple of (client_id, client_secret)

    Raises:
        ValueError: If credentials not found
    """
    client_id = os.environ.get("GOOGLE_CLIENT_ID")
    client_secret = os.environ.get("GOOGLE_CLIENT_SECRET")

    if not client_id or not client_secret:
        raise ValueError(
            "Google OAuth credentials not found. "
            "Set GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET environment variables."
        )

    return client_id, client_secret


def get_microsoft_credentials() -> tuple[str, str, str]:
    """
    Get Microsoft OAuth credentials from the environment.

    Returns:
        Tuple of (client_id, client_secret, tenant)

    Raises:
        ValueError: If credentials not found
    """
    client_id = os.environ.get("MICROSOFT_CLIENT_ID")
    client_secret = os.environ.get("MICROSOFT_CLIENT_SECRET")
    tenant = os.environ.get("MICROSOFT_TENANT", "common")

    if not client_id or not client_secret:
        raise ValueError(
            "Microsoft OAuth credentials not found. "
            "Set MICROSOFT_CLIENT_ID and MICROSOFT_CLIENT_SECRET environment variables."
        )

    return client_id, client_secret, tenant


def build_refresh_request(provider: Provider, refresh_token: str) -> tuple[str, dict[str, str]]:
    """Token endpoint URL and form body for a refresh_token grant."""
    if provider == Provider.GOOGLE:
        client_id, client_secret = get_google_credentials()
        url = GOOGLE_TOKEN_URL
    else:
        client_id, client_secret, tenant = get_microsoft_credentials()
        url = MICROSOFT_TOKEN_URL.format(tenant=tenant)

    return url, {
        "client_id": client_id,
        "client_secret": client_secret,
        "refresh_token": refresh_token,
        "grant_type": "refresh_token",
    }


async def _post_token_request(url: str, data: dict[str, str]) -> dict[str, Any]:
    """POST a form-encoded token request."""
    try:
        async with aiohttp.ClientSession(timeout=TOKEN_REQUEST_TIMEOUT) as session:
            async with session.post(url, data=data) as resp:
                if resp.status != 200:
                    error = await resp.text()
                    return {"success": False, "status": resp.status, "error": error}
                return {"success": True, "data": await resp.json()}
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        return {"success": False, "status": None, "error": f"Request failed: {e!s}"}


async def refresh_access_token(
    provider: Provider | str,
    refresh_token: str,
) -> dict[str, Any]:
    """
    Refresh an access token.

    Args:
        provider: 'google' or 'microsoft' (aliases accepted)
        refresh_token: Current refresh token

    Returns:
        dict with access_token and the refresh token to keep going forward
    """
    provider = Provider.from_string(provider)

    try:
        url, token_data = build_refresh_request(provider, refresh_token)
    except ValueError as e:
        return {"success": False, "error": str(e)}

    result = await _post_token_request(url, token_data)
    if not result.get("success"):
        return {
            "success": False,
            "status": result.get("status"),
            "error": f"Token refresh failed: {result.get('error')}",
        }

    tokens = result["data"]
    access_token = tokens.get("access_token")
    if not access_token:
        return {"success": False, "error": "Token response did not include an access token"}

    return {
        "success": True,
        "provider": provider.value,
        "access_token": access_token,
        # Providers may or may not rotate; the old token stays valid if not
        "refresh_token": tokens.get("refresh_token") or refresh_token,
        "rotated": bool(tokens.get("refresh_token")) and tokens["refresh_token"] != refresh_token,
        "expires_in": tokens.get("expires_in", 3600),
    }


async def refresh_and_persist(
    store: MeetingStore,
    account_id: str,
    provider: Provider | str,
    current_refresh_token: str,
) -> str:
    """
    Produce a usable access token for a linked account.

    The refresh token is written back to the account before returning, so
    a later attempt always starts from the freshest token even if the
    caller crashes after this point.

    Args:
        store: Persistent store holding the account
        account_id: Linked account ID
        provider: Account provider
        current_refresh_token: Refresh token currently on record

    Returns:
        Access token

    Raises:
        ReauthorizationRequired: if the refresh failed for any reason
    """
    provider = Provider.from_string(provider)

    if not current_refresh_token:
        raise ReauthorizationRequired(account_id, provider.value, "no refresh token on record")

    result = await refresh_access_token(provider, current_refresh_token)
    if not result.get("success"):
        logger.error(
            "token_refresh_failed",
            account_id=account_id,
            provider=provider.value,
            status=result.get("status"),
        )
        raise ReauthorizationRequired(account_id, provider.value, result.get("error", ""))

    store.update_refresh_token(account_id, result["refresh_token"])
    logger.debug(
        "token_refreshed",
        account_id=account_id,
        provider=provider.value,
        rotated=result["rotated"],
    )
    return result["access_token"]
