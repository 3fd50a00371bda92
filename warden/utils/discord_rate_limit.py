"""
Warden - Discord HTTP Helpers
=============================

Logging and retry helpers for Discord API calls made by the platform
adapter.

Usage:
    from warden.utils.discord_rate_limit import with_rate_limit_retry

    @with_rate_limit_retry()
    async def delete_hook(webhook):
        await webhook.delete()
"""

import asyncio
import random
from functools import wraps
from typing import Any, Callable, Optional

import discord

from warden.core.logger import logger


# =============================================================================
# Configuration
# =============================================================================

class RateLimitConfig:
    """Configuration for Discord rate limit handling."""
    MAX_RETRIES: int = 3
    BASE_DELAY: float = 1.0  # seconds
    MAX_DELAY: float = 30.0  # seconds


HTTP_STATUS_DESCRIPTIONS = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    429: "Rate Limited",
    500: "Internal Server Error",
    502: "Bad Gateway",
    503: "Service Unavailable",
    504: "Gateway Timeout",
}


# =============================================================================
# Logging Helper
# =============================================================================

def log_http_error(
    e: discord.HTTPException,
    operation: str,
    context: Optional[list] = None,
) -> None:
    """
    Log a Discord HTTPException with status details.

    Rate limits, 403 and 404 are warnings; anything else is an error.
    """
    status_desc = HTTP_STATUS_DESCRIPTIONS.get(e.status, "Unknown")
    retry_after = getattr(e, "retry_after", None)

    log_items = [
        ("Status", f"{e.status} ({status_desc})"),
        ("Error", str(e.text) if getattr(e, "text", None) else str(e)),
    ]

    if retry_after:
        log_items.append(("Retry After", f"{retry_after:.1f}s"))

    if context:
        log_items.extend(context)

    if e.status == 429:
        logger.warning(f"🚦 {operation} Rate Limited", log_items)
    elif e.status == 403:
        logger.warning(f"🚫 {operation} Forbidden", log_items)
    elif e.status == 404:
        logger.warning(f"❓ {operation} Not Found", log_items)
    else:
        logger.error(f"❌ {operation} Failed", log_items)


# =============================================================================
# Rate Limit Decorator
# =============================================================================

def with_rate_limit_retry(
    max_retries: int = RateLimitConfig.MAX_RETRIES,
    base_delay: float = RateLimitConfig.BASE_DELAY,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Retry a coroutine on Discord rate limits and 5xx responses.

    Client errors (4xx other than 429) are raised immediately: retrying a
    Forbidden or Not Found never helps.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(max_retries):
                try:
                    return await func(*args, **kwargs)

                except discord.RateLimited as e:
                    delay = e.retry_after + 0.5
                    if attempt < max_retries - 1 and delay < RateLimitConfig.MAX_DELAY:
                        logger.warning("Discord Rate Limited", [
                            ("Function", func.__name__),
                            ("Attempt", f"{attempt + 1}/{max_retries}"),
                            ("Retry After", f"{delay:.1f}s"),
                        ])
                        await asyncio.sleep(delay)
                        continue
                    raise

                except discord.HTTPException as e:
                    retryable = e.status == 429 or e.status >= 500
                    if not retryable or attempt >= max_retries - 1:
                        raise

                    retry_after = getattr(e, "retry_after", None)
                    if e.status == 429 and retry_after:
                        delay = retry_after + 0.5
                    else:
                        delay = min(base_delay * (2 ** attempt), RateLimitConfig.MAX_DELAY)
                        delay += random.uniform(0, delay * 0.1)

                    logger.warning("Discord API Error", [
                        ("Function", func.__name__),
                        ("Attempt", f"{attempt + 1}/{max_retries}"),
                        ("Status", str(e.status)),
                        ("Retry In", f"{delay:.1f}s"),
                    ])
                    await asyncio.sleep(delay)

            raise RuntimeError(f"{func.__name__} failed without exception")

        return wrapper

    return decorator


__all__ = [
    "log_http_error",
    "with_rate_limit_retry",
    "RateLimitConfig",
]
