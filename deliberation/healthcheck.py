"""Provider health checks: ping each API a topology needs before starting a run."""

import asyncio
import logging
import time

from deliberation.providers.base import AIProvider

logger = logging.getLogger(__name__)

_PING_PROMPT = "Reply with the word OK only."
_TIMEOUT_SEC = 15.0


async def _check_one(name: str, provider: AIProvider) -> tuple[str, bool, str]:
    """Ping a single provider. Returns (name, ok, error_message)."""
    start = time.monotonic()
    try:
        await asyncio.wait_for(provider.generate(_PING_PROMPT, turn_number=0), timeout=_TIMEOUT_SEC)
    except Exception as exc:
        logger.debug("Health check failed for %s: %s", name, exc)
        return name, False, str(exc) or type(exc).__name__
    logger.debug("Health check passed for %s in %.2fs", name, time.monotonic() - start)
    return name, True, ""


async def run_health_checks(
    providers: dict[str, AIProvider],
    only: list[str] | None = None,
) -> dict[str, tuple[bool, str]]:
    """Ping providers in parallel, restricted to ``only`` when given.

    Returns:
        Dict mapping provider name -> (ok, error_message).
        error_message is "" when ok is True.
    """
    selected = {n: p for n, p in providers.items() if only is None or n in only}
    results = await asyncio.gather(*(_check_one(n, p) for n, p in selected.items()))
    return {name: (ok, err) for name, ok, err in results}
