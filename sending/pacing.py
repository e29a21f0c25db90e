"""Pacing between consecutive sends, so a sequence run never goes out as one burst."""

import asyncio
import random

import config


def random_delay(min_ms: int = None, max_ms: int = None) -> int:
    """Uniform random delay in milliseconds, both bounds inclusive."""
    min_ms = config.SEND_DELAY_MIN_MS if min_ms is None else min_ms
    max_ms = config.SEND_DELAY_MAX_MS if max_ms is None else max_ms
    if min_ms < 0 or max_ms < min_ms:
        raise ValueError(f"invalid delay range [{min_ms}, {max_ms}]")
    return random.randint(min_ms, max_ms)


async def sleep_ms(ms: int):
    await asyncio.sleep(ms / 1000.0)


async def pause_between_sends(min_ms: int = None, max_ms: int = None) -> int:
    """Sleep a random pacing delay; returns the delay that was used."""
    delay = random_delay(min_ms, max_ms)
    await sleep_ms(delay)
    return delay
