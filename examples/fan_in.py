#!/usr/bin/env python3
"""Fan-in example: build a user profile from three concurrent lookups.

Each lookup sleeps to stand in for a remote call. suspend_zip runs them
concurrently and hands the results to the combining function in call order,
so the whole profile takes about as long as the slowest lookup.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass

from rivulet import Scope, ScopeConfig, suspend_zip

logging.basicConfig(level=logging.DEBUG, format="%(asctime)s [%(levelname)s] %(name)s - %(message)s")


@dataclass(frozen=True)
class Profile:
    user: str
    addresses: list[str]
    orders: list[int]


async def fetch_user() -> str:
    await asyncio.sleep(0.3)
    return "ada"


async def fetch_addresses() -> list[str]:
    await asyncio.sleep(0.2)
    return ["12 Analytical Row", "1 Engine Lane"]


async def fetch_orders() -> list[int]:
    await asyncio.sleep(0.1)
    return [1001, 1002, 1003]


async def main() -> None:
    async with Scope(ScopeConfig(name="profile", trace=True)) as scope:
        start = time.perf_counter()
        profile = await suspend_zip(scope, fetch_user, fetch_addresses, fetch_orders, Profile)
        elapsed = time.perf_counter() - start

    print(profile)
    print(f"took {elapsed:.2f}s")

    print("=" * 60)
    print("Trace:")
    print("=" * 60)
    for ev in scope.trace.get_events():
        duration = f" ({ev.duration_ms:.1f}ms)" if ev.duration_ms is not None else ""
        print(f"{ev.id:>2} <- {ev.parent_id!s:>4}  {ev.action}{duration} {ev.info}")


if __name__ == "__main__":
    asyncio.run(main())
