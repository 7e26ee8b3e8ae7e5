#!/usr/bin/env python3
"""Lazy example: declare an expensive lookup that only runs when needed.

The recommendations lookup is declared up front but only started when the
user turns out to have order history. Without history it never runs.
"""

from __future__ import annotations

import asyncio
import logging

from rivulet import Scope, eager_start, lazy_deferred

logging.basicConfig(level=logging.DEBUG, format="%(asctime)s [%(levelname)s] %(name)s - %(message)s")


class Storefront:
    def __init__(self, scope: Scope, user: str) -> None:
        self.scope = scope
        self.user = user

    @lazy_deferred
    async def recommendations(self) -> list[str]:
        print(f"  computing recommendations for {self.user}")
        await asyncio.sleep(0.2)
        return ["gears", "punch cards"]


async def order_history(user: str) -> list[int]:
    await asyncio.sleep(0.05)
    return [1001] if user == "ada" else []


async def render(user: str) -> None:
    async with Scope() as scope:
        store = Storefront(scope, user)
        history = eager_start(scope, lambda: order_history(user))
        if await history:
            print(f"{user}: {await store.recommendations}")
        else:
            print(f"{user}: no history, recommendations {store.recommendations.state}")


async def main() -> None:
    await render("ada")
    await render("charles")


if __name__ == "__main__":
    asyncio.run(main())
