from __future__ import annotations

import asyncio

from .db import Base, engine
from . import models  # noqa: F401
from .seed import seed


async def init_models(seed_demo_data: bool = False) -> None:
	async with engine.begin() as conn:
		await conn.run_sync(Base.metadata.create_all)
	if seed_demo_data:
		# idempotent
		await seed()


if __name__ == "__main__":
	asyncio.run(init_models(seed_demo_data=True))
