"""Deactivate expired or exhausted invite tokens.

Run on demand or from cron::

    python -m app.tasks.token_sweep
"""

import asyncio
import logging

from app.database import AsyncSessionLocal, engine
from app.services.token_service import sweep_expired_tokens

logger = logging.getLogger(__name__)


async def run_sweep() -> int:
    async with AsyncSessionLocal() as session:
        return await sweep_expired_tokens(session)


async def _main() -> None:
    try:
        swept = await run_sweep()
    finally:
        await engine.dispose()
    logger.info("Sweep finished: %s token(s) deactivated", swept)


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    asyncio.run(_main())


if __name__ == "__main__":
    main()
