from __future__ import annotations

import asyncio
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)


async def _loop_worker(task_coro, interval: int, name: str) -> None:
    logger.info("%s worker started (interval=%ss)", name, interval)
    try:
        while True:
            try:
                await task_coro()
            except Exception:  # pragma: no cover
                logger.exception("%s worker encountered an error", name)
            await asyncio.sleep(interval)
    except asyncio.CancelledError:  # pragma: no cover
        logger.info("%s worker cancelled", name)
        raise


async def process_recurring_generation() -> None:
    from app.services.generation import run_generation

    result = await run_generation()
    if result.failures:
        logger.warning(
            "recurring-generation: %d schedule(s) failed and will be retried next run",
            len(result.failures),
        )


def start_background_tasks() -> list[asyncio.Task]:
    if not settings.RECURRENCE_WORKER_ENABLED:
        logger.info("recurring-generation worker disabled")
        return []
    return [
        asyncio.create_task(
            _loop_worker(process_recurring_generation, settings.RECURRENCE_POLL_SECONDS, "recurring-generation")
        ),
    ]
