"""Standalone worker process: drain the currently eligible training tasks."""

import argparse
import asyncio
import logging

from vectorqueue.config import settings
from vectorqueue.db import base as db_base
from vectorqueue.runtime import build_vector_queue

logger = logging.getLogger("vectorqueue.worker")


async def drain(max_in_flight: int | None = None) -> None:
    """Run chains until the queue is observed empty."""
    worker_settings = settings
    if max_in_flight:
        worker_settings = settings.model_copy(update={"vector_max_process": max_in_flight})

    await db_base.init_db()
    queue = build_vector_queue(db_base.async_session_factory, worker_settings)
    try:
        await queue.run_until_empty()
    finally:
        await queue.shutdown()
        await db_base.close_db()


def main():
    parser = argparse.ArgumentParser(description="VectorQueue training worker")
    parser.add_argument(
        "--max-in-flight",
        type=int,
        default=None,
        help=f"Tasks processed concurrently (default: {settings.vector_max_process})",
    )
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        help="Logging level (default: from VECTORQUEUE_LOG_LEVEL)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.info(f"Worker draining queue at {settings.database_url.split('@')[-1]}")
    asyncio.run(drain(args.max_in_flight))


if __name__ == "__main__":
    main()
