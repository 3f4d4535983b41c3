"""Worker entry point."""

from __future__ import annotations

import argparse
import logging
import sys

from pydantic import ValidationError

from corpus_ingest.config import get_settings
from corpus_ingest.context import ServiceContext
from corpus_ingest.worker.scheduler import JobScheduler

logger = logging.getLogger("corpus_ingest.worker")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Ingestion job worker")
    parser.add_argument("--log-level", default="INFO", help="Python logging level")
    parser.add_argument(
        "--max-iterations",
        type=int,
        default=None,
        help="Stop after this many polls (default: run forever)",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = get_settings()
    except ValidationError as exc:
        missing = ", ".join(str(err["loc"][0]).upper() for err in exc.errors())
        logger.error("Please specify the %s env var(s)", missing)
        return 1

    settings.data_dir.mkdir(parents=True, exist_ok=True)

    try:
        context = ServiceContext.connect(settings)
    except ConnectionError as exc:
        logger.error("%s", exc)
        return 1

    try:
        scheduler = JobScheduler(
            context.job_store,
            context.build_pipeline(),
            poll_interval=settings.poll_interval,
        )
        scheduler.run_forever(max_iterations=args.max_iterations)
    except KeyboardInterrupt:
        logger.info("Worker interrupted, shutting down")
    finally:
        context.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
