"""Long-poll consumer for running the enrichment worker outside Lambda."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from typing import Optional, Sequence

from feedback_recs.config import ConfigurationError, get_app_env, get_log_level
from feedback_recs.lib.config import load_environment
from feedback_recs.lib.exceptions import BaseServiceError, ChannelReceiveError
from feedback_recs.lib.feedback.worker import BatchAbortedError
from feedback_recs.lib.logging_config import configure_logging
from feedback_recs.lib.runtime import get_runtime

logger = logging.getLogger(__name__)

RECEIVE_RETRY_SECONDS = 5


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Consume feedback submissions from SQS and store recommendations"
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Receive and process a single batch, then exit",
    )
    parser.add_argument(
        "--max-batches",
        type=int,
        default=None,
        help="Stop after this many batches (default: run until interrupted)",
    )
    return parser.parse_args(list(argv))


def run(once: bool = False, max_batches: Optional[int] = None) -> int:
    """Poll the queue and process batches.

    Returns:
        Process exit code
    """
    delivery = get_runtime().delivery

    if once:
        try:
            result = delivery.run_once()
        except BatchAbortedError as exc:
            logger.error("Batch failed and was left for redelivery: %s", exc.message)
            print(json.dumps(exc.details))
            return 1
        print(json.dumps(result.to_dict() if result else {"successful": [], "failed": []}))
        return 0

    processed = 0
    while max_batches is None or processed < max_batches:
        try:
            result = delivery.run_once()
        except BatchAbortedError as exc:
            logger.warning("Batch left for redelivery: %s", exc.message)
            processed += 1
            continue
        except ChannelReceiveError as exc:
            logger.error("Failed to receive messages, retrying: %s", exc.message)
            time.sleep(RECEIVE_RETRY_SECONDS)
            continue
        if result is not None:
            processed += 1
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    args = _parse_args(argv if argv is not None else sys.argv[1:])
    configure_logging(get_log_level(load_environment(get_app_env()).log_level))

    try:
        code = run(once=args.once, max_batches=args.max_batches)
    except ConfigurationError as exc:
        sys.stderr.write(f"Configuration error: {exc}\n")
        sys.exit(2)
    except BaseServiceError as exc:
        sys.stderr.write(f"Worker error: {exc.message}\n")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Worker interrupted, exiting")
        code = 0
    sys.exit(code)


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    main()
