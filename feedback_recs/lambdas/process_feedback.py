"""Lambda entry point for the SQS-triggered enrichment worker.

The event source mapping delivers up to 10 queue messages per invocation.
Returning normally acknowledges the whole batch; raising leaves every message
in it for redelivery after the visibility timeout, and the queue's redrive
policy dead-letters a message after its third receive.
"""

import json
import logging
from typing import Any, Dict

from feedback_recs.config import get_app_env, get_log_level
from feedback_recs.lib.config import load_environment
from feedback_recs.lib.logging_config import configure_logging
from feedback_recs.lib.messaging.envelope import QueueMessage
from feedback_recs.lib.runtime import get_runtime

configure_logging(get_log_level(load_environment(get_app_env()).log_level))
logger = logging.getLogger(__name__)


def handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    """Process one SQS batch.

    Raises:
        BatchAbortedError: If any message failed fatally
    """
    records = event.get("Records") or []
    logger.info("Processing %s SQS messages", len(records))

    messages = [QueueMessage.from_lambda_record(record) for record in records]
    result = get_runtime().worker.process_batch(messages)

    return {
        "statusCode": 200,
        "body": json.dumps(result.to_dict()),
    }
