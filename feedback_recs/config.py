"""Configuration management for the feedback recommendations backend."""

import os
import logging
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

# Load .env from the per-user config directory only, so that secrets are
# never picked up from a file inside the repository.
#
# Location: ~/.feedback_recs/.env
#
# Setup:
#   mkdir -p ~/.feedback_recs
#   cp .env.example ~/.feedback_recs/.env
#   chmod 600 ~/.feedback_recs/.env

_env_loaded_from: Optional[str] = None


def _load_env_file() -> Optional[str]:
    """Load .env from the per-user config directory if it exists."""
    env_path = Path.home() / '.feedback_recs' / '.env'

    if env_path.exists():
        load_dotenv(env_path)
        return str(env_path)

    return None


_env_loaded_from = _load_env_file()

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing required values."""
    pass


# Feedback text limit enforced at intake.
MAX_FEEDBACK_LENGTH = 10000

# Store-imposed limit for BatchWriteItem.
DELETE_BATCH_SIZE = 25

# Queue attributes. These mirror the provisioned SQS queue and are the
# defaults for the in-process channel.
QUEUE_VISIBILITY_TIMEOUT_SECONDS = 5 * 60
QUEUE_RECEIVE_WAIT_SECONDS = 20
QUEUE_MAX_BATCH_SIZE = 10
QUEUE_MAX_RECEIVE_COUNT = 3
QUEUE_RETENTION_SECONDS = 4 * 24 * 60 * 60
DEAD_LETTER_RETENTION_SECONDS = 14 * 24 * 60 * 60

VALID_STORE_BACKENDS = ('dynamodb', 'memory')
VALID_CHANNEL_BACKENDS = ('sns', 'memory')


def get_app_env() -> str:
    """Get the deployment environment tag (dev, staging, prod)."""
    return os.getenv('APP_ENV', 'dev').lower()


def get_aws_region() -> str:
    """Get the AWS region used for every client."""
    return os.getenv('AWS_REGION', 'us-east-1')


def get_aws_profile() -> Optional[str]:
    """Get an optional named AWS profile for local development."""
    return os.getenv('AWS_PROFILE') or None


def get_table_name() -> str:
    """Get the DynamoDB table holding recommendation records."""
    return os.getenv('DYNAMODB_TABLE_NAME', f"Recommendations-{get_app_env()}")


def get_sns_topic_arn() -> Optional[str]:
    """Get the SNS topic ARN that feedback submissions are published to."""
    return os.getenv('SNS_TOPIC_ARN') or None


def get_sqs_queue_url() -> Optional[str]:
    """Get the SQS queue URL consumed by the enrichment worker."""
    return os.getenv('SQS_QUEUE_URL') or None


def get_bedrock_model_id() -> str:
    """Get the Bedrock model identifier used for enrichment."""
    return os.getenv('BEDROCK_MODEL_ID', 'anthropic.claude-3-haiku-20240307-v1:0')


def get_bedrock_timeout_seconds() -> int:
    """Get the read timeout for a single inference call."""
    value = os.getenv('BEDROCK_TIMEOUT_SECONDS', '300')
    try:
        return int(value)
    except ValueError:
        logger.warning("Invalid BEDROCK_TIMEOUT_SECONDS '%s', defaulting to 300", value)
        return 300


def get_store_backend() -> str:
    """Get the record store backend (dynamodb or memory)."""
    backend = os.getenv('STORE_BACKEND', 'dynamodb').lower()
    if backend not in VALID_STORE_BACKENDS:
        raise ConfigurationError(
            f"Unknown STORE_BACKEND '{backend}'. Supported: {', '.join(VALID_STORE_BACKENDS)}"
        )
    return backend


def get_channel_backend() -> str:
    """Get the dispatch channel backend (sns or memory)."""
    backend = os.getenv('CHANNEL_BACKEND', 'sns').lower()
    if backend not in VALID_CHANNEL_BACKENDS:
        raise ConfigurationError(
            f"Unknown CHANNEL_BACKEND '{backend}'. Supported: {', '.join(VALID_CHANNEL_BACKENDS)}"
        )
    return backend


def get_store_write_if_absent() -> bool:
    """Whether worker writes are conditional on the key being absent.

    Off by default: redelivered messages overwrite or duplicate records
    exactly as the queue delivers them.
    """
    return os.getenv('STORE_WRITE_IF_ABSENT', 'false').lower() == 'true'


def get_caller_identity_header() -> str:
    """Get the header the identity gate uses to forward the verified caller."""
    return os.getenv('CALLER_IDENTITY_HEADER', 'X-Authenticated-User')


def is_dev_mode() -> bool:
    """Check if the application is running in development mode.

    When DEV_MODE=true, requests without a caller identity are attributed to
    DEV_USER_ID and the in-process queue can be drained over HTTP.
    """
    return os.getenv('DEV_MODE', 'false').lower() == 'true'


def get_dev_user_id() -> str:
    """Get the identity assigned to unauthenticated requests in dev mode."""
    return os.getenv('DEV_USER_ID', 'dev-user')


def is_debug() -> bool:
    """Whether error responses may include exception details."""
    return os.getenv('DEBUG', 'false').lower() == 'true'


def get_log_level(default: str = 'INFO') -> str:
    """Get log level from LOG_LEVEL, falling back to the environment table's level.

    The environment table spells WARNING as WARN.
    """
    level = os.getenv('LOG_LEVEL', default).upper()
    if level == 'WARN':
        level = 'WARNING'
    valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']

    if level not in valid_levels:
        logger.warning(f"Invalid log level '{level}', defaulting to INFO")
        return 'INFO'

    return level


def get_env_source() -> Optional[str]:
    """Get the path from which .env was loaded, if any."""
    return _env_loaded_from


def get_dynamodb_endpoint_url() -> Optional[str]:
    """Get an alternate DynamoDB endpoint, e.g. http://localhost:8000 for DynamoDB Local."""
    return os.getenv('DYNAMODB_ENDPOINT_URL') or None


def should_create_table() -> bool:
    """Whether to create the DynamoDB table at startup if it is missing."""
    return os.getenv('DYNAMODB_CREATE_TABLE', 'false').lower() == 'true'
