"""Per-client rate limiting for the public tracking endpoint.

Counters live in the main table under ``RATELIMIT#`` partition keys and
expire through the table's ``ttl`` attribute.
"""

import os
import time
from typing import NamedTuple

import boto3
import structlog
from botocore.exceptions import ClientError

logger = structlog.get_logger()


class RateLimitResult(NamedTuple):
    """Result of a rate limit check."""

    allowed: bool
    requests_remaining: int
    retry_after: int | None  # Seconds until limit resets


class _Window(NamedTuple):
    name: str
    seconds: int
    limit: int


def _get_table(table_name: str | None = None):
    name = table_name or os.environ.get("TABLE_NAME", "deckly-dev")
    return boto3.resource("dynamodb").Table(name)


def check_rate_limit(
    identifier: str,
    action: str,
    requests_per_minute: int,
    requests_per_hour: int,
    table_name: str | None = None,
) -> RateLimitResult:
    """Count a request against fixed minute and hour windows.

    Fails open: if DynamoDB errors, the request is allowed and the error logged.

    Args:
        identifier: Client identifier (usually the client IP).
        action: Action being limited (e.g. "page_view").
        requests_per_minute: Max requests per minute.
        requests_per_hour: Max requests per hour.
        table_name: Table override; defaults to TABLE_NAME.

    Returns:
        RateLimitResult with allowed status and remaining requests.
    """
    table = _get_table(table_name)
    now = int(time.time())
    windows = (
        _Window("MIN", 60, requests_per_minute),
        _Window("HOUR", 3600, requests_per_hour),
    )

    remaining = []
    try:
        for window in windows:
            bucket = now // window.seconds
            response = table.update_item(
                Key={"PK": f"RATELIMIT#{action}#{window.name}#{bucket}", "SK": identifier},
                UpdateExpression="SET #count = if_not_exists(#count, :zero) + :inc, #ttl = :ttl",
                ExpressionAttributeNames={"#count": "count", "#ttl": "ttl"},
                ExpressionAttributeValues={
                    ":zero": 0,
                    ":inc": 1,
                    ":ttl": now + window.seconds * 2,
                },
                ReturnValues="ALL_NEW",
            )
            count = int(response["Attributes"]["count"])

            if count > window.limit:
                logger.warning(
                    "Rate limit exceeded",
                    identifier=identifier[:20],
                    action=action,
                    window=window.name,
                    count=count,
                    limit=window.limit,
                )
                return RateLimitResult(
                    allowed=False,
                    requests_remaining=0,
                    retry_after=window.seconds - (now % window.seconds),
                )
            remaining.append(window.limit - count)

    except ClientError as e:
        logger.error(
            "Rate limiter DynamoDB error",
            error=str(e),
            identifier=identifier[:20],
            action=action,
        )
        return RateLimitResult(allowed=True, requests_remaining=-1, retry_after=None)

    return RateLimitResult(allowed=True, requests_remaining=min(remaining), retry_after=None)


def get_client_ip(event: dict) -> str:
    """Extract the client IP from an API Gateway event.

    X-Forwarded-For (first hop) wins over the API Gateway source IP.
    """
    headers = event.get("headers", {}) or {}
    identity = (event.get("requestContext", {}) or {}).get("identity", {}) or {}

    forwarded_for = headers.get("X-Forwarded-For") or headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    return identity.get("sourceIp", "unknown")
