"""Pytest configuration and fixtures."""

import json
import os
from datetime import datetime, timedelta, timezone

import pytest

# Set environment variables before imports
os.environ["TABLE_NAME"] = "deckly-test"
os.environ["STAGE"] = "test"
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ.pop("POSTHOG_KEY", None)

OWNER_ID = "test-user-123"


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2026, 3, 11, 12, 0, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float = 0, **kwargs) -> datetime:
        self.current += timedelta(seconds=seconds, **kwargs)
        return self.current

    def set(self, value: datetime) -> None:
        self.current = value


@pytest.fixture
def clock():
    """Controllable clock starting Wednesday 2026-03-11 12:00 UTC."""
    return FakeClock()


@pytest.fixture
def aws_credentials():
    """Mock AWS credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"


@pytest.fixture
def dynamodb_table(aws_credentials):
    """Create mocked DynamoDB table."""
    import boto3
    from moto import mock_aws

    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name="us-east-1")

        table = dynamodb.create_table(
            TableName="deckly-test",
            KeySchema=[
                {"AttributeName": "PK", "KeyType": "HASH"},
                {"AttributeName": "SK", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "PK", "AttributeType": "S"},
                {"AttributeName": "SK", "AttributeType": "S"},
                {"AttributeName": "GSI1PK", "AttributeType": "S"},
                {"AttributeName": "GSI1SK", "AttributeType": "S"},
            ],
            GlobalSecondaryIndexes=[
                {
                    "IndexName": "GSI1",
                    "KeySchema": [
                        {"AttributeName": "GSI1PK", "KeyType": "HASH"},
                        {"AttributeName": "GSI1SK", "KeyType": "RANGE"},
                    ],
                    "Projection": {"ProjectionType": "ALL"},
                },
            ],
            BillingMode="PAY_PER_REQUEST",
        )

        table.wait_until_exists()

        yield table


@pytest.fixture
def settings():
    """Settings pointing at the mocked table."""
    from deckly.config import AnalyticsSettings

    return AnalyticsSettings(table_name="deckly-test", stage="test")


@pytest.fixture
def sample_deck():
    """A three page deck owned by the test user."""
    from deckly.models.deck import Deck

    return Deck(
        id="deck-001",
        user_id=OWNER_ID,
        title="Series A Pitch",
        slug="series-a",
        page_count=3,
    )


@pytest.fixture
def seeded_deck(dynamodb_table, sample_deck):
    """The sample deck, stored in the mocked table."""
    from deckly.repositories.deck import DeckRepository

    DeckRepository("deckly-test").create(sample_deck)
    return sample_deck


@pytest.fixture
def api_gateway_event():
    """Create a sample authenticated API Gateway event."""
    def _create_event(
        method: str = "GET",
        path: str = "/",
        path_params: dict = None,
        query_params: dict = None,
        body: dict = None,
        user_id: str | None = OWNER_ID,
        tier: str = "FREE",
    ):
        authorizer = {"tier": tier}
        if user_id:
            authorizer["userId"] = user_id

        return {
            "httpMethod": method,
            "path": path,
            "pathParameters": path_params or {},
            "queryStringParameters": query_params or {},
            "body": json.dumps(body) if body else None,
            "headers": {
                "Authorization": "Bearer test-token",
                "Content-Type": "application/json",
            },
            "requestContext": {"authorizer": authorizer},
        }

    return _create_event
