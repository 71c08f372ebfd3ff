"""Shared fixtures: mocked AWS, planner tables, fake clock."""
import os

import boto3
import pytest
from moto import mock_aws

from planner.models import Event, PointOfContact
from storage.cache import CacheGate, InMemoryKeyValueStore
from storage.dynamodb_manager import KEY_ATTRIBUTES, DynamoDBManager

TABLE_PREFIX = 'test-eventflow'


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Fake credentials so boto3 never reaches a real account."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_SECURITY_TOKEN', 'testing')
    monkeypatch.setenv('AWS_SESSION_TOKEN', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')


def create_tables(prefix: str = TABLE_PREFIX) -> None:
    dynamodb = boto3.resource('dynamodb', region_name='us-east-1')
    for collection, key_name in KEY_ATTRIBUTES.items():
        dynamodb.create_table(
            TableName=f"{prefix}-{collection}",
            KeySchema=[{'AttributeName': key_name, 'KeyType': 'HASH'}],
            AttributeDefinitions=[{'AttributeName': key_name, 'AttributeType': 'S'}],
            BillingMode='PAY_PER_REQUEST',
        )


@pytest.fixture
def dynamodb_tables():
    """Create mock planner tables for testing."""
    with mock_aws():
        create_tables()
        yield


@pytest.fixture
def dynamodb_manager(dynamodb_tables):
    """Create DynamoDBManager instance over the mock tables."""
    return DynamoDBManager(TABLE_PREFIX)


class FakeClock:
    """Controllable epoch clock in seconds."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def kv_store():
    return InMemoryKeyValueStore()


@pytest.fixture
def cache_gate(kv_store, clock):
    return CacheGate(kv_store, timeout=600, clock=clock)


def make_event(**overrides) -> Event:
    fields = dict(
        id='E',
        name='Spring Bootcamp',
        date='2025-06-15',
        time='09:00',
        event_end_time='11:00',
        location='Riverside Park',
        point_of_contact=PointOfContact(name='Sam Rivera', email='sam@example.com'),
        event_purpose='Outdoor strength session for members',
        marketing_channels=[],
        ticketing_needs='no',
        gems_details='',
        profile_type='team',
        created_by='user-1',
        created_at='2025-04-01T12:00:00+00:00',
        updated_at='2025-04-01T12:00:00+00:00',
    )
    fields.update(overrides)
    return Event(**fields)


@pytest.fixture
def sample_event():
    return make_event()
