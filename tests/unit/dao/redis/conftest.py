from unittest.mock import MagicMock

import pytest
import redis

from hitquota.dao.redis import RedisKeySchema


@pytest.fixture
def app_prefix() -> str:
    return 'testapp:test'


@pytest.fixture
def redis_client() -> redis.Redis:
    """Mock a Redis pipeline-compatible client."""
    client = MagicMock(spec=redis.client.Pipeline)
    client.connection_pool = MagicMock(
        spec=redis.ConnectionPool,
        connection_kwargs={'host': 'redis.test', 'port': 6379, 'db': 0},
    )
    client.exists.return_value = False
    client.pipeline.return_value = client
    client.__enter__.return_value = client
    client.__exit__.return_value = None
    return client


@pytest.fixture
def key_schema() -> RedisKeySchema:
    """Mock RedisKeySchema to return predictable key values."""
    mock = MagicMock(spec=RedisKeySchema)
    mock.user_key.side_effect = lambda user_id: f'testapp:test:users:{user_id}'
    mock.user_hits_key.side_effect = lambda user_id: f'testapp:test:users:{user_id}:hits'
    mock.reset_queue_key.return_value = 'testapp:test:jobs:reset:queue'
    mock.reset_job_key.side_effect = lambda job_id: f'testapp:test:jobs:reset:{job_id}'
    return mock
