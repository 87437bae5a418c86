from unittest.mock import MagicMock

import pytest
import redis

from hitquota.constants import Transaction
from hitquota.dao.exceptions import DataStoreError
from hitquota.dao.redis.mixins import RedisClientMixin


class TestRedisClientMixin:
    redis_client: redis.Redis
    unhealthy_redis_client: redis.Redis

    @pytest.fixture
    def unhealthy_redis_client(self, redis_client: redis.Redis) -> redis.Redis:
        redis_client.ping.side_effect = redis.exceptions.ConnectionError('Connection error')
        return redis_client

    def test_healthcheck_passes_with_healthy_redis(self, redis_client: redis.Redis):
        RedisClientMixin(redis_client=redis_client, prefix='testapp:test')
        redis_client.ping.assert_called_once()  # initialization performs a healthcheck

    def test_healthcheck_fails_with_unhealthy_redis(self, unhealthy_redis_client: redis.Redis):
        with pytest.raises(DataStoreError, match="Can't connect to Redis at redis.test:6379/0"):
            RedisClientMixin(redis_client=unhealthy_redis_client, prefix='testapp:test')

    def test_healthcheck_without_raising(self, redis_client: redis.Redis):
        mixin = RedisClientMixin(redis_client=redis_client, prefix='testapp:test')
        redis_client.ping.side_effect = redis.exceptions.ConnectionError('Connection error')

        assert mixin._healthcheck(raise_error=False) is False

    def test_creates_client_from_connection_parameters(self, monkeypatch: pytest.MonkeyPatch, redis_client: redis.Redis):
        redis_cls = MagicMock(return_value=redis_client)
        monkeypatch.setattr(redis, 'Redis', redis_cls)

        mixin = RedisClientMixin(redis_host='redis.test', redis_port='6380', redis_db='2', redis_password='secret')

        redis_cls.assert_called_once_with(
            host='redis.test',
            port=6380,
            db=2,
            decode_responses=True,
            username=None,
            password='secret',
        )
        assert mixin.redis is redis_client
        assert mixin.keys.prefix is None

    def test_watch_transaction(self, redis_client: redis.Redis):
        mixin = RedisClientMixin(redis_client=redis_client, prefix='testapp:test')

        result = mixin._watch_transaction('testapp:test:key', lambda pipe: 'done')

        assert result == 'done'
        redis_client.watch.assert_called_once_with('testapp:test:key')

    def test_watch_transaction_retries_on_concurrent_write(self, redis_client: redis.Redis):
        mixin = RedisClientMixin(redis_client=redis_client, prefix='testapp:test')
        body = MagicMock(side_effect=[redis.exceptions.WatchError(), redis.exceptions.WatchError(), 'done'])

        assert mixin._watch_transaction('testapp:test:key', body) == 'done'
        assert body.call_count == 3

    def test_watch_transaction_gives_up(self, redis_client: redis.Redis):
        mixin = RedisClientMixin(redis_client=redis_client, prefix='testapp:test')
        body = MagicMock(side_effect=redis.exceptions.WatchError())

        with pytest.raises(DataStoreError, match="Transaction on 'testapp:test:key' aborted"):
            mixin._watch_transaction('testapp:test:key', body)
        assert body.call_count == Transaction.MAX_RETRIES

    def test_watch_transaction_propagates_body_errors(self, redis_client: redis.Redis):
        mixin = RedisClientMixin(redis_client=redis_client, prefix='testapp:test')

        with pytest.raises(ValueError):
            mixin._watch_transaction('testapp:test:key', MagicMock(side_effect=ValueError('boom')))
