import json
from datetime import datetime, UTC
from typing import cast
from unittest.mock import MagicMock

import pytest
from pytest import MonkeyPatch
from freezegun import freeze_time

from hitquota.types import LambdaEvent, LambdaContext, LambdaConfiguration
from hitquota.exceptions import MissingEnvironmentVariableError
from hitquota.lambdas.usage import app
from hitquota.models import UserModel, HitModel, ResetJobModel
from hitquota.dao.base import UserBaseDAO, HitBaseDAO, ResetJobBaseDAO
from hitquota.dao.exceptions import UserDoesNotExistError


@pytest.fixture
def usage_event() -> LambdaEvent:
    return cast(
        LambdaEvent,
        {
            'body': None,
            'resource': '/v1/usage',
            'headers': {'User-Agent': 'pytest', 'Authorization': 'Bearer fake-jwt-token'},
            'httpMethod': 'GET',
            'path': '/v1/usage',
            'queryStringParameters': None,
            'requestContext': {
                'resourcePath': '/v1/usage',
                'httpMethod': 'GET',
                'domainName': 'testhost:1000',
                'stage': 'test',
                'authorizer': {'claims': {'sub': 'user123', 'email': 'pytest@example.com'}},
            },
        },
    )


class TestUsageHandler:
    @pytest.fixture(autouse=True)
    def frozen_time(self):
        with freeze_time('2025-10-15 12:00:00'):
            yield

    @pytest.fixture
    def context(self) -> LambdaContext:
        return cast(LambdaContext, {'function_name': 'usage'})

    @pytest.fixture
    def config(self) -> LambdaConfiguration:
        return cast(LambdaConfiguration, {'redis': {'host': 'redis.test', 'port': 6379, 'db': 0}})

    @pytest.fixture
    def user_dao(self) -> UserBaseDAO:
        dao = cast(UserBaseDAO, MagicMock(spec=UserBaseDAO))
        dao.get.return_value = UserModel(
            user_id='user123',
            timezone='Asia/Tokyo',
            hits=42,
            reset_job_id='job1',
            resets_at=datetime(2025, 10, 31, 15, 0, tzinfo=UTC),
        )
        return dao

    @pytest.fixture
    def hit_dao(self) -> HitBaseDAO:
        dao = cast(HitBaseDAO, MagicMock(spec=HitBaseDAO))
        dao.list_hits.return_value = [
            HitModel(user_id='user123', endpoint='/v1/reports', hit_id='h1', created_at=datetime(2025, 10, 2, 8, 0, tzinfo=UTC)),
            HitModel(user_id='user123', endpoint='/v1/export', hit_id='h2', created_at=datetime(2025, 10, 3, 9, 30, tzinfo=UTC)),
        ]
        return dao

    @pytest.fixture
    def job_dao(self) -> ResetJobBaseDAO:
        dao = cast(ResetJobBaseDAO, MagicMock(spec=ResetJobBaseDAO))
        dao.schedule.side_effect = lambda user_id, run_at: ResetJobModel(job_id='job-new', user_id=user_id, run_at=run_at)
        return dao

    @pytest.fixture(autouse=True)
    def setup(
        self,
        monkeypatch: MonkeyPatch,
        context: LambdaContext,
        config: LambdaConfiguration,
        user_dao: UserBaseDAO,
        hit_dao: HitBaseDAO,
        job_dao: ResetJobBaseDAO,
    ) -> None:
        # Patch Lambda dependencies
        monkeypatch.setattr(app, 'load_config', lambda *a, **kw: self.config)
        monkeypatch.setattr(app, 'UserRedisDAO', lambda *a, **kw: self.user_dao)
        monkeypatch.setattr(app, 'HitRedisDAO', lambda *a, **kw: self.hit_dao)
        monkeypatch.setattr(app, 'ResetJobRedisDAO', lambda *a, **kw: self.job_dao)

        self.context = context
        self.config = config
        self.user_dao = user_dao
        self.hit_dao = hit_dao
        self.job_dao = job_dao

    def test_lambda_handler(self, usage_event: LambdaEvent) -> None:
        response = app.lambda_handler(usage_event, self.context)
        body = json.loads(response['body'])

        assert response['statusCode'] == 200
        assert body == {
            'hits': 42,
            'quota': 1000,
            'remaining': 958,
            'timezone': 'Asia/Tokyo',
            'period': '2025-10',
            'period_start': '2025-09-30T15:00:00Z',
            'resets_at': '2025-10-31T15:00:00Z',
        }
        self.hit_dao.list_hits.assert_not_called()
        self.user_dao.hit.assert_not_called()

    @pytest.mark.parametrize('flag', ['true', '1', 'YES'])
    def test_lambda_handler_with_hit_records(self, usage_event: LambdaEvent, flag: str) -> None:
        usage_event['queryStringParameters'] = {'include_hits': flag}

        response = app.lambda_handler(usage_event, self.context)
        body = json.loads(response['body'])

        assert response['statusCode'] == 200
        assert body['hit_records'] == [
            {'hit_id': 'h1', 'endpoint': '/v1/reports', 'created_at': '2025-10-02T08:00:00Z'},
            {'hit_id': 'h2', 'endpoint': '/v1/export', 'created_at': '2025-10-03T09:30:00Z'},
        ]
        self.hit_dao.list_hits.assert_called_once_with(user_id='user123', since=datetime(2025, 9, 30, 15, 0, tzinfo=UTC))

    def test_lambda_handler_ignores_other_flags(self, usage_event: LambdaEvent) -> None:
        usage_event['queryStringParameters'] = {'include_hits': 'no'}

        body = json.loads(app.lambda_handler(usage_event, self.context)['body'])

        assert 'hit_records' not in body
        self.hit_dao.list_hits.assert_not_called()

    def test_lambda_handler_with_exceeded_quota(self, usage_event: LambdaEvent) -> None:
        self.config['quota'] = {'monthly_hits': 10}

        body = json.loads(app.lambda_handler(usage_event, self.context)['body'])

        assert body['hits'] == 42
        assert body['quota'] == 10
        assert body['remaining'] == 0

    def test_lambda_handler_registers_new_user(self, usage_event: LambdaEvent) -> None:
        self.user_dao.get.side_effect = UserDoesNotExistError("User with ID 'user123' does not exist.")

        response = app.lambda_handler(usage_event, self.context)
        body = json.loads(response['body'])

        assert response['statusCode'] == 200
        assert body['hits'] == 0
        assert body['remaining'] == 1000
        assert body['timezone'] == 'UTC'
        assert body['period_start'] == '2025-10-01T00:00:00Z'
        assert body['resets_at'] == '2025-11-01T00:00:00Z'
        self.user_dao.insert.assert_called_once_with(UserModel(user_id='user123'))

    def test_lambda_handler_with_unauthorized_access_attempt(self, usage_event: LambdaEvent) -> None:
        del usage_event['requestContext']['authorizer']

        response = app.lambda_handler(usage_event, self.context)
        body = json.loads(response['body'])

        assert response['statusCode'] == 401
        assert body['message'] == "Unauthorized (missing 'sub' in JWT claims)"
        assert body['errorCode'] == 'MISSING_USER_ID'

    def test_lambda_handler_with_missing_appconfig_environment(self, monkeypatch: MonkeyPatch, usage_event: LambdaEvent) -> None:
        monkeypatch.setattr(app, 'load_config', MagicMock(side_effect=MissingEnvironmentVariableError("'APPCONFIG_APP_ID'")))

        response = app.lambda_handler(usage_event, self.context)
        body = json.loads(response['body'])

        assert response['statusCode'] == 500
        assert body['errorCode'] == 'CONFIGURATION_ERROR'
