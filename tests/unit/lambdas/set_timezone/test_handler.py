import json
from datetime import datetime, UTC
from typing import cast
from unittest.mock import MagicMock

import pytest
from pytest import MonkeyPatch
from freezegun import freeze_time

from hitquota.types import LambdaEvent, LambdaContext, LambdaConfiguration
from hitquota.lambdas.set_timezone import app
from hitquota.models import UserModel, ResetJobModel
from hitquota.dao.base import UserBaseDAO, ResetJobBaseDAO
from hitquota.dao.exceptions import UserDoesNotExistError


def make_event(body: str | None) -> LambdaEvent:
    return cast(
        LambdaEvent,
        {
            'body': body,
            'resource': '/v1/users/me/timezone',
            'headers': {'User-Agent': 'pytest', 'Authorization': 'Bearer fake-jwt-token'},
            'httpMethod': 'PUT',
            'path': '/v1/users/me/timezone',
            'requestContext': {
                'resourcePath': '/v1/users/me/timezone',
                'httpMethod': 'PUT',
                'domainName': 'testhost:1000',
                'stage': 'test',
                'authorizer': {'claims': {'sub': 'user123', 'email': 'pytest@example.com'}},
            },
        },
    )


class TestSetTimezoneHandler:
    @pytest.fixture(autouse=True)
    def frozen_time(self):
        with freeze_time('2025-10-15 12:00:00'):
            yield

    @pytest.fixture
    def context(self) -> LambdaContext:
        return cast(LambdaContext, {'function_name': 'set_timezone'})

    @pytest.fixture
    def config(self) -> LambdaConfiguration:
        return cast(LambdaConfiguration, {'redis': {'host': 'redis.test', 'port': 6379, 'db': 0}})

    @pytest.fixture
    def user_dao(self) -> UserBaseDAO:
        dao = cast(UserBaseDAO, MagicMock(spec=UserBaseDAO))
        dao.get.return_value = UserModel(
            user_id='user123',
            timezone='UTC',
            hits=42,
            reset_job_id='job1',
            resets_at=datetime(2025, 11, 1, tzinfo=UTC),
        )
        return dao

    @pytest.fixture
    def job_dao(self) -> ResetJobBaseDAO:
        dao = cast(ResetJobBaseDAO, MagicMock(spec=ResetJobBaseDAO))
        dao.schedule.side_effect = lambda user_id, run_at: ResetJobModel(job_id='job2', user_id=user_id, run_at=run_at)
        return dao

    @pytest.fixture(autouse=True)
    def setup(
        self,
        monkeypatch: MonkeyPatch,
        context: LambdaContext,
        config: LambdaConfiguration,
        user_dao: UserBaseDAO,
        job_dao: ResetJobBaseDAO,
    ) -> None:
        # Patch Lambda dependencies
        monkeypatch.setattr(app, 'load_config', lambda *a, **kw: self.config)
        monkeypatch.setattr(app, 'UserRedisDAO', lambda *a, **kw: self.user_dao)
        monkeypatch.setattr(app, 'ResetJobRedisDAO', lambda *a, **kw: self.job_dao)

        self.context = context
        self.config = config
        self.user_dao = user_dao
        self.job_dao = job_dao

    def test_lambda_handler(self) -> None:
        response = app.lambda_handler(make_event(json.dumps({'timezone': 'Asia/Tokyo'})), self.context)
        body = json.loads(response['body'])

        assert response['statusCode'] == 200
        assert body == {
            'message': 'Timezone set to Asia/Tokyo',
            'timezone': 'Asia/Tokyo',
            'hits': 42,
            'resets_at': '2025-10-31T15:00:00Z',
        }

        # Assert the reset job moved to the new local month start
        run_at = datetime(2025, 10, 31, 15, 0, tzinfo=UTC)
        self.user_dao.update_timezone.assert_called_once_with(user_id='user123', timezone='Asia/Tokyo')
        self.job_dao.schedule.assert_called_once_with('user123', run_at)
        self.user_dao.set_reset_job.assert_called_once_with('user123', ResetJobModel(job_id='job2', user_id='user123', run_at=run_at))
        self.job_dao.cancel.assert_called_once_with('job1')

        # Assert the hit counter was kept
        self.user_dao.reset_hits.assert_not_called()

    def test_lambda_handler_with_unchanged_timezone(self) -> None:
        response = app.lambda_handler(make_event(json.dumps({'timezone': 'UTC'})), self.context)
        body = json.loads(response['body'])

        assert response['statusCode'] == 200
        assert body['resets_at'] == '2025-11-01T00:00:00Z'
        self.user_dao.update_timezone.assert_not_called()
        self.job_dao.schedule.assert_not_called()
        self.job_dao.cancel.assert_not_called()

    def test_lambda_handler_registers_new_user_in_timezone(self) -> None:
        self.user_dao.get.side_effect = UserDoesNotExistError("User with ID 'user123' does not exist.")

        response = app.lambda_handler(make_event(json.dumps({'timezone': 'America/New_York'})), self.context)
        body = json.loads(response['body'])

        assert response['statusCode'] == 200
        assert body['timezone'] == 'America/New_York'
        assert body['hits'] == 0
        assert body['resets_at'] == '2025-11-01T04:00:00Z'
        self.user_dao.insert.assert_called_once_with(UserModel(user_id='user123', timezone='America/New_York'))
        self.job_dao.schedule.assert_called_once()
        self.user_dao.update_timezone.assert_not_called()

    @pytest.mark.parametrize('request_body', [None, '{}', json.dumps({'timezone': ''}), json.dumps({'timezone': None})])
    def test_lambda_handler_with_missing_timezone(self, request_body) -> None:
        response = app.lambda_handler(make_event(request_body), self.context)
        body = json.loads(response['body'])

        assert response['statusCode'] == 400
        assert body['message'] == "Bad Request (missing 'timezone' in JSON body)"
        assert body['errorCode'] == 'MISSING_TIMEZONE'

    @pytest.mark.parametrize(
        'timezone, message',
        [
            ('Mars/Olympus_Mons', "Bad Request (unknown timezone 'Mars/Olympus_Mons')"),
            (42, 'Bad Request (unknown timezone 42)'),
            (['Asia/Tokyo'], "Bad Request (unknown timezone ['Asia/Tokyo'])"),
        ],
    )
    def test_lambda_handler_with_invalid_timezone(self, timezone, message: str) -> None:
        response = app.lambda_handler(make_event(json.dumps({'timezone': timezone})), self.context)
        body = json.loads(response['body'])

        assert response['statusCode'] == 400
        assert body['message'] == message
        assert body['errorCode'] == 'INVALID_TIMEZONE'
        self.user_dao.update_timezone.assert_not_called()

    def test_lambda_handler_with_invalid_json(self) -> None:
        response = app.lambda_handler(make_event('{"timezone": "Asia/Tokyo"'), self.context)
        body = json.loads(response['body'])

        assert response['statusCode'] == 400
        assert body['errorCode'] == 'INVALID_JSON_BODY'

    def test_lambda_handler_with_unauthorized_access_attempt(self) -> None:
        event = make_event(json.dumps({'timezone': 'Asia/Tokyo'}))
        del event['requestContext']['authorizer']

        response = app.lambda_handler(event, self.context)
        body = json.loads(response['body'])

        assert response['statusCode'] == 401
        assert body['errorCode'] == 'MISSING_USER_ID'

    @pytest.mark.parametrize(
        'timezone, resets_at',
        [
            ('America/Los_Angeles', '2025-12-01T08:00:00Z'),
            ('Pacific/Honolulu', '2025-12-01T10:00:00Z'),
            ('Asia/Tokyo', '2025-11-30T15:00:00Z'),
        ],
    )
    def test_lambda_handler_right_after_reset(self, timezone: str, resets_at: str) -> None:
        # Reset at 2025-11-01T00:00Z, so November is already under way in UTC
        self.user_dao.get.return_value = UserModel(
            user_id='user123',
            timezone='UTC',
            hits=1,
            reset_job_id='job1',
            resets_at=datetime(2025, 12, 1, tzinfo=UTC),
        )

        with freeze_time('2025-11-01 00:30:00'):
            response = app.lambda_handler(make_event(json.dumps({'timezone': timezone})), self.context)
        body = json.loads(response['body'])

        # West of UTC it is still October, but the November reset already happened
        assert response['statusCode'] == 200
        assert body['resets_at'] == resets_at
        self.job_dao.schedule.assert_called_once_with('user123', datetime.fromisoformat(resets_at))
        self.job_dao.cancel.assert_called_once_with('job1')
