"""API Gateway (Lambda Proxy) response builders

Every error body has the shape {"message": ..., "errorCode": ...}.
"""

import json
from typing import Any

from hitquota.types import LambdaResponse


JSON_HEADERS = {'Content-Type': 'application/json'}


def response_200(body: dict[str, Any]) -> LambdaResponse:
    return {
        'statusCode': 200,
        'headers': dict(JSON_HEADERS),
        'body': json.dumps(body),
    }


def response_400(message: str | None = None, error_code: str | None = None) -> LambdaResponse:
    return _error_response(400, 'Bad Request', message, error_code)


def response_401(message: str | None = None, error_code: str | None = None) -> LambdaResponse:
    return _error_response(401, 'Unauthorized', message, error_code)


def response_429(*, retry_after: int, message: str | None = None, error_code: str | None = None) -> LambdaResponse:
    body = {'message': message or 'Too Many Requests'}
    if error_code:
        body['errorCode'] = error_code
    return {
        'statusCode': 429,
        'headers': {
            **JSON_HEADERS,
            'Retry-After': str(max(retry_after, 0)),
        },
        'body': json.dumps(body),
    }


def response_500(message: str | None = None, error_code: str | None = None) -> LambdaResponse:
    return _error_response(500, 'Internal Server Error', message, error_code)


def _error_response(status_code: int, base: str, message: str | None, error_code: str | None) -> LambdaResponse:
    body = {'message': base if not message else f'{base} ({message})'}
    if error_code:
        body['errorCode'] = error_code
    return {
        'statusCode': status_code,
        'headers': dict(JSON_HEADERS),
        'body': json.dumps(body),
    }
