import pytest
from pytest import MonkeyPatch

from hitquota.constants import ENV


@pytest.fixture(autouse=True)
def deployed_environment(monkeypatch: MonkeyPatch) -> None:
    """Run handlers as if deployed, so errors turn into responses instead of being re-raised."""
    monkeypatch.setenv(ENV.App.APP_ENV, 'test')
    monkeypatch.setenv(ENV.App.APP_NAME, 'testapp')
    monkeypatch.delenv(ENV.App.AWS_SAM_LOCAL, raising=False)
