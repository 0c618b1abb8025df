import pytest

from force_bulk_manager.core.utils.config import BulkSettings

from fakes import FakeBulkApi, RecordingSleep


@pytest.fixture
def fake_api():
    return FakeBulkApi()


@pytest.fixture
def fast_settings():
    return BulkSettings(
        poll_interval=0.001,
        backoff_factor=2.0,
        max_poll_interval=0.004,
        settle_delay=0.0,
        max_poll_failures=3,
        retry_attempts=2,
        retry_min_wait=0,
        retry_max_wait=0,
    )


@pytest.fixture
def recording_sleep():
    return RecordingSleep()
