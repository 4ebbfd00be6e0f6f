"""Shared pytest fixtures for IoT Device SDK tests."""

import pytest

from iot_device_sdk import ClientConfig, DeviceClient, ModuleClient
from iot_device_sdk.models import Message
from iot_device_sdk.reliability import BackoffParameters, ExponentialBackoffWithJitter
from tests.helpers.fake_transport import (
    FakeBlobUploader,
    FakeCredentialsProvider,
    FakeTransport,
)


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: end-to-end scenarios over the fake transport")
    config.addinivalue_line("markers", "unit: isolated unit tests")
    config.addinivalue_line("markers", "slow: tests that sleep for real")


def pytest_collection_modifyitems(config, items):
    for item in items:
        if "/unit/" in str(item.fspath).replace("\\", "/"):
            item.add_marker(pytest.mark.unit)


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Mock environment variables for testing."""
    env_vars = {
        "IOTHUB_DEVICE_MAX_OPERATION_TIMEOUT": "30",
        "IOTHUB_DEVICE_IMMEDIATE_FIRST_RETRY": "false",
        "IOTHUB_DEVICE_DIAGNOSTIC_SAMPLING_PERCENTAGE": "25",
        "IOTHUB_DEVICE_PRODUCT_INFO": "test-device/1.0",
    }
    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)
    return env_vars


@pytest.fixture
def fast_retry_policy():
    """Default policy with millisecond backoff."""
    fast = BackoffParameters(c=0.001, c_min=0.001, c_max=0.005)
    return ExponentialBackoffWithJitter(
        normal_parameters=fast,
        throttled_parameters=BackoffParameters(c=0.001, c_min=0.002, c_max=0.01),
    )


@pytest.fixture
def test_config():
    return ClientConfig(max_operation_timeout=5)


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def blob_uploader():
    return FakeBlobUploader()


@pytest.fixture
def credentials_provider():
    return FakeCredentialsProvider()


@pytest.fixture
def device_client(fake_transport, test_config, fast_retry_policy, blob_uploader):
    """Device client over the fake transport."""
    return DeviceClient(
        fake_transport,
        config=test_config,
        retry_policy=fast_retry_policy,
        blob_uploader=blob_uploader,
    )


@pytest.fixture
def module_client(fake_transport, test_config, fast_retry_policy):
    """Module client over the fake transport."""
    return ModuleClient(fake_transport, config=test_config, retry_policy=fast_retry_policy)


@pytest.fixture
def sample_message():
    return Message(data=b'{"temperature": 21.5}', content_type="application/json")
