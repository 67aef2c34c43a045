import pytest

from fake_control_plane import FakeControlPlane
from shellrt.config import RuntimeConfig


@pytest.fixture
def control_plane():
    server = FakeControlPlane().start()
    yield server
    server.close()


@pytest.fixture
def config(control_plane):
    return RuntimeConfig(runtime_api=control_plane.address).with_backoff(0.001, 0.004)
