import socket
import threading

import pytest

from healthprobe.errors import ProbeFailure
from healthprobe.models import ProbeOutcome
from healthprobe.registry import CheckRegistry


def always_ok():
    return None


def always_down():
    raise ProbeFailure("connection refused")


def degraded_outcome():
    return ProbeOutcome(healthy=False, detail="queue depth 5000")


not_callable = 42


@pytest.fixture
def release():
    """Event that hanging probes wait on; set at teardown so no thread outlives the test."""
    event = threading.Event()
    yield event
    event.set()


@pytest.fixture
def hanging_probe(release):
    def probe():
        release.wait(10)
        return True
    return probe


@pytest.fixture
def registry():
    return CheckRegistry()


@pytest.fixture
def free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def occupied_port():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(1)
    yield sock.getsockname()[1]
    sock.close()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in (
        "HEALTHPROBE_CONFIG_PATH",
        "HEALTHPROBE_ADDRESS",
        "HEALTHPROBE_PORT",
        "HEALTHPROBE_PATH",
        "LOG_LEVEL",
        "LOG_FORMAT",
    ):
        monkeypatch.delenv(var, raising=False)
