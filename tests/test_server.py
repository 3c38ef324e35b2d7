import threading
import time

import pytest
import requests

from healthprobe.errors import BindError, ConfigError, RegistryFrozenError
from healthprobe.server import HealthServer, ServeOptions
from tests.conftest import always_down, always_ok


@pytest.fixture
def client_for():
    def make(registry, **kwargs):
        server = HealthServer(registry, **kwargs)
        return server.app.test_client()
    return make


def test_timed_out_critical_check_returns_503(registry, hanging_probe, client_for):
    registry.register("db", 1, always_ok)
    registry.register("cache", 0.05, hanging_probe)
    client = client_for(registry)

    started = time.monotonic()
    response = client.get("/healthz")
    elapsed = time.monotonic() - started

    assert response.status_code == 503
    assert elapsed < 0.5
    body = response.get_data(as_text=True)
    assert "db: Healthy" in body
    assert "cache: TimedOut" in body
    assert response.headers["X-Health-Status"] == "Unhealthy"
    assert response.mimetype == "text/plain"


def test_empty_registry_returns_200_no_checks(registry, client_for):
    response = client_for(registry).get("/healthz")

    assert response.status_code == 200
    assert response.get_data(as_text=True) == "no checks\n"
    assert response.headers["X-Health-Status"] == "Healthy"


def test_non_critical_failure_is_degraded_200(registry, client_for):
    registry.register("db", 1, always_ok)
    registry.register("search", 1, always_down, critical=False)

    response = client_for(registry).get("/healthz")

    assert response.status_code == 200
    assert response.headers["X-Health-Status"] == "Degraded"
    lines = response.get_data(as_text=True).splitlines()
    assert lines[0].startswith("db: Healthy (")
    assert lines[1].startswith("search: Unhealthy (")
    assert lines[1].endswith("ms) - connection refused")


def test_every_check_failing_still_answers(registry, client_for):
    def explode():
        raise RuntimeError("boom")

    registry.register("a", 1, explode)
    registry.register("b", 1, always_down)

    response = client_for(registry).get("/healthz")

    assert response.status_code == 503
    assert "a: Unhealthy" in response.get_data(as_text=True)
    assert "- boom" in response.get_data(as_text=True)


def test_json_format(registry, client_for):
    registry.register("db", 1, always_ok)
    registry.register("search", 1, always_down, critical=False)

    response = client_for(registry).get("/healthz?format=json")

    assert response.status_code == 200
    payload = response.get_json()
    assert payload["status"] == "Degraded"
    assert [c["name"] for c in payload["checks"]] == ["db", "search"]
    assert payload["checks"][1]["detail"] == "connection refused"
    assert payload["checks"][1]["critical"] is False


def test_head_returns_status_without_body(registry, client_for):
    registry.register("db", 1, always_down)

    response = client_for(registry).head("/healthz")

    assert response.status_code == 503
    assert response.get_data() == b""
    assert response.headers["X-Health-Status"] == "Unhealthy"


def test_custom_paths(registry, client_for):
    client = client_for(registry, path="/ready", livez_path="/alive")

    assert client.get("/ready").status_code == 200
    assert client.get("/alive").get_data(as_text=True) == "OK"
    assert client.get("/healthz").status_code == 404


def test_livez_does_not_run_checks(registry, client_for):
    calls = []

    def probe():
        calls.append(1)

    registry.register("db", 1, probe)
    response = client_for(registry).get("/livez")

    assert response.status_code == 200
    assert response.get_data(as_text=True) == "OK"
    assert calls == []


def test_unknown_path_is_404(registry, client_for):
    response = client_for(registry).get("/nope")

    assert response.status_code == 404
    assert "/healthz" in response.get_data(as_text=True)


def test_same_path_for_both_endpoints_is_rejected(registry):
    with pytest.raises(ConfigError):
        HealthServer(registry, path="/healthz", livez_path="/healthz")


def test_bind_to_occupied_port_fails(registry, occupied_port):
    server = HealthServer(registry, address="127.0.0.1", port=occupied_port)

    with pytest.raises(BindError) as exc_info:
        server.bind()

    assert exc_info.value.port == occupied_port
    assert isinstance(exc_info.value.cause, OSError)


def test_bind_to_unresolvable_host_fails(registry):
    server = HealthServer(registry, address="host.invalid", port=0)

    with pytest.raises(BindError):
        server.bind()


def test_serve_and_shutdown_over_real_socket(registry):
    registry.register("db", 1, always_ok)
    registry.freeze()
    server = HealthServer(registry, address="127.0.0.1", port=0,
                          options=ServeOptions(drain_timeout=2.0))
    port = server.bind()
    assert port != 0

    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        response = requests.get(f"http://127.0.0.1:{port}/healthz", timeout=5)
        assert response.status_code == 200
        assert response.text.startswith("db: Healthy (")

        livez = requests.get(f"http://127.0.0.1:{port}/livez", timeout=5)
        assert livez.text == "OK"
    finally:
        assert server.shutdown() is True
        thread.join(timeout=5)

    assert not thread.is_alive()
    assert server.shutdown() is True
    with pytest.raises(requests.exceptions.ConnectionError):
        requests.get(f"http://127.0.0.1:{port}/healthz", timeout=1)


def test_concurrent_requests_are_independent(registry):
    def slow():
        time.sleep(0.2)

    registry.register("slow", 1, slow)
    registry.freeze()
    server = HealthServer(registry, address="127.0.0.1", port=0)
    port = server.bind()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()

    codes = []

    def fetch():
        codes.append(requests.get(f"http://127.0.0.1:{port}/healthz", timeout=5).status_code)

    try:
        started = time.monotonic()
        clients = [threading.Thread(target=fetch) for _ in range(4)]
        for client in clients:
            client.start()
        for client in clients:
            client.join()
        elapsed = time.monotonic() - started
    finally:
        server.shutdown()
        thread.join(timeout=5)

    assert codes == [200, 200, 200, 200]
    assert elapsed < 0.7


def test_shutdown_drains_in_flight_request(registry):
    entered = threading.Event()

    def slow():
        entered.set()
        time.sleep(0.3)

    registry.register("slow", 1, slow)
    server = HealthServer(registry, address="127.0.0.1", port=0,
                          options=ServeOptions(drain_timeout=3.0))
    port = server.bind()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()

    responses = []

    def fetch():
        responses.append(requests.get(f"http://127.0.0.1:{port}/healthz", timeout=5))

    client = threading.Thread(target=fetch)
    client.start()
    assert entered.wait(5)

    assert server.shutdown() is True
    client.join(timeout=5)
    thread.join(timeout=5)

    assert len(responses) == 1
    assert responses[0].status_code == 200


def test_shutdown_before_serving_closes_socket(registry):
    server = HealthServer(registry, address="127.0.0.1", port=0)
    server.bind()

    assert server.shutdown() is True
    with pytest.raises(BindError):
        server.bind()


def test_multiline_detail_stays_on_one_line(registry, client_for):
    def refused():
        raise RuntimeError(
            "connection failed: refused\n\tIs the server running?\nother: Healthy (0ms)"
        )

    registry.register("db", 1, refused)
    client = client_for(registry)

    lines = client.get("/healthz").get_data(as_text=True).splitlines()

    assert len(lines) == 1
    assert lines[0].startswith("db: Unhealthy (")
    assert lines[0].endswith(
        "- connection failed: refused Is the server running? other: Healthy (0ms)"
    )

    payload = client.get("/healthz?format=json").get_json()
    assert payload["checks"][0]["detail"] == (
        "connection failed: refused\n\tIs the server running?\nother: Healthy (0ms)"
    )


def test_request_counts_as_in_flight_until_response_is_closed(registry):
    registry.register("db", 1, always_ok)
    server = HealthServer(registry)
    client = server.app.test_client()

    response = client.get("/healthz", buffered=False)
    assert server.inflight_requests == 1

    response.close()
    assert server.inflight_requests == 0


def test_bind_freezes_registry(registry):
    registry.register("db", 1, always_ok)
    server = HealthServer(registry, address="127.0.0.1", port=0)
    server.bind()
    try:
        assert registry.frozen
        with pytest.raises(RegistryFrozenError):
            registry.register("late", 1, always_ok)
    finally:
        server.shutdown()
