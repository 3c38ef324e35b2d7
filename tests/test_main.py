import logging
import textwrap

import pytest

from healthprobe import main as main_module
from healthprobe.main import EXIT_BIND_ERROR, EXIT_CONFIG_ERROR, main


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


def write_config(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(textwrap.dedent(text), encoding="utf-8")
    return str(path)


def test_bind_failure_exits_1(tmp_path, occupied_port):
    path = write_config(tmp_path, f"""
        address: 127.0.0.1
        port: {occupied_port}
    """)
    assert main(["--config", path]) == EXIT_BIND_ERROR


def test_duplicate_check_names_exit_2(tmp_path):
    path = write_config(tmp_path, """
        port: 0
        checks:
          - name: db
            probe: tests.conftest:always_ok
          - name: db
            probe: tests.conftest:always_down
    """)
    assert main(["--config", path]) == EXIT_CONFIG_ERROR


def test_malformed_config_exits_2(tmp_path, capsys):
    path = write_config(tmp_path, "port: [\n")
    assert main(["--config", path]) == EXIT_CONFIG_ERROR
    assert "설정 파일 로드 실패" in capsys.readouterr().err


def test_run_returns_0_after_stop(registry):
    registry.freeze()
    server = main_module.HealthServer(registry, address="127.0.0.1", port=0)
    server.bind()
    stop = main_module.threading.Event()
    stop.set()

    assert main_module.run(server, stop) == 0
    assert server.shutdown() is True
