#!/usr/bin/env python3
"""
헬스체크 메인 애플리케이션

설정을 읽어 체크를 등록하고 헬스체크 서버를 실행합니다.

실행 방법:
    healthprobe --config /etc/healthprobe/config.yaml

또는:
    python -m healthprobe.main

종료 코드:
    0: 정상 종료 (SIGINT / SIGTERM)
    1: 바인드 실패
    2: 설정 오류 (중복된 체크 이름 포함)
"""

import argparse
import logging
import signal
import sys
import threading
from typing import List, Optional

from healthprobe.checks import resolve_probe
from healthprobe.config import CONFIG_PATH_ENV, Config, load_config
from healthprobe.errors import BindError, ConfigError
from healthprobe.logging_utils import setup_logging
from healthprobe.registry import CheckRegistry
from healthprobe.runner import CheckRunner
from healthprobe.server import HealthServer, ServeOptions

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_BIND_ERROR = 1
EXIT_CONFIG_ERROR = 2


def build_registry(config: Config) -> CheckRegistry:
    """
    설정의 checks 항목으로 레지스트리를 구성하고 고정합니다.

    Raises:
        ConfigError: 체크 정의가 잘못되었거나 이름이 중복된 경우
    """
    registry = CheckRegistry()
    for definition in config.check_definitions():
        probe = resolve_probe(definition.probe)
        registry.register(
            definition.name,
            definition.timeout,
            probe,
            critical=definition.critical
        )
        logger.info(
            f"✅ 체크 등록: {definition.name} "
            f"(timeout={definition.timeout_ms}ms, critical={definition.critical})"
        )
    registry.freeze()
    logger.info(f"총 {len(registry)}개 체크 등록 완료")
    return registry


def build_server(config: Config, registry: CheckRegistry) -> HealthServer:
    """설정으로 HealthServer를 생성합니다."""
    logging_config = config.get('logging', default={})
    options = ServeOptions(
        threaded=True,
        drain_timeout=float(config.get('serving', 'drain_timeout_seconds', default=5)),
        backlog=int(config.get('serving', 'backlog', default=128))
    )
    return HealthServer(
        registry,
        runner=CheckRunner(log_success=bool(logging_config.get('log_success_checks', False))),
        address=config.address,
        port=config.port,
        path=config.path,
        livez_path=config.livez_path,
        options=options,
        log_requests=bool(logging_config.get('log_requests', False))
    )


def _install_signal_handlers(stop: threading.Event) -> dict:
    """SIGINT/SIGTERM 수신 시 stop 이벤트를 설정합니다. 이전 핸들러를 반환합니다."""
    def handle(signum, frame):
        logger.info(f"시그널 수신: {signal.Signals(signum).name}")
        stop.set()

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            previous[signum] = signal.signal(signum, handle)
        except ValueError:
            # 메인 스레드가 아닌 경우
            logger.debug(f"시그널 핸들러 설치 불가: {signum}")
    return previous


def run(server: HealthServer, stop: threading.Event) -> int:
    """
    서버를 백그라운드 스레드에서 실행하고 stop 이벤트를 기다립니다.

    Returns:
        int: 종료 코드
    """
    thread = threading.Thread(target=server.serve_forever, name='healthprobe-server', daemon=True)
    thread.start()

    while not stop.wait(0.5):
        if not thread.is_alive():
            logger.error("서버 스레드가 예기치 않게 종료되었습니다.")
            server.shutdown()
            return EXIT_BIND_ERROR

    server.shutdown()
    thread.join(timeout=server.options.drain_timeout)
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """메인 함수"""
    parser = argparse.ArgumentParser(prog='healthprobe', description='Health/readiness probe server')
    parser.add_argument(
        '-c', '--config',
        default=None,
        help=f'config file path (default: ${CONFIG_PATH_ENV} or /etc/healthprobe/config.yaml)'
    )
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"❌ 설정 파일 로드 실패: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    try:
        setup_logging(config.get('logging', default={}))
    except OSError as e:
        print(f"❌ 로깅 설정 실패: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    logger.info("=" * 80)
    logger.info("헬스체크 애플리케이션 초기화")
    logger.info(f"  설정: {config.config_path}")
    logger.info("=" * 80)

    try:
        registry = build_registry(config)
        server = build_server(config, registry)
    except ConfigError as e:
        logger.error(f"❌ 설정 오류: {e}")
        return EXIT_CONFIG_ERROR

    try:
        server.bind()
    except BindError as e:
        logger.error(f"❌ 서버 시작 실패: {e}")
        return EXIT_BIND_ERROR

    stop = threading.Event()
    previous = _install_signal_handlers(stop)
    try:
        return run(server, stop)
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)


if __name__ == '__main__':
    sys.exit(main())
