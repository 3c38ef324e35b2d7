"""
헬스체크 HTTP 서버 모듈

Flask 애플리케이션과 Werkzeug 스레드 서버로 헬스체크 엔드포인트를 제공합니다.

엔드포인트:
    GET|HEAD <path>        체크 실행 후 집계 결과 반환 (200 / 503)
    GET|HEAD <livez_path>  체크 없이 200 OK 반환 (프로세스 생존 확인)
"""

import logging
import socket
import threading
import time
from dataclasses import dataclass
from typing import Optional

from flask import Flask, Response, jsonify, request
from werkzeug.serving import BaseWSGIServer, get_sockaddr, make_server, select_address_family
from werkzeug.wsgi import ClosingIterator

from healthprobe.aggregator import StatusAggregator
from healthprobe.errors import BindError, ConfigError
from healthprobe.models import AggregateStatus, OverallStatus
from healthprobe.registry import CheckRegistry
from healthprobe.runner import CheckRunner

logger = logging.getLogger(__name__)

STATUS_HEADER = 'X-Health-Status'


@dataclass(frozen=True)
class ServeOptions:
    """
    서빙 설정

    Attributes:
        threaded: 요청마다 스레드를 사용할지 여부
        drain_timeout: 종료 시 처리 중인 요청을 기다리는 최대 시간 (초)
        backlog: 리스닝 소켓 backlog
    """
    threaded: bool = True
    drain_timeout: float = 5.0
    backlog: int = 128


class _InflightTracker:
    """처리 중인 요청 수를 추적합니다. 종료 시 drain에 사용됩니다."""

    def __init__(self):
        self._cond = threading.Condition()
        self._count = 0

    def enter(self) -> None:
        with self._cond:
            self._count += 1

    def exit(self) -> None:
        with self._cond:
            self._count -= 1
            if self._count <= 0:
                self._count = 0
                self._cond.notify_all()

    @property
    def count(self) -> int:
        return self._count

    def wait_idle(self, timeout: float) -> bool:
        with self._cond:
            return self._cond.wait_for(lambda: self._count == 0, timeout=timeout)


class HealthServer:
    """
    헬스체크 HTTP 서버

    레지스트리는 생성 시 주입되며 서빙 중에는 읽기 전용으로 공유됩니다.

    Example:
        >>> registry = CheckRegistry()
        >>> registry.register('db', 0.5, ping_db)
        >>> server = HealthServer(registry, port=8080)
        >>> server.bind()
        >>> server.serve_forever()
    """

    def __init__(
        self,
        registry: CheckRegistry,
        runner: Optional[CheckRunner] = None,
        address: str = '127.0.0.1',
        port: int = 8080,
        path: str = '/healthz',
        livez_path: str = '/livez',
        options: Optional[ServeOptions] = None,
        log_requests: bool = False
    ):
        if path == livez_path:
            raise ConfigError(f"path and livez_path must differ, both are {path!r}")

        self.registry = registry
        self.runner = runner or CheckRunner()
        self.aggregator = StatusAggregator()
        self.address = address
        self.requested_port = port
        self.path = path
        self.livez_path = livez_path
        self.options = options or ServeOptions()
        self.log_requests = log_requests

        self._inflight = _InflightTracker()
        self._lock = threading.Lock()
        self._server: Optional[BaseWSGIServer] = None
        self._serving = False
        self._closed = False

        self.app = self._build_app()

    # =========================================================================
    # Flask 애플리케이션
    # =========================================================================

    def _build_app(self) -> Flask:
        app = Flask(__name__)

        # 경로 -> 핸들러 테이블
        routes = {
            self.path: ('health', self._handle_health),
            self.livez_path: ('livez', self._handle_livez),
        }
        for rule, (endpoint, view_func) in routes.items():
            app.add_url_rule(rule, endpoint, view_func, methods=['GET', 'HEAD'])

        app.before_request(self._log_request)
        app.register_error_handler(404, self._handle_not_found)
        app.wsgi_app = self._track_inflight(app.wsgi_app)
        return app

    def _track_inflight(self, wsgi_app):
        """
        WSGI 미들웨어: 응답 본문 전송이 끝나 iterable이 close될 때까지 요청을 처리 중으로 셉니다.

        Flask의 teardown은 본문 전송 전에 실행되므로 drain 기준으로 쓰지 않습니다.
        """
        tracker = self._inflight

        def tracked_app(environ, start_response):
            tracker.enter()
            try:
                app_iter = wsgi_app(environ, start_response)
            except BaseException:
                tracker.exit()
                raise
            return ClosingIterator(app_iter, tracker.exit)

        return tracked_app

    def _log_request(self) -> None:
        if self.log_requests:
            logger.debug(f"요청: {request.method} {request.path} (from: {request.remote_addr})")

    @property
    def inflight_requests(self) -> int:
        """응답 전송이 끝나지 않은 요청 수"""
        return self._inflight.count

    def check(self) -> AggregateStatus:
        """모든 체크를 실행하고 집계합니다."""
        results = self.runner.run_all(self.registry)
        return self.aggregator.aggregate(results)

    @staticmethod
    def status_code(status: AggregateStatus) -> int:
        return 503 if status.overall is OverallStatus.UNHEALTHY else 200

    def _handle_health(self) -> Response:
        started = time.monotonic()
        status = self.check()
        code = self.status_code(status)
        elapsed_ms = (time.monotonic() - started) * 1000

        if status.overall is OverallStatus.HEALTHY:
            logger.debug(f"{self.path} 응답: {code} {status.overall.value} ({elapsed_ms:.1f}ms)")
        else:
            failed = [r.name for r in status.results if not r.is_healthy()]
            logger.warning(
                f"⚠️  {self.path} 응답: {code} {status.overall.value} "
                f"(failed: {', '.join(failed)}, {elapsed_ms:.1f}ms)"
            )

        headers = {STATUS_HEADER: status.overall.value, 'Cache-Control': 'no-store'}

        if request.method == 'HEAD':
            return Response(status=code, headers=headers)

        if request.args.get('format') == 'json':
            response = jsonify(status.to_dict())
            response.status_code = code
            response.headers.update(headers)
            return response

        return Response(status.to_text(), status=code, headers=headers, mimetype='text/plain')

    def _handle_livez(self) -> Response:
        return Response('OK', status=200, mimetype='text/plain')

    def _handle_not_found(self, error) -> Response:
        body = (
            "Not Found\n"
            f"available endpoints: {self.path}, {self.livez_path}\n"
        )
        return Response(body, status=404, mimetype='text/plain')

    # =========================================================================
    # 서버 수명 주기
    # =========================================================================

    @property
    def port(self) -> int:
        """바인드된 포트 (바인드 전에는 요청한 포트)"""
        if self._server is not None:
            return self._server.server_address[1]
        return self.requested_port

    def bind(self) -> int:
        """
        리스닝 소켓을 바인드합니다.

        레지스트리를 고정하므로 이후에는 체크를 등록할 수 없습니다.

        Returns:
            int: 바인드된 포트

        Raises:
            BindError: 주소가 사용 중이거나 권한이 없거나 주소를 해석할 수 없는 경우
        """
        self.registry.freeze()
        with self._lock:
            if self._closed:
                raise BindError(self.address, self.requested_port, RuntimeError('server is shut down'))
            if self._server is not None:
                return self.port

            try:
                family = select_address_family(self.address, self.requested_port)
                sock = socket.socket(family, socket.SOCK_STREAM)
            except OSError as e:
                raise BindError(self.address, self.requested_port, e) from e

            try:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
                sock.bind(get_sockaddr(self.address, self.requested_port, family))
                sock.listen(self.options.backlog)
                # Werkzeug는 fd를 복제해서 사용합니다.
                self._server = make_server(
                    self.address,
                    sock.getsockname()[1],
                    self.app,
                    threaded=self.options.threaded,
                    fd=sock.fileno()
                )
            except OSError as e:
                raise BindError(self.address, self.requested_port, e) from e
            finally:
                sock.close()

        logger.info(f"✅ 바인드 완료: {self.address}:{self.port}")
        return self.port

    def serve_forever(self) -> None:
        """shutdown()이 호출될 때까지 요청을 처리합니다."""
        if self._server is None:
            self.bind()
        with self._lock:
            if self._closed:
                return
            self._serving = True
            server = self._server

        logger.info("=" * 80)
        logger.info("🚀 헬스체크 서버 시작")
        logger.info(f"  주소: http://{self.address}:{self.port}")
        logger.info(f"  엔드포인트: {self.path} (체크 {len(self.registry)}개), {self.livez_path}")
        logger.info("=" * 80)

        server.serve_forever()

    def shutdown(self, drain_timeout: Optional[float] = None) -> bool:
        """
        새 연결 수락을 멈추고 처리 중인 요청이 끝나기를 기다린 뒤 소켓을 닫습니다.

        Args:
            drain_timeout: 최대 대기 시간 (초, 기본값은 ServeOptions.drain_timeout)

        Returns:
            bool: 제한 시간 안에 모든 요청이 끝났으면 True
        """
        with self._lock:
            if self._closed:
                return True
            self._closed = True
            server = self._server
            serving = self._serving

        if server is None:
            return True

        if drain_timeout is None:
            drain_timeout = self.options.drain_timeout

        logger.info("서버 종료 중...")
        if serving:
            server.shutdown()
        server.server_close()

        drained = self._inflight.wait_idle(drain_timeout)
        if drained:
            logger.info("✅ 서버 종료 완료")
        else:
            logger.warning(
                f"⚠️  처리 중인 요청 {self._inflight.count}개를 기다리지 못하고 종료합니다 "
                f"(drain_timeout={drain_timeout}s)"
            )
        return drained
