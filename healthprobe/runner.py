"""
체크 실행 모듈

등록된 모든 체크를 동시에 실행하고 체크별 제한 시간 안에 결과를 수집합니다.
제한 시간을 넘긴 프로브는 기다리지 않고 TimedOut으로 보고합니다.
"""

import logging
import threading
import time
from typing import Any, Dict, Iterable, List, Optional, Tuple

from healthprobe.errors import ProbeTimeout
from healthprobe.models import Check, CheckResult, CheckStatus, ProbeOutcome

logger = logging.getLogger(__name__)


def interpret_outcome(value: Any) -> Tuple[bool, Optional[str]]:
    """
    프로브 반환값을 (정상 여부, 상세 메시지)로 변환합니다.

    Args:
        value: 프로브 반환값

    Returns:
        Tuple[bool, Optional[str]]: 정상 여부와 상세 메시지
    """
    if value is None or value is True:
        return True, None
    if value is False:
        return False, None
    if isinstance(value, ProbeOutcome):
        return value.healthy, value.detail
    if isinstance(value, str):
        return True, value or None
    return bool(value), None


def describe_error(error: BaseException) -> str:
    message = str(error)
    if not message:
        return type(error).__name__
    if not isinstance(error, Exception):
        # SystemExit(1) -> "SystemExit: 1"
        return f"{type(error).__name__}: {message}"
    return message


class _ProbeThread(threading.Thread):
    """
    프로브 1개를 실행하는 데몬 스레드. 제한 시간이 지나면 버려집니다.

    SystemExit 등 BaseException도 결과로 기록하며 스레드 밖으로 전파하지 않습니다.
    """

    def __init__(self, check: Check):
        super().__init__(name=f"probe-{check.name}", daemon=True)
        self.check = check
        self.value: Any = None
        self.error: Optional[BaseException] = None
        self.started_at = 0.0
        self.finished_at = 0.0

    def run(self) -> None:
        self.started_at = time.monotonic()
        try:
            self.value = self.check.probe()
        except BaseException as e:
            self.error = e
        finally:
            self.finished_at = time.monotonic()


class CheckRunner:
    """
    체크 실행기

    체크마다 스레드를 하나씩 시작하고, 각 스레드를 자신의 마감 시각까지만 기다립니다.
    전체 대기 시간은 가장 긴 체크 제한 시간을 넘지 않습니다.

    이전 요청에서 시간 초과로 버려진 프로브가 아직 실행 중이면 새 스레드를 만들지 않고
    그 실행을 이번 요청의 마감 시각까지 다시 기다립니다.
    따라서 응답하지 않는 프로브가 있어도 체크당 스레드는 최대 1개입니다.
    """

    def __init__(self, log_success: bool = False):
        """
        Args:
            log_success: 성공한 체크도 INFO 레벨로 기록할지 여부
        """
        self.log_success = log_success
        self._lock = threading.Lock()
        self._running: Dict[str, _ProbeThread] = {}

    @property
    def abandoned(self) -> int:
        """시간 초과 후에도 아직 실행 중인 프로브 스레드 수"""
        with self._lock:
            return sum(1 for thread in self._running.values() if thread.is_alive())

    def _start(self, checks: List[Check]) -> List[_ProbeThread]:
        threads = []
        with self._lock:
            for check in checks:
                thread = self._running.get(check.name)
                if thread is not None and thread.is_alive() and thread.check is check:
                    logger.info(
                        f"체크 {check.name}: 진행 중인 실행이 있어 새로 시작하지 않고 결과를 기다립니다."
                    )
                else:
                    thread = _ProbeThread(check)
                    thread.start()
                    self._running[check.name] = thread
                threads.append(thread)
        return threads

    def _release(self, threads: List[_ProbeThread]) -> None:
        with self._lock:
            for thread in threads:
                if not thread.is_alive() and self._running.get(thread.check.name) is thread:
                    del self._running[thread.check.name]

    def run_all(self, registry: Iterable[Check]) -> List[CheckResult]:
        """
        모든 체크를 실행합니다.

        Args:
            registry: CheckRegistry (또는 Check 시퀀스)

        Returns:
            List[CheckResult]: 등록 순서대로 정렬된 결과
        """
        checks = list(registry.list() if hasattr(registry, 'list') else registry)
        if not checks:
            return []

        started = time.monotonic()
        threads = self._start(checks)

        results = []
        for thread in threads:
            deadline = started + thread.check.timeout
            thread.join(max(0.0, deadline - time.monotonic()))
            results.append(self._collect(thread, started))

        self._release(threads)
        logger.debug(
            f"체크 {len(results)}개 완료 ({(time.monotonic() - started) * 1000:.1f}ms)"
        )
        return results

    def _collect(self, thread: _ProbeThread, started: float) -> CheckResult:
        check = thread.check

        if thread.is_alive():
            timeout = ProbeTimeout(check.name, check.timeout)
            logger.warning(f"⏱️  {timeout}")
            return CheckResult(
                name=check.name,
                status=CheckStatus.TIMED_OUT,
                detail=None,
                latency=time.monotonic() - started,
                critical=check.critical
            )

        latency = thread.finished_at - thread.started_at

        if thread.error is not None:
            detail = describe_error(thread.error)
            logger.warning(f"⚠️  체크 실패 ({check.name}): {detail}")
            return CheckResult(
                name=check.name,
                status=CheckStatus.UNHEALTHY,
                detail=detail,
                latency=latency,
                critical=check.critical
            )

        try:
            healthy, detail = interpret_outcome(thread.value)
        except Exception as e:
            healthy, detail = False, f"Invalid probe result: {describe_error(e)}"

        if healthy:
            if self.log_success:
                logger.info(f"✅ 체크 성공 ({check.name}): {latency * 1000:.1f}ms")
            else:
                logger.debug(f"체크 성공 ({check.name}): {latency * 1000:.1f}ms")
        else:
            logger.warning(f"⚠️  체크 비정상 ({check.name}): {detail or 'no detail'}")

        return CheckResult(
            name=check.name,
            status=CheckStatus.HEALTHY if healthy else CheckStatus.UNHEALTHY,
            detail=detail,
            latency=latency,
            critical=check.critical
        )
