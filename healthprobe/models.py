"""
데이터 모델 모듈

체크 정의, 체크 결과, 집계 결과를 정의합니다.
모든 모델은 생성 후 변경되지 않습니다.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple


class CheckStatus(str, Enum):
    """개별 체크 상태"""
    HEALTHY = 'Healthy'
    UNHEALTHY = 'Unhealthy'
    TIMED_OUT = 'TimedOut'


class OverallStatus(str, Enum):
    """전체 집계 상태"""
    HEALTHY = 'Healthy'
    DEGRADED = 'Degraded'
    UNHEALTHY = 'Unhealthy'


@dataclass(frozen=True)
class ProbeOutcome:
    """
    프로브 반환값

    프로브는 None/True(정상), False(비정상), 문자열(정상 + 상세 메시지),
    또는 ProbeOutcome을 반환할 수 있습니다.
    """
    healthy: bool
    detail: Optional[str] = None


@dataclass(frozen=True)
class Check:
    """
    등록된 체크

    Attributes:
        name: 체크 이름 (레지스트리 내에서 유일)
        timeout: 제한 시간 (초)
        probe: 인자 없이 호출되는 프로브
        critical: 실패 시 전체 상태를 Unhealthy로 만들지 여부
    """
    name: str
    timeout: float
    probe: Callable[[], Any]
    critical: bool = True


@dataclass(frozen=True)
class CheckResult:
    """
    체크 1회 실행 결과

    Attributes:
        name: 체크 이름
        status: 체크 상태
        detail: 상세 메시지 (없으면 None)
        latency: 소요 시간 (초)
        critical: 원본 체크의 critical 값
    """
    name: str
    status: CheckStatus
    detail: Optional[str] = None
    latency: float = 0.0
    critical: bool = True

    def is_healthy(self) -> bool:
        """정상 상태인지 확인"""
        return self.status is CheckStatus.HEALTHY

    @property
    def latency_ms(self) -> int:
        return int(round(self.latency * 1000))

    def to_line(self) -> str:
        """
        `<name>: <status> (<latency>ms)[ - <detail>]` 형식으로 변환

        체크 1개는 항상 1줄입니다. detail의 줄바꿈과 연속 공백은 공백 하나로 합칩니다.
        """
        line = f"{self.name}: {self.status.value} ({self.latency_ms}ms)"
        detail = ' '.join(self.detail.split()) if self.detail else ''
        if detail:
            line += f" - {detail}"
        return line

    def to_dict(self) -> Dict[str, Any]:
        """딕셔너리로 변환"""
        return {
            'name': self.name,
            'status': self.status.value,
            'detail': self.detail,
            'latency_ms': self.latency_ms,
            'critical': self.critical,
        }


@dataclass(frozen=True)
class AggregateStatus:
    """
    요청 1회에 대한 집계 결과

    Attributes:
        overall: 전체 상태
        results: 등록 순서대로 정렬된 체크 결과
    """
    overall: OverallStatus
    results: Tuple[CheckResult, ...] = ()

    def to_text(self) -> str:
        if not self.results:
            return 'no checks\n'
        return ''.join(result.to_line() + '\n' for result in self.results)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.overall.value,
            'checks': [result.to_dict() for result in self.results],
        }
