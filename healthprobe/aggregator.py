"""
상태 집계 모듈

개별 체크 결과를 하나의 전체 상태로 합칩니다.

정책:
    - 모든 결과가 Healthy (또는 결과 없음) -> Healthy
    - critical 체크 중 Unhealthy/TimedOut 존재 -> Unhealthy
    - 그 외 (non-critical 체크만 실패) -> Degraded
"""

from typing import Iterable

from healthprobe.models import AggregateStatus, CheckResult, OverallStatus


class StatusAggregator:
    """체크 결과 집계기. 상태를 갖지 않습니다."""

    @staticmethod
    def aggregate(results: Iterable[CheckResult]) -> AggregateStatus:
        """
        결과 집합을 전체 상태로 변환합니다.

        Args:
            results: 체크 결과 (순서 유지)

        Returns:
            AggregateStatus: 집계 결과
        """
        results = tuple(results)
        failed = [result for result in results if not result.is_healthy()]

        if not failed:
            overall = OverallStatus.HEALTHY
        elif any(result.critical for result in failed):
            overall = OverallStatus.UNHEALTHY
        else:
            overall = OverallStatus.DEGRADED

        return AggregateStatus(overall=overall, results=results)


def aggregate(results: Iterable[CheckResult]) -> AggregateStatus:
    return StatusAggregator.aggregate(results)
