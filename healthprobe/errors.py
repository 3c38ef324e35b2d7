"""
예외 정의 모듈

시작 단계 오류(설정, 중복 등록, 바인드 실패)는 프로세스를 종료시키고,
체크 단위 오류(ProbeFailure, ProbeTimeout)는 결과로 변환되어 응답에 포함됩니다.
"""

from typing import Optional


class HealthProbeError(Exception):
    """healthprobe 예외의 베이스 클래스"""


class ConfigError(HealthProbeError):
    """설정 파일 또는 체크 정의가 잘못된 경우"""


class DuplicateNameError(ConfigError):
    """이미 등록된 이름으로 체크를 등록하려는 경우"""

    def __init__(self, name: str):
        super().__init__(f"Check already registered: {name!r}")
        self.name = name


class RegistryFrozenError(HealthProbeError):
    """서빙이 시작된 이후 등록을 시도한 경우"""


class BindError(HealthProbeError):
    """리스닝 주소에 바인드할 수 없는 경우 (사용 중, 권한 부족 등)"""

    def __init__(self, address: str, port: int, cause: Optional[BaseException] = None):
        reason = cause.strerror if isinstance(cause, OSError) and cause.strerror else cause
        super().__init__(f"Cannot bind {address}:{port}: {reason}")
        self.address = address
        self.port = port
        self.cause = cause


class ProbeFailure(HealthProbeError):
    """프로브가 명시적으로 실패를 보고할 때 사용합니다."""


class ProbeTimeout(HealthProbeError):
    """프로브가 제한 시간 안에 끝나지 않은 경우"""

    def __init__(self, name: str, timeout: float):
        super().__init__(f"Check {name!r} timed out after {timeout * 1000:.0f}ms")
        self.name = name
        self.timeout = timeout
