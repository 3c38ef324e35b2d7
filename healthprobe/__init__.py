"""
healthprobe

설정 가능한 체크, 체크별 제한 시간, 상태 집계를 갖춘 헬스/레디니스 프로브 서버
"""

from healthprobe.aggregator import StatusAggregator, aggregate
from healthprobe.errors import (
    BindError,
    ConfigError,
    DuplicateNameError,
    HealthProbeError,
    ProbeFailure,
    ProbeTimeout,
    RegistryFrozenError,
)
from healthprobe.models import (
    AggregateStatus,
    Check,
    CheckResult,
    CheckStatus,
    OverallStatus,
    ProbeOutcome,
)
from healthprobe.registry import CheckRegistry
from healthprobe.runner import CheckRunner
from healthprobe.server import HealthServer, ServeOptions

__version__ = '1.0.0'

__all__ = [
    'AggregateStatus',
    'BindError',
    'Check',
    'CheckRegistry',
    'CheckResult',
    'CheckRunner',
    'CheckStatus',
    'ConfigError',
    'DuplicateNameError',
    'HealthProbeError',
    'HealthServer',
    'OverallStatus',
    'ProbeFailure',
    'ProbeOutcome',
    'ProbeTimeout',
    'RegistryFrozenError',
    'ServeOptions',
    'StatusAggregator',
    'aggregate',
]
