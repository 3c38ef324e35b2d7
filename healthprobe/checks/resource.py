"""
시스템 리소스 프로브 모듈
CPU, 메모리, 디스크 사용률이 임계값 이내인지 확인합니다.
"""

import psutil
from typing import Dict, Any, List, Optional

from .base import BaseProbe
from healthprobe.errors import ConfigError
from healthprobe.models import ProbeOutcome


class ResourceProbe(BaseProbe):
    """시스템 리소스 사용률을 체크하는 프로브"""

    probe_type = 'resource'

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.cpu_percent = self._threshold('cpu_percent')
        self.memory_percent = self._threshold('memory_percent')
        self.disk_percent = self._threshold('disk_percent')
        self.disk_paths: List[str] = list(config.get('disk_paths', ['/']))
        if self.cpu_percent is None and self.memory_percent is None and self.disk_percent is None:
            raise ConfigError(
                "resource probe requires at least one of cpu_percent, memory_percent, disk_percent"
            )

    def _threshold(self, key: str) -> Optional[float]:
        value = self.config.get(key)
        if value is None:
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ConfigError(f"resource probe: {key} must be a number, got {value!r}")

    def check(self) -> ProbeOutcome:
        usage = []
        exceeded = []

        if self.cpu_percent is not None:
            # 짧은 샘플링 구간. 체크 timeout보다 충분히 짧아야 합니다.
            cpu = psutil.cpu_percent(interval=0.1)
            self._record('cpu', cpu, self.cpu_percent, usage, exceeded)

        if self.memory_percent is not None:
            memory = psutil.virtual_memory().percent
            self._record('memory', memory, self.memory_percent, usage, exceeded)

        if self.disk_percent is not None:
            for path in self.disk_paths:
                disk = psutil.disk_usage(path).percent
                self._record(f"disk {path}", disk, self.disk_percent, usage, exceeded)

        if exceeded:
            return self._outcome(False, f"Over threshold: {', '.join(exceeded)}")
        return self._outcome(True, ', '.join(usage))

    @staticmethod
    def _record(label: str, value: float, threshold: float, usage: list, exceeded: list) -> None:
        entry = f"{label} {value:.1f}%"
        usage.append(entry)
        if value >= threshold:
            exceeded.append(f"{entry} >= {threshold:g}%")
