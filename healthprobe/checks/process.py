"""
프로세스 프로브 모듈
지정된 프로세스가 실행 중인지 확인합니다.
"""

import psutil
from typing import Dict, Any, List

from .base import BaseProbe
from healthprobe.errors import ConfigError
from healthprobe.models import ProbeOutcome


class ProcessProbe(BaseProbe):
    """프로세스 실행 상태를 체크하는 프로브"""

    probe_type = 'process'

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        targets = self._require('targets')
        if isinstance(targets, str):
            targets = [targets]
        self.targets: List[str] = list(targets)
        self.condition = self._condition(config, 'any')
        self.match_type = config.get('match_type', 'partial')
        if self.match_type not in ('partial', 'exact'):
            raise ConfigError(f"match_type must be 'partial' or 'exact', got {self.match_type!r}")

    def check(self) -> ProbeOutcome:
        counts = self._count_processes()
        running = [name for name in self.targets if counts[name] > 0]

        if self.condition == 'all':
            healthy = len(running) == len(self.targets)
        else:
            healthy = len(running) > 0

        if healthy:
            message = f"{len(running)}/{len(self.targets)} processes running"
        else:
            missing = [name for name in self.targets if counts[name] == 0]
            message = f"Not running: {', '.join(missing)}"
        return self._outcome(healthy, message)

    def _count_processes(self) -> Dict[str, int]:
        counts = {name: 0 for name in self.targets}
        for proc in psutil.process_iter(['name', 'cmdline']):
            try:
                proc_name = proc.info.get('name') or ''
                cmdline = ' '.join(proc.info.get('cmdline') or [])
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
            for name in self.targets:
                if self.match_type == 'exact':
                    if proc_name == name:
                        counts[name] += 1
                elif name in proc_name or name in cmdline:
                    counts[name] += 1
        return counts
