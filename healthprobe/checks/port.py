"""
포트 프로브 모듈
지정된 포트가 리스닝 중인지 확인합니다.
"""

import socket
from typing import Dict, Any, List

from .base import BaseProbe
from healthprobe.models import ProbeOutcome


class PortProbe(BaseProbe):
    """TCP 포트 연결 가능 여부를 체크하는 프로브"""

    probe_type = 'port'

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        targets = self._require('targets')
        if isinstance(targets, int):
            targets = [targets]
        self.targets: List[int] = [int(port) for port in targets]
        self.host = config.get('host', 'localhost')
        self.condition = self._condition(config, 'all')
        self.connect_timeout = float(config.get('connect_timeout', 2))

    def check(self) -> ProbeOutcome:
        closed = [port for port in self.targets if not self._check_port(port)]
        open_count = len(self.targets) - len(closed)

        if self.condition == 'all':
            healthy = not closed
        else:
            healthy = open_count > 0

        if healthy:
            message = f"{open_count}/{len(self.targets)} ports listening on {self.host}"
        else:
            message = f"Not listening on {self.host}: {', '.join(str(p) for p in closed)}"
        return self._outcome(healthy, message)

    def _check_port(self, port: int) -> bool:
        try:
            with socket.create_connection((self.host, port), timeout=self.connect_timeout):
                self.logger.debug(f"  ✓ 포트 {self.host}:{port} 리스닝 중")
                return True
        except OSError as e:
            self.logger.debug(f"  ✗ 포트 {self.host}:{port} 연결 실패: {e}")
            return False
