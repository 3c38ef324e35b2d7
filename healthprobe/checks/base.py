"""
베이스 프로브 모듈

설정으로 생성되는 모든 내장 프로브의 부모 클래스를 정의합니다.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from healthprobe.errors import ConfigError
from healthprobe.models import ProbeOutcome


class BaseProbe(ABC):
    """
    내장 프로브 베이스 클래스

    인스턴스는 인자 없이 호출할 수 있는 프로브이므로
    CheckRegistry.register()에 그대로 전달할 수 있습니다.
    """

    # 설정에서 사용하는 type 이름
    probe_type = ''

    def __init__(self, config: Dict[str, Any]):
        """
        Args:
            config: 프로브 설정 딕셔너리 (type 키 포함 가능)
        """
        self.config = config
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @abstractmethod
    def check(self) -> ProbeOutcome:
        """
        프로브를 실행합니다.

        Returns:
            ProbeOutcome: 실행 결과
        """
        pass

    def __call__(self) -> ProbeOutcome:
        return self.check()

    def _outcome(self, healthy: bool, message: Optional[str] = None) -> ProbeOutcome:
        if healthy:
            self.logger.debug(f"✅ {self.probe_type} 프로브 성공: {message}")
        else:
            self.logger.warning(f"⚠️  {self.probe_type} 프로브 실패: {message}")
        return ProbeOutcome(healthy=healthy, detail=message)

    def _require(self, key: str) -> Any:
        value = self.config.get(key)
        if value in (None, '', []):
            raise ConfigError(f"{self.probe_type} probe requires '{key}'")
        return value

    @staticmethod
    def _condition(config: Dict[str, Any], default: str) -> str:
        condition = config.get('condition', default)
        if condition not in ('all', 'any'):
            raise ConfigError(f"condition must be 'all' or 'any', got {condition!r}")
        return condition

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.config!r})"
