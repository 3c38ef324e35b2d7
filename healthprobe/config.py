"""
설정 로더 모듈

YAML 설정 파일을 읽고 파싱합니다.
환경 변수를 통한 오버라이드를 지원합니다.
"""

import copy
import os
import yaml
import logging
from dataclasses import dataclass
from typing import Dict, Any, List, Optional
from pathlib import Path

from healthprobe.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = '/etc/healthprobe/config.yaml'
CONFIG_PATH_ENV = 'HEALTHPROBE_CONFIG_PATH'

DEFAULT_TIMEOUT_MS = 1000

DEFAULT_CONFIG: Dict[str, Any] = {
    'address': '127.0.0.1',
    'port': 8080,
    'path': '/healthz',
    'livez_path': '/livez',
    'serving': {
        'drain_timeout_seconds': 5,
        'backlog': 128
    },
    'checks': [],
    'logging': {
        'console': {
            'enabled': True,
            'level': 'INFO',
            'format': 'text'
        },
        'file': {
            'enabled': False,
            'level': 'WARN',
            'dir': '/var/log/healthprobe',
            'filename': 'healthprobe.log',
            'rotation': {
                'max_size_mb': 10,
                'backup_count': 5
            }
        },
        'log_success_checks': False,
        'log_requests': False
    }
}


@dataclass(frozen=True)
class CheckDefinition:
    """설정 파일의 checks 항목 1개"""
    name: str
    timeout_ms: int
    critical: bool
    probe: Any

    @property
    def timeout(self) -> float:
        return self.timeout_ms / 1000.0


class Config:
    """
    설정 클래스

    YAML 파일에서 설정을 로드하고 환경 변수로 오버라이드합니다.
    파일에 없는 키는 기본값으로 채웁니다.

    Attributes:
        config (Dict[str, Any]): 설정 딕셔너리
        config_path (Optional[str]): 설정 파일 경로
    """

    def __init__(self, config_path: Optional[str] = DEFAULT_CONFIG_PATH, data: Optional[Dict[str, Any]] = None):
        """
        Config 초기화

        Args:
            config_path: 설정 파일 경로
            data: 파일 대신 사용할 설정 딕셔너리

        Raises:
            ConfigError: 파일을 읽을 수 없거나 YAML 형식이 잘못된 경우
        """
        self.config_path = config_path
        if data is not None:
            loaded = data
        else:
            loaded = self._load_file()
        self.config: Dict[str, Any] = self._merge(copy.deepcopy(DEFAULT_CONFIG), loaded)
        self._apply_env_overrides()

    def _load_file(self) -> Dict[str, Any]:
        """YAML 설정 파일을 로드합니다."""
        if not self.config_path:
            return {}

        config_path = Path(self.config_path)
        if not config_path.exists():
            logger.warning(f"설정 파일을 찾을 수 없음: {config_path}")
            logger.warning("기본 설정을 사용합니다.")
            return {}

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot load config file {config_path}: {e}") from e

        if loaded is None:
            return {}
        if not isinstance(loaded, dict):
            raise ConfigError(f"Config file {config_path} must contain a mapping at the top level")
        logger.info(f"설정 파일 로드 완료: {config_path}")
        return loaded

    @classmethod
    def _merge(cls, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """중첩 딕셔너리를 재귀적으로 병합합니다. 리스트는 통째로 교체됩니다."""
        for key, value in override.items():
            if isinstance(value, dict) and isinstance(base.get(key), dict):
                cls._merge(base[key], value)
            else:
                base[key] = value
        return base

    def _apply_env_overrides(self) -> None:
        """환경 변수로 설정을 오버라이드합니다."""
        env_mappings = {
            'HEALTHPROBE_ADDRESS': ['address'],
            'HEALTHPROBE_PORT': ['port'],
            'HEALTHPROBE_PATH': ['path'],
            'LOG_LEVEL': ['logging', 'console', 'level'],
            'LOG_FORMAT': ['logging', 'console', 'format'],
        }

        for env_var, config_path in env_mappings.items():
            env_value = os.getenv(env_var)
            if env_value:
                # HEALTHPROBE_PORT는 정수로 변환
                if env_var == 'HEALTHPROBE_PORT':
                    try:
                        env_value = int(env_value)
                    except ValueError:
                        logger.warning(f"잘못된 HEALTHPROBE_PORT 값: {env_value}, 무시됨")
                        continue

                self._set_nested(self.config, config_path, env_value)
                logger.debug(f"환경 변수 적용: {env_var}={env_value}")

    @staticmethod
    def _set_nested(d: Dict, keys: list, value: Any) -> None:
        """
        중첩된 딕셔너리에 값을 설정합니다.

        Args:
            d: 대상 딕셔너리
            keys: 키 경로 리스트
            value: 설정할 값
        """
        for key in keys[:-1]:
            d = d.setdefault(key, {})
        d[keys[-1]] = value

    def get(self, *keys, default=None) -> Any:
        """
        중첩된 설정 값을 가져옵니다.

        Args:
            *keys: 설정 키 경로
            default: 기본값

        Returns:
            Any: 설정 값 또는 기본값

        Example:
            >>> config.get('port')
            8080
            >>> config.get('logging', 'console', 'level')
            'INFO'
        """
        value = self.config
        for key in keys:
            if isinstance(value, dict):
                value = value.get(key)
            else:
                return default
            if value is None:
                return default
        return value

    @property
    def address(self) -> str:
        return str(self.get('address', default='127.0.0.1'))

    @property
    def port(self) -> int:
        port = self.get('port', default=8080)
        try:
            port = int(port)
        except (TypeError, ValueError):
            raise ConfigError(f"port must be an integer, got {port!r}")
        if not 0 <= port <= 65535:
            raise ConfigError(f"port out of range: {port}")
        return port

    @property
    def path(self) -> str:
        return self._route('path', '/healthz')

    @property
    def livez_path(self) -> str:
        return self._route('livez_path', '/livez')

    def _route(self, key: str, default: str) -> str:
        route = str(self.get(key, default=default))
        if not route.startswith('/'):
            raise ConfigError(f"{key} must start with '/', got {route!r}")
        return route

    def check_definitions(self) -> List[CheckDefinition]:
        """
        checks 항목을 검증하고 CheckDefinition 목록으로 변환합니다.

        Returns:
            List[CheckDefinition]: 설정 순서대로 정렬된 체크 정의

        Raises:
            ConfigError: 항목이 잘못된 경우
        """
        entries = self.get('checks', default=[])
        if not isinstance(entries, list):
            raise ConfigError("checks must be a list")

        definitions = []
        for index, entry in enumerate(entries):
            if not isinstance(entry, dict):
                raise ConfigError(f"checks[{index}] must be a mapping")

            name = entry.get('name')
            if not name or not isinstance(name, str):
                raise ConfigError(f"checks[{index}]: 'name' is required")

            timeout_ms = entry.get('timeout_ms', DEFAULT_TIMEOUT_MS)
            if isinstance(timeout_ms, bool) or not isinstance(timeout_ms, (int, float)) or timeout_ms <= 0:
                raise ConfigError(f"check {name!r}: timeout_ms must be a positive number, got {timeout_ms!r}")

            critical = entry.get('critical', True)
            if not isinstance(critical, bool):
                raise ConfigError(f"check {name!r}: critical must be true or false, got {critical!r}")

            probe = entry.get('probe')
            if not probe:
                raise ConfigError(f"check {name!r}: 'probe' is required")

            definitions.append(CheckDefinition(
                name=name,
                timeout_ms=timeout_ms,
                critical=critical,
                probe=probe
            ))
        return definitions


def load_config(config_path: Optional[str] = None) -> Config:
    """
    설정을 로드합니다.

    Args:
        config_path: 설정 파일 경로 (없으면 HEALTHPROBE_CONFIG_PATH 또는 기본 경로)

    Returns:
        Config: Config 인스턴스
    """
    if config_path is None:
        config_path = os.getenv(CONFIG_PATH_ENV, DEFAULT_CONFIG_PATH)
    return Config(config_path)
