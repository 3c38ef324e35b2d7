"""
내장 프로브 패키지

각 프로브 유형별로 모듈이 분리되어 있습니다:
- base: 베이스 프로브 클래스
- port: 포트 리스닝 체크
- process: 프로세스 실행 체크
- http: HTTP 엔드포인트 체크
- resource: 시스템 리소스 체크

설정의 probe 항목은 `type`을 가진 매핑이거나
`"package.module:attribute"` 형식의 참조 문자열입니다.
"""

import importlib
from typing import Any, Callable, Dict, Union

from healthprobe.errors import ConfigError
from .base import BaseProbe
from .port import PortProbe
from .process import ProcessProbe
from .http import HttpProbe
from .resource import ResourceProbe

PROBE_TYPES = {
    probe_class.probe_type: probe_class
    for probe_class in (PortProbe, ProcessProbe, HttpProbe, ResourceProbe)
}


def import_probe(ref: str) -> Callable[[], Any]:
    """
    `"package.module:attribute"` 참조를 호출 가능한 객체로 변환합니다.

    Raises:
        ConfigError: 참조 형식이 잘못되었거나 import할 수 없는 경우
    """
    module_name, sep, attr_path = ref.partition(':')
    if not sep or not module_name or not attr_path:
        raise ConfigError(f"Probe reference must look like 'module:attribute', got {ref!r}")
    try:
        target = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigError(f"Cannot import probe module {module_name!r}: {e}") from e
    for attr in attr_path.split('.'):
        try:
            target = getattr(target, attr)
        except AttributeError as e:
            raise ConfigError(f"Probe {ref!r} not found: {e}") from e
    if not callable(target):
        raise ConfigError(f"Probe {ref!r} is not callable")
    return target


def resolve_probe(ref: Union[str, Dict[str, Any]]) -> Callable[[], Any]:
    """
    설정의 probe 항목을 프로브로 변환합니다.

    Args:
        ref: 참조 문자열 또는 type을 포함한 설정 딕셔너리

    Returns:
        Callable[[], Any]: 인자 없이 호출 가능한 프로브

    Raises:
        ConfigError: 알 수 없는 type 또는 잘못된 참조
    """
    if isinstance(ref, str):
        return import_probe(ref)
    if isinstance(ref, dict):
        probe_type = ref.get('type')
        probe_class = PROBE_TYPES.get(probe_type)
        if probe_class is None:
            raise ConfigError(
                f"Unknown probe type {probe_type!r}, expected one of {sorted(PROBE_TYPES)}"
            )
        return probe_class(ref)
    raise ConfigError(f"Probe must be a reference string or a mapping, got {type(ref).__name__}")


__all__ = [
    'BaseProbe',
    'PortProbe',
    'ProcessProbe',
    'HttpProbe',
    'ResourceProbe',
    'PROBE_TYPES',
    'import_probe',
    'resolve_probe',
]
