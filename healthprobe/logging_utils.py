"""
로깅 유틸리티 모듈

콘솔 및 파일 로깅을 설정합니다.
파일 로그는 크기 기반 로테이션을 지원합니다.
"""

import sys
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Any, List

# 로그 레벨 매핑
LOG_LEVELS = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARN': logging.WARNING,
    'WARNING': logging.WARNING,
    'ERROR': logging.ERROR,
    'CRITICAL': logging.CRITICAL,
}

TEXT_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)-25s | %(message)s'
JSON_FORMAT = (
    '{"timestamp":"%(asctime)s","level":"%(levelname)s",'
    '"name":"%(name)s","message":"%(message)s"}'
)
FILE_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)-25s | %(funcName)-20s | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def _build_console_handler(config: Dict[str, Any]) -> logging.Handler:
    level = str(config.get('level', 'INFO')).upper()
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(LOG_LEVELS.get(level, logging.INFO))
    if config.get('format', 'text') == 'json':
        handler.setFormatter(logging.Formatter(JSON_FORMAT))
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt=DATE_FORMAT))
    return handler


def _build_file_handler(config: Dict[str, Any]) -> logging.Handler:
    level = str(config.get('level', 'WARN')).upper()
    log_dir = Path(config.get('dir', '/var/log/healthprobe'))
    rotation = config.get('rotation', {})
    max_size_mb = rotation.get('max_size_mb', 10)

    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        filename=str(log_dir / config.get('filename', 'healthprobe.log')),
        maxBytes=int(max_size_mb * 1024 * 1024),
        backupCount=rotation.get('backup_count', 5),
        encoding='utf-8'
    )
    handler.setLevel(LOG_LEVELS.get(level, logging.WARNING))
    # 파일 로그는 항상 상세한 텍스트 포맷 사용
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logging(config: Dict[str, Any]) -> List[logging.Handler]:
    """
    로깅 시스템을 설정합니다.

    Args:
        config: 로깅 설정 딕셔너리

    Returns:
        List[logging.Handler]: 루트 로거에 추가된 핸들러

    Example:
        >>> setup_logging({
        ...     'console': {'enabled': True, 'level': 'INFO', 'format': 'text'},
        ...     'file': {
        ...         'enabled': True,
        ...         'level': 'WARN',
        ...         'dir': '/var/log/healthprobe',
        ...         'filename': 'healthprobe.log',
        ...         'rotation': {'max_size_mb': 10, 'backup_count': 5}
        ...     }
        ... })
    """
    root_logger = logging.getLogger()

    # 기존 핸들러 제거
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    # 루트 로거 레벨을 DEBUG로 설정 (핸들러에서 필터링)
    root_logger.setLevel(logging.DEBUG)

    handlers = []

    console_config = config.get('console', {})
    if console_config.get('enabled', True):
        handlers.append(_build_console_handler(console_config))

    file_config = config.get('file', {})
    if file_config.get('enabled', False):
        handlers.append(_build_file_handler(file_config))

    for handler in handlers:
        root_logger.addHandler(handler)

    logger = logging.getLogger(__name__)
    if handlers:
        logger.debug(
            f"로그 핸들러 {len(handlers)}개 활성화: "
            f"{', '.join(type(handler).__name__ for handler in handlers)}"
        )
    else:
        print("⚠️  경고: 활성화된 로그 핸들러가 없습니다.", file=sys.stderr)

    return handlers
