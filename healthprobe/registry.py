"""
체크 레지스트리 모듈

체크 이름과 프로브의 매핑을 보관합니다.
등록은 초기화 단계에서만 이루어지고, freeze() 이후에는 읽기 전용으로 공유됩니다.
"""

import logging
import threading
from collections.abc import Sequence
from typing import Any, Callable, Dict, Iterator, Optional, Tuple

from healthprobe.errors import DuplicateNameError, RegistryFrozenError
from healthprobe.models import Check

logger = logging.getLogger(__name__)


class CheckView(Sequence):
    """
    레지스트리에 등록된 체크를 등록 순서대로 보여주는 뷰

    반복할 때마다 처음부터 다시 순회할 수 있습니다.
    """

    def __init__(self, registry: 'CheckRegistry'):
        self._registry = registry

    def __getitem__(self, index):
        return self._registry._snapshot()[index]

    def __len__(self) -> int:
        return len(self._registry._snapshot())

    def __iter__(self) -> Iterator[Check]:
        return iter(self._registry._snapshot())

    def __repr__(self) -> str:
        return f"CheckView({[check.name for check in self]})"


class CheckRegistry:
    """
    체크 레지스트리

    Example:
        >>> registry = CheckRegistry()
        >>> registry.register('db', 0.5, ping_db)
        >>> registry.freeze()
        >>> [check.name for check in registry.list()]
        ['db']
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._checks: Dict[str, Check] = {}
        self._ordered: Tuple[Check, ...] = ()
        self._frozen = False

    def register(
        self,
        name: str,
        timeout: float,
        probe: Callable[[], Any],
        critical: bool = True
    ) -> Check:
        """
        체크를 등록합니다.

        Args:
            name: 체크 이름
            timeout: 제한 시간 (초)
            probe: 인자 없이 호출되는 프로브
            critical: 실패 시 전체 상태를 Unhealthy로 만들지 여부

        Returns:
            Check: 등록된 체크

        Raises:
            DuplicateNameError: 같은 이름이 이미 등록된 경우
            RegistryFrozenError: freeze() 이후 호출된 경우
            ValueError: 이름, 제한 시간, 프로브가 잘못된 경우
        """
        if not name or not isinstance(name, str):
            raise ValueError(f"Check name must be a non-empty string, got {name!r}")
        if timeout is None or timeout <= 0:
            raise ValueError(f"Check {name!r}: timeout must be positive, got {timeout!r}")
        if not callable(probe):
            raise ValueError(f"Check {name!r}: probe is not callable")

        check = Check(name=name, timeout=float(timeout), probe=probe, critical=bool(critical))

        with self._lock:
            if self._frozen:
                raise RegistryFrozenError(f"Registry is frozen, cannot register {name!r}")
            if name in self._checks:
                raise DuplicateNameError(name)
            self._checks[name] = check
            # 읽기 측은 락 없이 튜플 참조만 가져갑니다.
            self._ordered = self._ordered + (check,)

        logger.debug(
            f"체크 등록: {name} (timeout={check.timeout * 1000:.0f}ms, critical={check.critical})"
        )
        return check

    def freeze(self) -> None:
        """등록 단계를 종료합니다."""
        with self._lock:
            self._frozen = True
        logger.debug(f"레지스트리 고정: {len(self._ordered)}개 체크")

    @property
    def frozen(self) -> bool:
        return self._frozen

    def list(self) -> CheckView:
        """등록 순서대로 체크를 순회하는 뷰를 반환합니다."""
        return CheckView(self)

    def get(self, name: str) -> Optional[Check]:
        return self._checks.get(name)

    def _snapshot(self) -> Tuple[Check, ...]:
        return self._ordered

    def __contains__(self, name) -> bool:
        return name in self._checks

    def __len__(self) -> int:
        return len(self._ordered)

    def __iter__(self) -> Iterator[Check]:
        return iter(self._ordered)
