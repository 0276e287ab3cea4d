"""缺少 Gemfile.lock 时的终止守卫

构造时检查一次描述文件是否存在，之后状态不再变化。
MISSING 状态下任何构建阶段 (supply / finalize) 都直接失败。
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from rubypack.core.exceptions import MissingDescriptorError

DEFAULT_DESCRIPTOR = "Gemfile.lock"


class GuardState(str, Enum):
    APPLICABLE = "applicable"
    MISSING = "missing"


class NoDependencyGuard:
    name = "Ruby/NoLockfile"

    def __init__(self, build_dir: str | Path, descriptor: str = DEFAULT_DESCRIPTOR) -> None:
        self.descriptor = descriptor
        self.path = Path(build_dir) / descriptor
        self._state = GuardState.APPLICABLE if self.path.is_file() else GuardState.MISSING

    @classmethod
    def use(cls, build_dir: str | Path, descriptor: str = DEFAULT_DESCRIPTOR) -> bool:
        """守卫是否生效（描述文件缺失）"""
        return cls(build_dir, descriptor).state is GuardState.MISSING

    @property
    def state(self) -> GuardState:
        return self._state

    @property
    def message(self) -> str:
        return f"{self.descriptor.lower()} required. please check it in."

    def _check(self) -> None:
        if self._state is GuardState.MISSING:
            raise MissingDescriptorError(self.message)

    def supply(self) -> None:
        self._check()

    def finalize(self) -> None:
        self._check()
