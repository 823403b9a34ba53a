"""测试公共夹具"""

from __future__ import annotations

from pathlib import Path

import pytest

from pcp.core.config import reset_config
from pcp.utils.logger import reset_logging
from pcp.utils.shell import CommandResult, get_executor, set_executor


class FakeExecutor:
    """记录调用的命令执行器，failures 中的包名返回非零退出码"""

    def __init__(self, failures: tuple[str, ...] = ()) -> None:
        self.failures = set(failures)
        self.calls: list[tuple[list[str], dict[str, str] | None]] = []

    def execute(self, cmd, *, env=None, timeout=None) -> CommandResult:
        self.calls.append((list(cmd), env))
        return CommandResult(returncode=1 if cmd[-1] in self.failures else 0)

    @property
    def fetched(self) -> list[str]:
        return [cmd[-1] for cmd, _ in self.calls]


def make_pkg(root: Path, identifier: str, files: dict[str, str] | None = None) -> Path:
    """在 root 下按包标识创建包目录，默认写一个空 __init__.py"""
    pkg = root.joinpath(*identifier.split("/"))
    pkg.mkdir(parents=True, exist_ok=True)
    for name, content in (files or {"__init__.py": ""}).items():
        target = pkg / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
    return pkg


@pytest.fixture()
def fake_executor():
    original = get_executor()
    fake = FakeExecutor()
    set_executor(fake)
    yield fake
    set_executor(original)


@pytest.fixture(autouse=True)
def _clean_globals():
    yield
    reset_config()
    reset_logging()
