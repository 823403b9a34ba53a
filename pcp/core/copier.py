"""目录树复制器

职责:
- 显式栈遍历源目录，惰性产出条目，先过滤再处理
- 跳过隐藏条目（可配置）和目标工作空间本身
- 先复制内容，全部完成后再按创建顺序的逆序补设权限位，
  避免只读目录 / 文件挡住中途写入
- 单个条目失败只记录，不中断遍历
"""

from __future__ import annotations

import errno
import logging
import os
import shutil
import stat
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from pcp.core.exceptions import OperationError, PcpError

logger = logging.getLogger(__name__)

DEFAULT_DIR_MODE = 0o750

_ROOT_REL = Path(".")


@dataclass
class WalkEntry:
    """遍历产出的单个条目"""

    path: Path
    rel: Path
    mode: int

    @property
    def is_dir(self) -> bool:
        return stat.S_ISDIR(self.mode)

    @property
    def is_symlink(self) -> bool:
        return stat.S_ISLNK(self.mode)


def make_dirs(path: Path, mode: int = DEFAULT_DIR_MODE) -> None:
    """逐级创建目录，每一级都使用 mode（os.makedirs 只对末级生效）"""
    missing: list[Path] = []
    p = path
    while not p.exists():
        missing.append(p)
        if p.parent == p:
            break
        p = p.parent
    for d in reversed(missing):
        d.mkdir(mode=mode, exist_ok=True)
    if not path.is_dir():
        raise NotADirectoryError(errno.ENOTDIR, os.strerror(errno.ENOTDIR), str(path))


class TreeCopier:
    """保留权限位的目录树复制器"""

    def __init__(
        self,
        *,
        workspace: Path | None = None,
        include_hidden: bool = False,
        hidden_marker: str = ".",
        dir_mode: int = DEFAULT_DIR_MODE,
    ) -> None:
        self.workspace = Path(os.path.abspath(workspace)) if workspace else None
        self.include_hidden = include_hidden
        self.hidden_marker = hidden_marker
        self.dir_mode = dir_mode

    def is_hidden(self, name: str) -> bool:
        if self.include_hidden or not self.hidden_marker:
            return False
        return name.startswith(self.hidden_marker)

    def walk(self, src: Path, errors: list[PcpError]) -> Iterator[WalkEntry]:
        """先序遍历 src（含根本身），遍历错误追加到 errors 后继续

        只能消费一次；根目录跟随符号链接，且不做隐藏过滤。
        """
        src = Path(os.path.abspath(src))
        if src == self.workspace:
            return
        try:
            root_mode = src.stat().st_mode
        except OSError as e:
            errors.append(_traverse_error(src, e))
            return
        yield WalkEntry(src, _ROOT_REL, root_mode)
        if not stat.S_ISDIR(root_mode):
            return

        stack: list[Iterator[os.DirEntry[str]]] = []
        listing = self._list(src, errors)
        if listing is not None:
            stack.append(listing)
        while stack:
            entry = next(stack[-1], None)
            if entry is None:
                stack.pop()
                continue
            if self.is_hidden(entry.name):
                continue
            path = Path(entry.path)
            if path == self.workspace:
                logger.debug("跳过工作空间目录: %s", path)
                continue
            try:
                mode = entry.stat(follow_symlinks=False).st_mode
            except OSError as e:
                errors.append(_traverse_error(path, e))
                continue
            yield WalkEntry(path, path.relative_to(src), mode)
            if stat.S_ISDIR(mode):
                listing = self._list(path, errors)
                if listing is not None:
                    stack.append(listing)

    @staticmethod
    def _list(directory: Path, errors: list[PcpError]) -> Iterator[os.DirEntry[str]] | None:
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            errors.append(_traverse_error(directory, e))
            return None
        return iter(entries)

    def copy_tree(self, src: Path, dst: Path) -> list[PcpError]:
        """递归复制 src 到 dst，返回全部错误（空列表表示成功）"""
        errors: list[PcpError] = []
        pending: list[tuple[Path, int]] = []

        for entry in self.walk(src, errors):
            target = dst / entry.rel
            if entry.is_dir:
                err = self._make_dir(target)
                if err is not None:
                    errors.append(err)
                    continue
            elif entry.is_symlink:
                err = _copy_symlink(entry.path, target)
                if err is not None:
                    errors.append(err)
                continue
            else:
                err = None
                if entry.rel == _ROOT_REL:
                    # 根本身是文件（单文件模块），目标的父目录可能还不存在
                    err = self._make_dir(target.parent)
                if err is None:
                    err = _copy_file(entry.path, target)
                if err is not None:
                    errors.append(err)
                    continue
            pending.append((target, stat.S_IMODE(entry.mode)))

        # 内容全部写完后再设置权限，逆序保证子条目先于父目录
        for path, mode in reversed(pending):
            try:
                os.chmod(path, mode)
            except OSError as e:
                errors.append(OperationError(
                    f'无法设置 "{path}" 的权限: {e}。',
                    f"couldn't set permissions: {path}: {e}",
                ))
        return errors

    def _make_dir(self, target: Path) -> PcpError | None:
        try:
            if target.is_dir():
                # 上一轮复制可能已把目录设为只读，临时放开属主写权限
                current = stat.S_IMODE(target.stat().st_mode)
                if current & stat.S_IRWXU != stat.S_IRWXU:
                    os.chmod(target, current | stat.S_IRWXU)
            else:
                make_dirs(target, self.dir_mode)
        except OSError as e:
            return OperationError(
                f'无法创建目录 "{target}": {e}。',
                f"couldn't create dir: {target}: {e}",
            )
        return None


def _traverse_error(path: Path, exc: OSError) -> OperationError:
    return OperationError(
        f'无法遍历 "{path}": {exc}。',
        f"error copying file: {exc}",
    )


def _copy_file(src: Path, dst: Path) -> PcpError | None:
    """复制文件内容，不保留权限"""
    try:
        fsrc = open(src, "rb")
    except OSError as e:
        return OperationError(
            f'无法读取文件 "{src}": {e}。',
            f"couldn't open file for reading: {src}: {e}",
        )
    with fsrc:
        try:
            # 目标可能是上一轮复制留下的只读文件
            if dst.is_file() or dst.is_symlink():
                dst.unlink()
            fdst = open(dst, "wb")
        except OSError as e:
            return OperationError(
                f'无法创建文件 "{dst}": {e}。',
                f"couldn't create file: {dst}: {e}",
            )
        with fdst:
            try:
                shutil.copyfileobj(fsrc, fdst)
            except OSError as e:
                return OperationError(
                    f'无法复制 "{src}" 的内容: {e}。',
                    f"couldn't copy file: {src}: {e}",
                )
    return None


def _copy_symlink(src: Path, dst: Path) -> PcpError | None:
    """按原样重建符号链接，不跟随"""
    try:
        if dst.is_symlink() or dst.is_file():
            dst.unlink()
        os.symlink(os.readlink(src), dst)
    except OSError as e:
        return OperationError(
            f'无法复制符号链接 "{src}": {e}。',
            f"couldn't copy symlink: {src}: {e}",
        )
    return None
