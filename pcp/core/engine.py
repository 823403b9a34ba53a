"""依赖解析与复制引擎

职责:
- copy_package: 解析一个包，复制到工作空间（或远程拉取），
  再递归处理它的直接依赖和子包
- find_sub_packages: 扫描包目录，找出未通过依赖声明可达的嵌套子包
- 通过 TraversalContext 保证每个包标识在一次运行中至多处理一次

所有单包失败都累积为错误列表返回，不中断其余包的处理。
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from pathlib import Path

from pcp.core.config import Config, get_config
from pcp.core.copier import TreeCopier
from pcp.core.exceptions import InternalFailure, OperationError, PcpError, ResolutionError
from pcp.core.fetcher import PackageFetcher
from pcp.core.models import CopyPkgRequest, PackageMetadata, workspace_package_dir
from pcp.core.resolver import MetadataResolver, PythonPackageResolver
from pcp.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)

_SKIP_DIRS = frozenset(("__pycache__",))


@dataclass
class TraversalContext:
    """一次运行的遍历上下文

    visited 只增不减，以包标识（而非 标识+目录）为键。
    """

    workspace: Path
    recursive: bool = True
    include_hidden: bool = False
    on_error: Callable[[PcpError], None] | None = None
    visited: set[str] = field(default_factory=set)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    def claim(self, identifier: str) -> bool:
        """原子地认领包标识：首次认领返回 True，已被认领返回 False"""
        with self._lock:
            if identifier in self.visited:
                return False
            self.visited.add(identifier)
            return True

    def record(self, errors: list[PcpError]) -> list[PcpError]:
        """新产生的错误立即交给 on_error，原样返回便于累积"""
        if self.on_error is not None:
            for err in errors:
                self.on_error(err)
        return errors


class ResolutionEngine:
    """依赖解析与复制引擎"""

    def __init__(
        self,
        ctx: TraversalContext,
        resolver: MetadataResolver,
        copier: TreeCopier,
        fetcher: PackageFetcher,
    ) -> None:
        self.ctx = ctx
        self.resolver = resolver
        self.copier = copier
        self.fetcher = fetcher

    @classmethod
    def create(
        cls,
        ctx: TraversalContext,
        config: Config | None = None,
        executor: CommandExecutor | None = None,
    ) -> ResolutionEngine:
        """按配置组装默认的解析器 / 复制器 / 拉取器"""
        cfg = config or get_config()
        resolver = PythonPackageResolver(cfg.search_path or None, exclude=ctx.workspace)
        copier = TreeCopier(
            workspace=ctx.workspace,
            include_hidden=ctx.include_hidden,
            hidden_marker=cfg.hidden_marker,
            dir_mode=cfg.dir_mode,
        )
        fetcher = PackageFetcher(
            ctx.workspace,
            command=cfg.fetch_command,
            aliases=cfg.fetch_aliases,
            timeout=cfg.fetch_timeout,
            executor=executor,
        )
        return cls(ctx, resolver, copier, fetcher)

    # ------------------------------------------------------------------
    # copy-one-package
    # ------------------------------------------------------------------

    def copy_package(self, location: str, identifier: str = "") -> list[PcpError]:
        """把 location 处的包（含依赖）复制到工作空间

        location 为普通包标识且 identifier 为空时，以 location 作为包标识，
        即 copy_package(x) == copy_package(x, x)。
        查找顺序: 目录 -> 搜索路径 -> 远程拉取。标准库包和已处理过的包直接跳过。
        """
        meta: PackageMetadata | None = None
        try:
            meta = self.resolver.resolve(location, identifier)
        except ResolutionError as e:
            key = e.identifier or identifier or location
            logger.debug("本地解析失败: %s (%s)", key, e.diagnostic)
        except OSError as e:
            key = identifier or location
            if not self.ctx.claim(key):
                return []
            return self.ctx.record([InternalFailure.wrap(e, f'解析 "{location}" 失败')])
        else:
            key = meta.identifier

        if not self.ctx.claim(key):
            if meta is None or not meta.is_standard:
                logger.info("已复制过 %s", key)
            return []

        if meta is None or not meta.name:
            # 本地找不到，交给包管理器拉取；它会自行处理依赖和子包
            logger.info("获取 %s", key)
            try:
                self.fetcher.fetch(key)
            except OperationError as e:
                return self.ctx.record([e])
            return []

        if meta.is_standard or meta.source_dir is None:
            logger.debug("跳过标准库包 %s", key)
            return []
        return self._copy_resolved(meta, meta.source_dir)

    def _copy_resolved(self, meta: PackageMetadata, source: Path) -> list[PcpError]:
        logger.info('复制 %s（来自 "%s"）', meta.identifier, source)
        dst = workspace_package_dir(self.ctx.workspace, meta.identifier)
        if source.is_file():
            # 单文件模块: src/acme/helpers.py
            dst = dst.with_name(source.name)
        try:
            copied = self.copier.copy_tree(source, dst)
        except OSError as e:
            copied = [InternalFailure.wrap(e, f"复制 {meta.identifier} 失败")]
        errors = list(self.ctx.record(copied))

        # 即使自身复制部分失败，依赖和子包仍要继续尝试
        for dep in meta.dependencies:
            errors.extend(self.copy_package(dep))

        if self.ctx.recursive and source.is_dir():
            for sub in self.find_sub_packages(source, meta.identifier):
                logger.info("%s 含子包 %s", meta.identifier, sub.identifier)
                errors.extend(self.copy_package(sub.location, sub.identifier))
        return errors

    # ------------------------------------------------------------------
    # 子包发现
    # ------------------------------------------------------------------

    def find_sub_packages(self, base_dir: Path, base_identifier: str) -> list[CopyPkgRequest]:
        """找出 base_dir 下的所有子包

        例: /src/acme/tools（标识 acme/tools）下有子目录 cli，
        则产出 CopyPkgRequest("/src/acme/tools/cli", "acme/tools/cli")。
        无法解析为包的目录静默跳过。
        """
        found: list[CopyPkgRequest] = []
        for directory in self._walk_dirs(base_dir):
            rel = directory.relative_to(base_dir).as_posix()
            sub_identifier = f"{base_identifier}/{rel}"
            try:
                meta = self.resolver.resolve(str(directory), sub_identifier)
            except (ResolutionError, OSError) as e:
                logger.debug("不是子包: %s (%s)", directory, e)
                continue
            if meta.name and meta.source_dir is not None:
                found.append(CopyPkgRequest(str(meta.source_dir), meta.identifier))
        return found

    def _walk_dirs(self, base_dir: Path) -> Iterator[Path]:
        """先序产出 base_dir 下的子目录（不含根、工作空间、隐藏目录）"""
        root = Path(os.path.abspath(base_dir))
        workspace = Path(os.path.abspath(self.ctx.workspace))
        stack = [root]
        while stack:
            current = stack.pop()
            if current != root:
                yield current
            try:
                with os.scandir(current) as it:
                    subdirs = sorted(
                        Path(e.path) for e in it
                        if e.is_dir(follow_symlinks=False)
                        and e.name not in _SKIP_DIRS
                        and not self.copier.is_hidden(e.name)
                    )
            except OSError as e:
                logger.debug("无法遍历 %s: %s", current, e)
                continue
            # 逆序入栈，出栈时即为字典序
            stack.extend(d for d in reversed(subdirs) if d != workspace)
