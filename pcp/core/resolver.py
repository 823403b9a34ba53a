"""包元信息解析器

职责:
- 区分目录形式（以 "." 或 "/" 开头、或绝对路径）与包标识形式的位置
- 目录形式直接在该目录中解析，包标识形式在搜索路径中查找
- 判断是否属于标准库
- 通过 ast 扫描包内源码文件收集直接依赖，并归并为可复制的包标识

包标识使用 "/" 分隔（acme/tools/sub），对应搜索路径下的同名目录
或单文件模块（acme/helpers -> acme/helpers.py）。
只解析不复制，也不触发任何下载。
"""

from __future__ import annotations

import ast
import logging
import os
import sys
import sysconfig
from pathlib import Path
from typing import Protocol

from pcp.core.exceptions import ResolutionError
from pcp.core.models import PackageMetadata

logger = logging.getLogger(__name__)

SOURCE_SUFFIX = ".py"
_SITE_DIRS = frozenset(("site-packages", "dist-packages"))
_STDLIB_NAMES = frozenset(sys.stdlib_module_names) | frozenset(sys.builtin_module_names)


class MetadataResolver(Protocol):
    """元信息解析器协议

    解析失败时抛出 ResolutionError，其 identifier 为本次查找本应使用的包标识。
    """

    def resolve(self, location: str, identifier_override: str = "") -> PackageMetadata:
        ...


def is_directory_location(location: str) -> bool:
    """位置是否为目录形式"""
    return location.startswith((".", "/")) or os.path.isabs(location)


def normalize_identifier(location: str) -> str:
    """把 a.b.c 形式的导入路径统一为 a/b/c"""
    return location.strip("/").replace(".", "/")


def _stdlib_roots() -> list[Path]:
    paths = sysconfig.get_paths()
    roots = {paths.get("stdlib"), paths.get("platstdlib")}
    return [Path(p) for p in roots if p]


class PythonPackageResolver:
    """Python 包解析器

    search_path 为空时使用当前解释器的 sys.path；exclude 通常是目标工作空间，
    其下的目录不参与查找。
    """

    def __init__(
        self,
        search_path: list[str] | None = None,
        exclude: Path | None = None,
    ) -> None:
        self.exclude = Path(os.path.abspath(exclude)) if exclude else None
        entries = search_path or [p for p in sys.path if p]
        self.search_path: list[Path] = []
        for entry in entries:
            p = Path(os.path.abspath(entry))
            if p.is_dir() and not self._excluded(p) and p not in self.search_path:
                self.search_path.append(p)
        self._stdlib = _stdlib_roots()

    def resolve(self, location: str, identifier_override: str = "") -> PackageMetadata:
        if is_directory_location(location):
            directory = Path(os.path.abspath(location))
            identifier = identifier_override or self._identifier_for_dir(directory)
            return self._load(directory, identifier, str(directory))

        name = normalize_identifier(location)
        identifier = identifier_override or name
        top = name.split("/")[0]
        if top in _STDLIB_NAMES:
            return PackageMetadata(identifier=identifier, name=top, is_standard=True)

        found = self._find(name)
        if found is None:
            raise ResolutionError(
                f'"{location}" 不是有效的 Python 包。',
                f"couldn't find package: {location}",
                identifier=identifier,
            )
        if found.is_file():
            return self._load_module(found, identifier)
        return self._load(found, identifier, location)

    def dependency_identifier(self, import_path: str) -> str | None:
        """把导入路径归并为要复制的包标识

        普通包或单文件模块取最短的本地前缀（acme/tools/cli -> acme）；
        命名空间包（不含源码文件的目录）逐级向下，直到遇到普通包或模块
        （google/protobuf/message -> google/protobuf）。
        本地找不到时返回查找停止处的前缀（通常就是顶层名），交给远程拉取；
        导入路径止于命名空间目录本身时返回 None。
        """
        parts = import_path.split("/")
        if parts[0] in _STDLIB_NAMES:
            return parts[0]
        bases = self.search_path
        for depth, part in enumerate(parts, 1):
            prefix = "/".join(parts[:depth])
            portions: list[Path] = []
            for base in bases:
                candidate = base / part
                if self._excluded(candidate):
                    continue
                if (base / f"{part}{SOURCE_SUFFIX}").is_file():
                    return prefix
                if candidate.is_dir():
                    if _source_files(candidate):
                        return prefix
                    portions.append(candidate)
            if not portions:
                return prefix
            bases = portions
        logger.debug("%s 是命名空间包，不单独复制", import_path)
        return None

    # ------------------------------------------------------------------
    # 查找
    # ------------------------------------------------------------------

    def _excluded(self, path: Path) -> bool:
        return self.exclude is not None and (path == self.exclude or self.exclude in path.parents)

    def _find(self, name: str) -> Path | None:
        """在搜索路径中查找包目录或单文件模块

        含源码文件的目录或同名 .py 模块优先返回；都没有时退回首个同名目录。
        """
        fallback: Path | None = None
        parts = name.split("/")
        for entry in self.search_path:
            candidate = entry.joinpath(*parts)
            if self._excluded(candidate):
                continue
            if candidate.is_dir():
                if _source_files(candidate):
                    return candidate
                if fallback is None:
                    fallback = candidate
            module = candidate.with_name(f"{parts[-1]}{SOURCE_SUFFIX}")
            if module.is_file():
                return module
        return fallback

    def _identifier_for_dir(self, directory: Path) -> str:
        """目录形式且未指定标识时，按所在搜索路径推导包标识"""
        for entry in self.search_path:
            if entry in directory.parents:
                return directory.relative_to(entry).as_posix()
        return directory.name

    def _is_stdlib_dir(self, directory: Path) -> bool:
        if _SITE_DIRS.intersection(directory.parts):
            return False
        return any(root == directory or root in directory.parents for root in self._stdlib)

    # ------------------------------------------------------------------
    # 元信息
    # ------------------------------------------------------------------

    def _load(self, directory: Path, identifier: str, shown: str) -> PackageMetadata:
        if not directory.is_dir():
            raise ResolutionError(
                f'"{shown}" 不是有效的目录。',
                f"not a directory: {directory}",
                identifier=identifier,
            )
        sources = _source_files(directory)
        if not sources:
            raise ResolutionError(
                f'"{shown}" 不是有效的 Python 包。',
                f"couldn't find package: no {SOURCE_SUFFIX} files in {directory}",
                identifier=identifier,
            )
        return PackageMetadata(
            identifier=identifier,
            name=directory.name,
            source_dir=directory,
            is_standard=self._is_stdlib_dir(directory),
            dependencies=self._dependencies(sources, identifier),
        )

    def _load_module(self, module: Path, identifier: str) -> PackageMetadata:
        """单文件模块: source_dir 指向 .py 文件本身"""
        return PackageMetadata(
            identifier=identifier,
            name=module.stem,
            source_dir=module,
            is_standard=self._is_stdlib_dir(module),
            dependencies=self._dependencies([module], identifier),
        )

    def _dependencies(self, sources: list[Path], identifier: str) -> tuple[str, ...]:
        deps: set[str] = set()
        for import_path in scan_imports(sources):
            # 包内自引用（acme/tools 中的 import acme.tools.x）
            if import_path == identifier or import_path.startswith(f"{identifier}/"):
                continue
            dep = self.dependency_identifier(import_path)
            if dep and dep != identifier:
                deps.add(dep)
        return tuple(sorted(deps))


def _source_files(directory: Path) -> list[Path]:
    try:
        return sorted(
            p for p in directory.iterdir()
            if p.suffix == SOURCE_SUFFIX and p.is_file()
        )
    except OSError as e:
        logger.debug("无法列出目录 %s: %s", directory, e)
        return []


def scan_imports(sources: list[Path]) -> tuple[str, ...]:
    """收集源码文件中的绝对导入路径（a.b 记为 a/b），去重并排序

    from a import b 记为 a/b，因为 b 可能是子模块。
    相对导入属于包内引用，不计入依赖。无法解析的文件记录警告后跳过。
    """
    found: set[str] = set()
    for src in sources:
        try:
            tree = ast.parse(src.read_text(encoding="utf-8"), filename=str(src))
        except (SyntaxError, UnicodeDecodeError, OSError) as e:
            logger.warning("跳过无法解析的源码文件 %s: %s", src, e)
            continue
        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                found.update(normalize_identifier(alias.name) for alias in node.names)
            elif isinstance(node, ast.ImportFrom) and node.level == 0 and node.module:
                module = normalize_identifier(node.module)
                for alias in node.names:
                    found.add(module if alias.name == "*" else f"{module}/{alias.name}")
    return tuple(sorted(found))
