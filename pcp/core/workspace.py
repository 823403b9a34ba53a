"""工作空间初始化与包参数解析"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from pcp.core.copier import DEFAULT_DIR_MODE, make_dirs
from pcp.core.exceptions import OperationError, UsageError
from pcp.core.models import PackageSpec
from pcp.core.resolver import is_directory_location, normalize_identifier

logger = logging.getLogger(__name__)


def create_workspace(path: str, mode: int = DEFAULT_DIR_MODE) -> Path:
    """在 path 处创建工作空间目录，返回绝对路径

    path 为空抛 UsageError，目录无法创建抛 OperationError。
    """
    if not path:
        raise UsageError("必须提供工作空间路径。", "path is empty")

    abs_path = Path(os.path.abspath(path))
    try:
        make_dirs(abs_path, mode)
    except OSError as e:
        raise OperationError(
            f'无法在 "{abs_path}" 创建目录。',
            f"couldn't create workspace: {e}",
        ) from e
    logger.info("工作空间: %s", abs_path)
    return abs_path


def parse_package_spec(spec: str) -> PackageSpec:
    """解析 identifier[:directory] 格式的包参数

    identifier 为空抛 UsageError；directory 不存在抛 OperationError；
    包标识统一为 "/" 分隔（acme.tools -> acme/tools），目录形式的位置原样保留；
    directory 统一转为绝对路径。
    """
    raw, _, directory = spec.partition(":")
    identifier = raw if is_directory_location(raw) else normalize_identifier(raw)
    if not identifier:
        raise UsageError(f'"{spec}" 不是有效的包标识。', "invalid import path")
    if not directory:
        return PackageSpec(identifier=identifier)

    if not os.path.exists(directory):
        raise OperationError(
            f'"{directory}" 不是有效的目录。',
            f"no such file or directory: {directory}",
        )
    return PackageSpec(identifier=identifier, directory=os.path.abspath(directory))
