"""核心数据模型

数据类:
- PackageMetadata: 单个包的元信息（每次查找重新生成，不缓存）
- CopyPkgRequest: 一次 copy_package 调用的参数
- PackageSpec: 命令行 identifier[:directory] 解析结果
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

# 工作空间内存放源码的子目录
SRC_DIR = "src"


@dataclass
class PackageMetadata:
    """包元信息"""

    identifier: str
    name: str = ""                  # 目录中没有源码文件时为空
    source_dir: Path | None = None  # 绝对路径，单文件模块为 .py 文件；标准库内置模块可能为空
    is_standard: bool = False
    dependencies: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class CopyPkgRequest:
    """复制请求：位置可以是包标识或目录路径，identifier 为可选覆盖"""

    location: str
    identifier: str = ""


@dataclass(frozen=True)
class PackageSpec:
    """命令行参数 identifier[:directory]"""

    identifier: str
    directory: str = ""

    def to_request(self) -> CopyPkgRequest:
        # 指定目录时使用目录中的源码，并以 identifier 作为包标识
        if self.directory:
            return CopyPkgRequest(location=self.directory, identifier=self.identifier)
        return CopyPkgRequest(location=self.identifier)


def workspace_package_dir(workspace: Path, identifier: str) -> Path:
    """计算包在工作空间中的目标目录: <workspace>/src/<identifier>"""
    return workspace.joinpath(SRC_DIR, *identifier.split("/"))
