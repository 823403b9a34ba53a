"""集中配置管理

提供统一的配置入口，支持从 YAML 文件加载 + 编程式覆盖。
"""

from __future__ import annotations

import logging
import sys
from dataclasses import asdict, dataclass, field

from pcp.core.exceptions import UsageError
from pcp.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "pcp.yml"

# {target} 会被替换为 <workspace>/src，包名追加在命令末尾
DEFAULT_FETCH_COMMAND = [
    sys.executable, "-m", "pip", "install", "--no-input", "--target", "{target}",
]


@dataclass
class Config:
    """全局配置"""

    # 复制
    hidden_marker: str = "."
    dir_mode: int = 0o750

    # 解析（为空时使用当前解释器的 sys.path）
    search_path: list[str] = field(default_factory=list)

    # 远程拉取
    fetch_command: list[str] = field(default_factory=lambda: list(DEFAULT_FETCH_COMMAND))
    fetch_aliases: dict[str, str] = field(default_factory=dict)  # 导入名 -> 发行包名
    fetch_timeout: int | None = None

    # 自定义扩展 (放不到字段里的配置项)
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_file(cls, path: str = DEFAULT_CONFIG_FILE) -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        data = load_yaml(path)
        if not data:
            return cls()
        known = {f.name for f in cls.__dataclass_fields__.values()}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        if isinstance(matched.get("dir_mode"), str):
            try:
                matched["dir_mode"] = int(matched["dir_mode"], 8)
            except ValueError as e:
                raise UsageError(
                    f"配置项 dir_mode 不是合法的八进制权限: {matched['dir_mode']}",
                    f"invalid dir_mode: {e}",
                ) from e
        if isinstance(matched.get("fetch_command"), str):
            matched["fetch_command"] = matched["fetch_command"].split()
        if isinstance(matched.get("search_path"), str):
            matched["search_path"] = [matched["search_path"]]
        cfg = cls(**matched)
        cfg.extra = extra
        return cfg

    def to_dict(self) -> dict:
        return asdict(self)


# 全局单例，首次 import 时不加载文件；由 CLI 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str = DEFAULT_CONFIG_FILE) -> Config:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path)
    logger.info("配置已加载: %s", path)
    return _current


def reset_config() -> None:
    """恢复为未初始化状态（测试用）"""
    global _current  # noqa: PLW0603
    _current = None
