"""远程拉取器

职责:
- 对本地无法解析的包调用外部包管理器（默认 pip）下载到工作空间
- 下载期间把工作空间注入为子进程的 PYTHONPATH
- 子进程继承调用方的标准流，结果只有成功 / 失败
"""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path

from pcp.core.config import DEFAULT_FETCH_COMMAND
from pcp.core.exceptions import OperationError
from pcp.core.models import SRC_DIR
from pcp.utils.shell import CommandExecutor, get_executor

logger = logging.getLogger(__name__)


class PackageFetcher:
    """远程拉取器 - 包管理器负责连同依赖一并拉取"""

    def __init__(
        self,
        workspace: Path,
        *,
        command: list[str] | None = None,
        aliases: dict[str, str] | None = None,
        timeout: int | None = None,
        executor: CommandExecutor | None = None,
    ) -> None:
        self.workspace = workspace
        self.command = list(command or DEFAULT_FETCH_COMMAND)
        self.aliases = aliases or {}
        self.timeout = timeout
        self.executor = executor or get_executor()

    @property
    def target(self) -> Path:
        return self.workspace / SRC_DIR

    def distribution_for(self, identifier: str) -> str:
        """包标识 -> 发行包名（如 yaml -> PyYAML），未配置别名时取顶层导入名

        别名先按完整导入路径匹配（google.cloud.storage -> google-cloud-storage），
        再按顶层名匹配。
        """
        dotted = identifier.replace("/", ".")
        if dotted in self.aliases:
            return self.aliases[dotted]
        top = dotted.split(".")[0]
        return self.aliases.get(top, top)

    def build_command(self, identifier: str) -> list[str]:
        target = str(self.target)
        cmd = [part.replace("{target}", target) for part in self.command]
        cmd.append(self.distribution_for(identifier))
        return cmd

    def fetch(self, identifier: str) -> None:
        """拉取单个包到 <workspace>/src，失败抛 OperationError"""
        cmd = self.build_command(identifier)
        env = {**os.environ, "PYTHONPATH": str(self.target)}
        logger.info("远程拉取: %s (%s)", identifier, " ".join(cmd))
        try:
            self.target.mkdir(parents=True, exist_ok=True)
            result = self.executor.execute(cmd, env=env, timeout=self.timeout)
        except (OSError, subprocess.SubprocessError) as e:
            raise OperationError(
                f'下载包 "{identifier}" 出错: {e}。',
                f"error downloading package: {e}",
            ) from e
        if not result.success:
            raise OperationError(
                f'下载包 "{identifier}" 出错: 退出码 {result.returncode}。',
                f"error downloading package: exit status {result.returncode}",
            )
        logger.info("  已拉取: %s", identifier)
