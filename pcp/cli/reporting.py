"""CLI — 错误输出与退出码

每个错误发现时立即输出，退出码取整次运行中最严重的一类:
0 成功，1 致命错误，2 语法错误，3 非致命错误。
"""

from __future__ import annotations

import logging
from collections.abc import Callable

import click

from pcp.core.exceptions import ErrorKind, PcpError

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_USAGE = 2
EXIT_PARTIAL = 3


class ErrorReporter:
    """错误报告器，可直接作为 TraversalContext.on_error 使用"""

    def __init__(self, show_usage: Callable[[], None] | None = None) -> None:
        self.show_usage = show_usage
        self.exit_code = EXIT_OK
        self.count = 0

    def __call__(self, err: PcpError) -> None:
        self.report(err)

    def report(self, err: PcpError, *, fatal: bool = False) -> None:
        """输出单个错误；fatal 时按类别立即退出"""
        self.count += 1
        click.echo(err.formatted, err=True)
        logger.debug("%s: %s", err.code, err.diagnostic)

        if err.kind is ErrorKind.USAGE:
            if self.show_usage is not None:
                self.show_usage()
            if fatal:
                raise click.exceptions.Exit(EXIT_USAGE)
        elif fatal:
            # OPERATION / INTERNAL
            raise click.exceptions.Exit(EXIT_FATAL)
        self.exit_code = EXIT_PARTIAL

    def check(self, *errors: PcpError, fatal: bool = False) -> bool:
        """批量输出错误，有错误时返回 True"""
        for err in errors:
            self.report(err, fatal=fatal)
        return bool(errors)
