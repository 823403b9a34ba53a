"""统一异常体系

所有错误继承 PcpError，按 ErrorKind 分为三类:
- UsageError: 输入语法错误（程序级参数出错时致命）
- OperationError: 单个包的解析 / 复制 / 拉取失败（记录后继续）
- InternalFailure: 其余未分类的意外错误

每个错误同时携带面向用户的 formatted 消息和简短的 diagnostic 诊断串，
CLI 层据此输出友好提示并决定退出码。
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(Enum):
    """错误类别（封闭枚举，报告层据此穷举匹配）"""

    USAGE = "usage"
    OPERATION = "operation"
    INTERNAL = "internal"


class PcpError(Exception):
    """框架基础异常"""

    code: str = "UNKNOWN"
    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, formatted: str, diagnostic: str = "") -> None:
        super().__init__(diagnostic or formatted)
        self.formatted = formatted
        self.diagnostic = diagnostic or formatted


class UsageError(PcpError):
    """命令行输入格式错误"""

    code = "USAGE_ERROR"
    kind = ErrorKind.USAGE


class OperationError(PcpError):
    """某个包解析、复制或拉取失败"""

    code = "OPERATION_ERROR"
    kind = ErrorKind.OPERATION


class ResolutionError(OperationError):
    """包元信息解析失败

    identifier 为这次查找本应使用的包标识，引擎据此决定是否回退到远程拉取。
    """

    code = "RESOLUTION_ERROR"

    def __init__(self, formatted: str, diagnostic: str = "", *, identifier: str = "") -> None:
        super().__init__(formatted, diagnostic)
        self.identifier = identifier


class InternalFailure(PcpError):
    """未归类的意外错误（如 I/O 异常）"""

    code = "INTERNAL_FAILURE"
    kind = ErrorKind.INTERNAL

    @classmethod
    def wrap(cls, exc: BaseException, context: str = "") -> InternalFailure:
        """把任意异常包装为 InternalFailure"""
        label = f"{context}: " if context else ""
        return cls(f"{label}{exc}", f"internal failure: {type(exc).__name__}: {exc}")
