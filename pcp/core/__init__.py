"""核心模块

- models.py: 数据模型
- exceptions.py: 错误类别
- config.py: 配置加载
- resolver.py: 包元信息解析
- copier.py: 目录树复制
- fetcher.py: 远程拉取
- engine.py: 依赖解析与复制引擎
- workspace.py: 工作空间初始化
"""

from pcp.core.engine import ResolutionEngine, TraversalContext
from pcp.core.models import CopyPkgRequest, PackageMetadata, PackageSpec

__all__ = [
    "CopyPkgRequest",
    "PackageMetadata",
    "PackageSpec",
    "ResolutionEngine",
    "TraversalContext",
]
