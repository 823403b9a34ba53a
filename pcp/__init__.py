"""pcp - 将 Python 包及其依赖闭包复制到全新的隔离工作空间"""

__version__ = "0.1.0"
