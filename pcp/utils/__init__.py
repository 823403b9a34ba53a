"""通用工具: 日志、YAML 读取、外部命令执行"""
