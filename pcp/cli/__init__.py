"""pcp 命令行接口

    pcp [OPTIONS] WORKSPACE PACKAGE...

PACKAGE 格式为 identifier[:directory]。
"""

import logging
import os

import click
import yaml

from pcp import __version__
from pcp.cli.reporting import ErrorReporter
from pcp.core.config import DEFAULT_CONFIG_FILE, init_config
from pcp.core.engine import ResolutionEngine, TraversalContext
from pcp.core.exceptions import InternalFailure, PcpError
from pcp.core.workspace import create_workspace, parse_package_spec
from pcp.utils.logger import setup_logging

logger = logging.getLogger(__name__)

EPILOG = """\b
pcp 把 Python 包及其依赖复制到新的工作空间。查找顺序: 先在指定目录中查找，
再在现有搜索路径（sys.path）中查找，最后用 pip 下载。某个包出错时跳过它继续处理。

\b
指定目录可以使用不在现有环境中的源码（例如构建机上检出的某个提交）:
    pcp build-ws acme:$HOME/acme
会把 "$HOME/acme" 的内容作为包 "acme" 复制到 build-ws/src/acme。

\b
退出码: 0 成功，1 错误，2 语法错误，3 非致命错误。
"""


@click.command(epilog=EPILOG, context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("workspace")
@click.argument("packages", nargs=-1, required=True)
@click.option("--recursive/--no-recursive", default=True, help="递归复制子包及其依赖")
@click.option("--hidden", is_flag=True, help="包含隐藏文件")
@click.option("--abs", "print_abs", is_flag=True, help="输出工作空间的绝对路径")
@click.option("--verbose", "-v", is_flag=True, help="详细输出")
@click.option("--config", "-c", default=DEFAULT_CONFIG_FILE, help="配置文件路径")
@click.version_option(version=__version__)
@click.pass_context
def main(
    ctx: click.Context, workspace: str, packages: tuple[str, ...],
    recursive: bool, hidden: bool, print_abs: bool, verbose: bool, config: str,
) -> None:
    """把 Python 包及其依赖复制到新的工作空间"""
    setup_logging(
        level="INFO" if verbose else os.getenv("PCP_LOG_LEVEL", "WARNING"),
        json_output=os.getenv("PCP_LOG_JSON", "") == "1",
    )
    reporter = ErrorReporter(show_usage=lambda: click.echo(ctx.get_usage(), err=True))

    try:
        cfg = init_config(config)
    except PcpError as e:
        reporter.check(e, fatal=True)
    except (OSError, ValueError, TypeError, yaml.YAMLError) as e:
        reporter.check(InternalFailure.wrap(e, f"无法加载配置 {config}"), fatal=True)
    logger.debug("当前配置: %s", cfg.to_dict())

    try:
        root = create_workspace(workspace, cfg.dir_mode)
    except PcpError as e:
        reporter.check(e, fatal=True)
    if print_abs:
        click.echo(str(root))

    traversal = TraversalContext(
        workspace=root, recursive=recursive, include_hidden=hidden, on_error=reporter,
    )
    engine = ResolutionEngine.create(traversal, cfg)

    for raw in packages:
        try:
            spec = parse_package_spec(raw)
        except PcpError as e:
            reporter.check(e)
            continue
        request = spec.to_request()
        try:
            engine.copy_package(request.location, request.identifier)
        except Exception as e:  # noqa: BLE001
            reporter.check(InternalFailure.wrap(e, f"处理 {raw} 时出错"))

    if reporter.count:
        logger.info("共 %d 个错误", reporter.count)
    ctx.exit(reporter.exit_code)
