"""基础层测试：models / exceptions / config"""

from __future__ import annotations

from pathlib import Path

import pytest

from pcp.core.config import DEFAULT_FETCH_COMMAND, Config, get_config, init_config
from pcp.core.exceptions import (
    ErrorKind,
    InternalFailure,
    OperationError,
    PcpError,
    ResolutionError,
    UsageError,
)
from pcp.core.models import PackageMetadata, workspace_package_dir

# =========================================================================
# models.py
# =========================================================================


class TestModels:
    def test_metadata_defaults(self) -> None:
        meta = PackageMetadata(identifier="acme")
        assert meta.name == "" and meta.source_dir is None
        assert meta.is_standard is False and meta.dependencies == ()

    def test_workspace_package_dir(self, tmp_path: Path) -> None:
        assert workspace_package_dir(tmp_path, "acme/tools/cli") == tmp_path / "src" / "acme" / "tools" / "cli"


# =========================================================================
# exceptions.py
# =========================================================================


class TestExceptions:
    @pytest.mark.parametrize(("cls", "kind"), [
        (UsageError, ErrorKind.USAGE),
        (OperationError, ErrorKind.OPERATION),
        (ResolutionError, ErrorKind.OPERATION),
        (InternalFailure, ErrorKind.INTERNAL),
    ])
    def test_hierarchy(self, cls: type, kind: ErrorKind) -> None:
        assert issubclass(cls, PcpError)
        assert cls.kind is kind

    def test_formatted_and_diagnostic(self) -> None:
        e = OperationError('无法读取文件 "x"。', "couldn't open file for reading: x")
        assert e.formatted == '无法读取文件 "x"。'
        assert e.diagnostic == str(e) == "couldn't open file for reading: x"

    def test_diagnostic_defaults_to_formatted(self) -> None:
        assert UsageError("bad").diagnostic == "bad"

    def test_resolution_error_identifier(self) -> None:
        e = ResolutionError("missing", identifier="acme")
        assert e.identifier == "acme" and e.code == "RESOLUTION_ERROR"

    def test_internal_wrap(self) -> None:
        e = InternalFailure.wrap(PermissionError("denied"), "复制失败")
        assert e.formatted == "复制失败: denied"
        assert "PermissionError" in e.diagnostic


# =========================================================================
# config.py
# =========================================================================


class TestConfig:
    def test_default_values(self) -> None:
        cfg = Config()
        assert cfg.hidden_marker == "."
        assert cfg.dir_mode == 0o750
        assert cfg.search_path == []
        assert cfg.fetch_command == DEFAULT_FETCH_COMMAND
        assert cfg.fetch_command is not DEFAULT_FETCH_COMMAND

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        assert Config.from_file(str(tmp_path / "none.yml")) == Config()

    def test_from_file(self, tmp_path: Path) -> None:
        p = tmp_path / "pcp.yml"
        p.write_text(
            "hidden_marker: _\n"
            "dir_mode: '0700'\n"
            "search_path: [vendor]\n"
            "fetch_command: pip install -t {target}\n"
            "fetch_aliases: {yaml: PyYAML}\n"
            "owner: ci\n",
            encoding="utf-8",
        )
        cfg = Config.from_file(str(p))
        assert cfg.hidden_marker == "_"
        assert cfg.dir_mode == 0o700
        assert cfg.search_path == ["vendor"]
        assert cfg.fetch_command == ["pip", "install", "-t", "{target}"]
        assert cfg.fetch_aliases == {"yaml": "PyYAML"}
        assert cfg.extra == {"owner": "ci"}

    def test_single_search_path_string(self, tmp_path: Path) -> None:
        p = tmp_path / "pcp.yml"
        p.write_text("search_path: ./vendor\n", encoding="utf-8")
        assert Config.from_file(str(p)).search_path == ["./vendor"]

    def test_invalid_dir_mode(self, tmp_path: Path) -> None:
        p = tmp_path / "pcp.yml"
        p.write_text("dir_mode: rwx\n", encoding="utf-8")
        with pytest.raises(UsageError, match="dir_mode"):
            Config.from_file(str(p))

    def test_init_and_get(self, tmp_path: Path) -> None:
        p = tmp_path / "pcp.yml"
        p.write_text("fetch_timeout: 30\n", encoding="utf-8")
        cfg = init_config(str(p))
        assert get_config() is cfg
        assert cfg.fetch_timeout == 30
        assert cfg.to_dict()["fetch_timeout"] == 30
