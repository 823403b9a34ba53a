"""目录树复制器测试"""

from __future__ import annotations

import os
import stat
from pathlib import Path

import pytest

from pcp.core.copier import TreeCopier, WalkEntry, make_dirs
from pcp.core.exceptions import OperationError


def _mode(p: Path) -> int:
    return stat.S_IMODE(p.lstat().st_mode)


@pytest.fixture()
def umask_022():
    old = os.umask(0o022)
    yield
    os.umask(old)


@pytest.fixture()
def src(tmp_path: Path) -> Path:
    root = tmp_path / "src"
    (root / ".git").mkdir(parents=True)
    (root / ".git" / "HEAD").write_bytes(b"ref: refs/heads/main\n")
    (root / "config.txt").write_text("key=value\n")
    (root / "pkg").mkdir()
    (root / "pkg" / "__init__.py").write_text("")
    return root


class TestHiddenFiles:
    def test_hidden_excluded_by_default(self, src: Path, tmp_path: Path) -> None:
        dst = tmp_path / "out"
        errors = TreeCopier().copy_tree(src, dst)
        assert errors == []
        assert (dst / "config.txt").read_text() == "key=value\n"
        assert (dst / "pkg" / "__init__.py").exists()
        assert not (dst / ".git").exists()

    def test_hidden_included(self, src: Path, tmp_path: Path) -> None:
        dst = tmp_path / "out"
        errors = TreeCopier(include_hidden=True).copy_tree(src, dst)
        assert errors == []
        assert (dst / ".git" / "HEAD").read_bytes() == b"ref: refs/heads/main\n"

    def test_custom_marker(self, tmp_path: Path) -> None:
        root = tmp_path / "src"
        root.mkdir()
        (root / "_private.txt").write_text("x")
        (root / ".keep").write_text("y")
        dst = tmp_path / "out"
        TreeCopier(hidden_marker="_").copy_tree(root, dst)
        assert not (dst / "_private.txt").exists()
        assert (dst / ".keep").exists()

    def test_hidden_root_still_copied(self, tmp_path: Path) -> None:
        root = tmp_path / ".hidden_pkg"
        root.mkdir()
        (root / "a.py").write_text("")
        dst = tmp_path / "out"
        TreeCopier().copy_tree(root, dst)
        assert (dst / "a.py").exists()


class TestPermissions:
    def test_permission_bits_preserved(self, tmp_path: Path) -> None:
        root = tmp_path / "src"
        (root / "private").mkdir(parents=True)
        (root / "private" / "secret.txt").write_text("s")
        (root / "run.sh").write_text("#!/bin/sh\n")
        (root / "readonly.txt").write_text("ro")
        os.chmod(root / "run.sh", 0o755)
        os.chmod(root / "readonly.txt", 0o444)
        os.chmod(root / "private", 0o700)
        # 只读目录：内容必须先于权限写入
        (root / "locked").mkdir()
        (root / "locked" / "inner.txt").write_text("inner")
        os.chmod(root / "locked", 0o555)

        dst = tmp_path / "out"
        try:
            errors = TreeCopier().copy_tree(root, dst)
            assert errors == []
            for rel in ("run.sh", "readonly.txt", "private", "private/secret.txt", "locked", "locked/inner.txt"):
                assert _mode(dst / rel) == _mode(root / rel), rel
            assert (dst / "locked" / "inner.txt").read_text() == "inner"
        finally:
            os.chmod(root / "locked", 0o755)
            if (dst / "locked").exists():
                os.chmod(dst / "locked", 0o755)

    def test_recopy_over_readonly_destination(self, tmp_path: Path) -> None:
        root = tmp_path / "src"
        (root / "sub").mkdir(parents=True)
        (root / "sub" / "ro.txt").write_text("v1")
        os.chmod(root / "sub" / "ro.txt", 0o444)
        os.chmod(root / "sub", 0o555)
        dst = tmp_path / "out"
        copier = TreeCopier()
        try:
            assert copier.copy_tree(root, dst) == []
            # 子包会把已复制过的子树再复制一次
            assert copier.copy_tree(root / "sub", dst / "sub") == []
            assert _mode(dst / "sub") == 0o555
            assert _mode(dst / "sub" / "ro.txt") == 0o444
        finally:
            os.chmod(root / "sub", 0o755)
            os.chmod(dst / "sub", 0o755)

    def test_make_dirs_mode(self, tmp_path: Path, umask_022: None) -> None:
        target = tmp_path / "a" / "b" / "c"
        make_dirs(target, 0o750)
        for p in (tmp_path / "a", tmp_path / "a" / "b", target):
            assert _mode(p) == 0o750


class TestWorkspaceGuard:
    def test_workspace_inside_source_skipped(self, tmp_path: Path) -> None:
        root = tmp_path / "proj"
        root.mkdir()
        (root / "mod.py").write_text("")
        ws = root / "build"
        dst = ws / "src" / "proj"
        errors = TreeCopier(workspace=ws).copy_tree(root, dst)
        assert errors == []
        assert (dst / "mod.py").exists()
        assert not (dst / "build").exists()

    def test_source_is_workspace(self, tmp_path: Path) -> None:
        ws = tmp_path / "ws"
        ws.mkdir()
        errors = TreeCopier(workspace=ws).copy_tree(ws, tmp_path / "out")
        assert errors == []
        assert not (tmp_path / "out").exists()


class TestErrorAggregation:
    def test_errors_collected_and_walk_continues(self, tmp_path: Path) -> None:
        root = tmp_path / "src"
        (root / "blocked").mkdir(parents=True)
        (root / "blocked" / "x.txt").write_text("x")
        (root / "ok.txt").write_text("ok")
        dst = tmp_path / "out"
        dst.mkdir()
        (dst / "blocked").write_text("i am a file")

        errors = TreeCopier().copy_tree(root, dst)

        assert len(errors) == 2
        assert all(isinstance(e, OperationError) for e in errors)
        assert "无法创建目录" in errors[0].formatted
        assert "无法创建文件" in errors[1].formatted
        assert (dst / "ok.txt").read_text() == "ok"

    def test_missing_source(self, tmp_path: Path) -> None:
        errors = TreeCopier().copy_tree(tmp_path / "gone", tmp_path / "out")
        assert len(errors) == 1
        assert "无法遍历" in errors[0].formatted


class TestWalk:
    def test_preorder_sorted_and_lazy(self, src: Path) -> None:
        errors: list = []
        walker = TreeCopier(include_hidden=True).walk(src, errors)
        first = next(walker)
        assert isinstance(first, WalkEntry) and first.rel == Path(".")
        rels = [e.rel.as_posix() for e in walker]
        assert rels == [".git", ".git/HEAD", "config.txt", "pkg", "pkg/__init__.py"]
        assert list(walker) == []
        assert errors == []

    def test_symlink_recreated(self, tmp_path: Path) -> None:
        root = tmp_path / "src"
        root.mkdir()
        (root / "real.txt").write_text("data")
        (root / "link.txt").symlink_to("real.txt")
        dst = tmp_path / "out"
        assert TreeCopier().copy_tree(root, dst) == []
        assert (dst / "link.txt").is_symlink()
        assert os.readlink(dst / "link.txt") == "real.txt"


class TestFileRoot:
    def test_single_file_copied_with_parents(self, tmp_path: Path) -> None:
        module = tmp_path / "helpers.py"
        module.write_text("X = 1\n")
        os.chmod(module, 0o640)
        dst = tmp_path / "ws" / "src" / "ns" / "helpers.py"

        assert TreeCopier().copy_tree(module, dst) == []
        assert dst.read_text() == "X = 1\n"
        assert _mode(dst) == 0o640
