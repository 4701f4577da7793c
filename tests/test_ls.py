import os

import pytest

from miclaw.tools.ls import format_entry, list_tree_entries, ls_tool
from miclaw.tools.tool import ToolCall


def run_ls(params):
    return ls_tool().run(ToolCall(id="1", name="ls", parameters=params))


def write(path, content="x"):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w") as fh:
        fh.write(content)


def test_flat_listing(tmp_path):
    write(str(tmp_path / "a.txt"), "a")
    write(str(tmp_path / "b.log"), "b")
    (tmp_path / "sub").mkdir()
    got = run_ls({"path": str(tmp_path), "depth": 1})
    assert not got.is_error
    for want in ["a.txt (file, 1)", "b.log (file, 1)", "sub (dir,"]:
        assert want in got.content
    lines = got.content.split("\n")
    assert lines == sorted(lines)


def test_nested_depth(tmp_path):
    write(str(tmp_path / "sub" / "inner.txt"))
    got = run_ls({"path": str(tmp_path), "depth": 2})
    assert not got.is_error
    lines = got.content.split("\n")
    assert lines[0].startswith("└── sub (dir, ")
    assert lines[1] == "    └── inner.txt (file, 1)"


def test_tree_branches(tmp_path):
    write(str(tmp_path / "a.txt"))
    write(str(tmp_path / "b.txt"))
    got = run_ls({"path": str(tmp_path), "depth": 2})
    assert got.content == "├── a.txt (file, 1)\n└── b.txt (file, 1)"


def test_hidden_files(tmp_path):
    write(str(tmp_path / ".hidden"))
    write(str(tmp_path / "visible"))
    hidden = run_ls({"path": str(tmp_path), "show_hidden": False})
    assert ".hidden" not in hidden.content
    assert "visible (file, 1)" in hidden.content
    shown = run_ls({"path": str(tmp_path), "show_hidden": True})
    assert ".hidden (file, 1)" in shown.content


def test_tree_skips_hidden_by_default(tmp_path):
    write(str(tmp_path / ".secretdir" / "f.txt"))
    write(str(tmp_path / "plain.txt"))
    got = run_ls({"path": str(tmp_path), "depth": 3})
    assert got.content == "└── plain.txt (file, 1)"


def test_nonexistent_dir_is_error(tmp_path):
    got = run_ls({"path": str(tmp_path / "does-not-exist")})
    assert got.is_error
    assert "no such file" in got.content


def test_depth_out_of_range(tmp_path):
    got = run_ls({"path": str(tmp_path), "depth": 6})
    assert got.is_error
    assert got.content == "ls depth must be between 1 and 5"
    negative = run_ls({"path": str(tmp_path), "depth": -1})
    assert negative.is_error


def test_depth_must_be_integer(tmp_path):
    got = run_ls({"path": str(tmp_path), "depth": "two"})
    assert got.is_error
    assert "depth" in got.content


def test_ls_at_different_depths(tmp_path):
    write(str(tmp_path / "a" / "b" / "c" / "leaf.txt"))
    shallow = run_ls({"path": str(tmp_path), "depth": 1})
    assert not shallow.is_error
    assert "a (dir," in shallow.content
    assert "b (dir," not in shallow.content
    assert "c (dir," not in shallow.content
    deep = run_ls({"path": str(tmp_path), "depth": 3})
    assert not deep.is_error
    for want in ["a (dir,", "b (dir,", "c (dir,"]:
        assert want in deep.content
    assert "leaf.txt" not in deep.content


def test_format_entry_symlink(tmp_path):
    write(str(tmp_path / "target.txt"), "hello")
    link = tmp_path / "link"
    os.symlink(str(tmp_path / "target.txt"), str(link))
    assert format_entry("link", str(link)).startswith("link (symlink, ")
    assert format_entry("target.txt", str(tmp_path / "target.txt")) == "target.txt (file, 5)"


def test_list_tree_entries_missing_dir_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        list_tree_entries(str(tmp_path / "missing"), 2)