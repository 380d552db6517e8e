from __future__ import annotations

import os

import pytest

import clipster


@pytest.fixture
def project(tmp_path, build_tree):
    build_tree(tmp_path, {
        "src": {"a.ts": "a", "b.ts": "b"},
        "readme.md": "# readme",
    })
    (tmp_path / ".gitignore").write_text("*.md\n", encoding="utf-8")
    return tmp_path


def test_scenario_markdown_ignored_and_dirs_first(project):
    output = clipster.traverse_directory(project, project)

    assert "readme.md" not in output
    assert output.index("src") < output.index(".gitignore")
    assert output.index("a.ts") < output.index("b.ts")
    assert output == (
        "┣ src\n"
        "┃ ┣ a.ts\n"
        "┃ ┗ b.ts\n"
        "┗ .gitignore\n"
    )


def test_last_directory_without_files_uses_blank_indent(tmp_path, build_tree):
    build_tree(tmp_path, {"a": {"x.txt": ""}, "b": {"y.txt": ""}})

    output = clipster.traverse_directory(tmp_path, tmp_path)

    assert output == (
        "┣ a\n"
        "┃ ┗ x.txt\n"
        "┗ b\n"
        "  ┗ y.txt\n"
    )


def test_empty_directory_still_listed(tmp_path):
    (tmp_path / "empty").mkdir()

    assert clipster.traverse_directory(tmp_path, tmp_path) == "┗ empty\n"


def test_order_independent_of_listing_order(tmp_path, build_tree, monkeypatch):
    build_tree(tmp_path, {"b.txt": "", "a.txt": "", "z": {}, "c": {}})
    expected = clipster.traverse_directory(tmp_path, tmp_path)
    real_scandir = os.scandir

    class ReversedScandir:
        def __init__(self, path):
            with real_scandir(path) as it:
                self.entries = sorted(it, key=lambda e: e.name, reverse=True)

        def __enter__(self):
            return iter(self.entries)

        def __exit__(self, *exc):
            return False

    monkeypatch.setattr(clipster.os, "scandir", ReversedScandir)

    assert clipster.traverse_directory(tmp_path, tmp_path) == expected
    assert expected == "┣ c\n┣ z\n┣ a.txt\n┗ b.txt\n"


def test_traversal_is_idempotent(project):
    first = clipster.traverse_directory(project, project)
    second = clipster.traverse_directory(project, project)

    assert first == second


def test_extra_patterns_exclude_directories(project):
    output = clipster.traverse_directory(project, project, ["src/"])

    assert "src" not in output
    assert "a.ts" not in output


def test_matcher_built_once_per_traversal(tmp_path, build_tree, monkeypatch):
    build_tree(tmp_path, {"a": {"b": {"c": {"d.txt": ""}}}, "e": {"f.txt": ""}})
    calls = []
    real_read = clipster.read_ignore_file

    def counting_read(root, platform=None):
        calls.append(root)
        return real_read(root, platform)

    monkeypatch.setattr(clipster, "read_ignore_file", counting_read)

    clipster.traverse_directory(tmp_path, tmp_path)

    assert calls == [tmp_path]


def test_unreadable_directory_yields_empty_subtree(tmp_path, build_tree, monkeypatch, platform_factory):
    build_tree(tmp_path, {"locked": {"secret.txt": ""}, "open": {"ok.txt": ""}})
    locked = tmp_path / "locked"
    real_scandir = os.scandir

    def guarded_scandir(path):
        if os.fspath(path) == os.fspath(locked):
            raise PermissionError(13, "Permission denied", os.fspath(path))
        return real_scandir(path)

    monkeypatch.setattr(clipster.os, "scandir", guarded_scandir)
    platform = platform_factory(workspace_root=tmp_path)

    output = clipster.traverse_directory(tmp_path, tmp_path, platform=platform)

    assert output == "┣ locked\n┗ open\n  ┗ ok.txt\n"
    assert len(platform.of_level("error")) == 1


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
def test_symlinked_directories_are_not_followed(tmp_path, build_tree):
    build_tree(tmp_path, {"real": {"file.txt": ""}})
    try:
        (tmp_path / "loop").symlink_to(tmp_path, target_is_directory=True)
    except OSError:
        pytest.skip("cannot create symlinks here")

    output = clipster.traverse_directory(tmp_path, tmp_path)

    assert output == "┣ loop\n┗ real\n  ┗ file.txt\n"


def test_directory_alias_is_listed_but_not_walked(tmp_path, build_tree):
    build_tree(tmp_path, {"real": {"x.txt": "x"}})
    try:
        (tmp_path / "alias").symlink_to(tmp_path / "real", target_is_directory=True)
    except OSError:
        pytest.skip("cannot create symlinks here")

    tree = clipster.traverse_directory(tmp_path, tmp_path)
    content = clipster.aggregate(tmp_path)

    assert tree == "┣ alias\n┗ real\n  ┗ x.txt\n"
    assert f"File: {tmp_path / 'alias' / 'x.txt'}" not in content
    assert f"File: {tmp_path / 'real' / 'x.txt'}" in content


def test_get_folder_structure_header(project, platform_factory):
    platform = platform_factory(workspace_root=project)

    output = clipster.get_folder_structure(project / "src", platform)

    assert output == (
        f"{project.name}\n"
        f"Path: {project / 'src'}\n"
        "src/\n"
        "┣ a.ts\n"
        "┗ b.ts\n"
    )


def test_subfolder_uses_workspace_ignore_rules(project, platform_factory):
    (project / "src" / "notes.md").write_text("x", encoding="utf-8")
    platform = platform_factory(workspace_root=project)

    output = clipster.get_folder_structure(project / "src", platform)

    assert "notes.md" not in output


def test_copy_root_folder_path(tmp_path, platform_factory):
    assert clipster.copy_root_folder_path(platform_factory(workspace_root=tmp_path)) == f"Root Path: {tmp_path}"

    platform = platform_factory()
    assert clipster.copy_root_folder_path(platform) is None
    assert platform.of_level("error") == ["No workspace folder open."]


def test_structure_without_workspace_uses_folder_name(project, platform_factory):
    output = clipster.get_folder_structure(project / "src", platform_factory())

    assert output.startswith(f"src\nPath: {project / 'src'}\nsrc/\n")
