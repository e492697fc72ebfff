"""Tests for project path <-> URI conversion."""

from __future__ import annotations

from gdlsp.services.paths import ProjectPaths


def test_root_uri():
    assert ProjectPaths("/proj").root_uri() == "file:///proj"


def test_local_path_to_uri():
    assert ProjectPaths("/proj").path_to_uri("/proj/scenes/main.gd") == "file:///proj/scenes/main.gd"


def test_res_path_to_uri():
    assert ProjectPaths("/proj").path_to_uri("res://scenes/main.gd") == "file:///proj/scenes/main.gd"


def test_uri_inside_project_becomes_res_path():
    assert ProjectPaths("/proj").uri_to_resource("file:///proj/scenes/main.gd") == "res://scenes/main.gd"


def test_uri_outside_project_keeps_local_path():
    assert ProjectPaths("/proj").uri_to_resource("file:///other/a.gd") == "/other/a.gd"


def test_sibling_with_common_prefix_is_outside():
    assert ProjectPaths("/proj").uri_to_resource("file:///project2/a.gd") == "/project2/a.gd"


def test_percent_encoded_uri():
    assert ProjectPaths("/proj").uri_to_resource("file:///proj/my%20scene.gd") == "res://my scene.gd"


def test_non_file_uri_unchanged():
    assert ProjectPaths("/proj").uri_to_resource("untitled:Untitled-1") == "untitled:Untitled-1"


def test_relative_paths_resolve_from_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    paths = ProjectPaths(str(tmp_path))
    assert paths.localize("player.gd") == str(tmp_path / "player.gd")
    assert paths.uri_to_resource(paths.path_to_uri("player.gd")) == "res://player.gd"
