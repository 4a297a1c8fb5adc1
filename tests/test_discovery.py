"""
Tests for ocr_search/ingestion/discovery.py
"""

from pathlib import Path

import pytest

from ocr_search.ingestion.discovery import (
    discover_images,
    find_image_files,
    find_image_folders,
)


def touch(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"")
    return path


@pytest.fixture
def repo(tmp_path):
    touch(tmp_path / "docs" / "guide" / "_images" / "b.png")
    touch(tmp_path / "docs" / "guide" / "_images" / "a.JPG")
    touch(tmp_path / "docs" / "guide" / "_images" / "notes.txt")
    touch(tmp_path / "docs" / "guide" / "_images" / "nested" / "deep.png")
    touch(tmp_path / "docs" / "_images" / "top.jpeg")
    touch(tmp_path / "releasenotes" / "v1" / "_images" / "release.png")
    touch(tmp_path / "other" / "_images" / "ignored.png")
    touch(tmp_path / "docs" / "guide" / "page.png")
    return tmp_path


class TestFindImageFolders:
    def test_finds_nested_folders(self, repo):
        folders = find_image_folders(repo / "docs")
        assert folders == sorted([
            str((repo / "docs" / "_images").resolve()),
            str((repo / "docs" / "guide" / "_images").resolve()),
        ])

    def test_missing_base_dir(self, tmp_path):
        assert find_image_folders(tmp_path / "missing") == []

    def test_no_folders(self, tmp_path):
        (tmp_path / "empty").mkdir()
        assert find_image_folders(tmp_path / "empty") == []


class TestFindImageFiles:
    def test_only_direct_image_files(self, repo):
        folder = repo / "docs" / "guide" / "_images"
        files = find_image_files([folder])
        assert [Path(f).name for f in files] == ["a.JPG", "b.png"]
        assert all(Path(f).is_absolute() for f in files)

    def test_unreadable_folder_skipped(self, repo):
        files = find_image_files([repo / "nope", repo / "docs" / "_images"])
        assert [Path(f).name for f in files] == ["top.jpeg"]


class TestDiscoverImages:
    def test_scans_only_requested_dirs(self, repo):
        names = [Path(p).name for p in discover_images(repo, ["docs", "releasenotes"])]
        assert sorted(names) == ["a.JPG", "b.png", "release.png", "top.jpeg"]
        assert "ignored.png" not in names

    def test_missing_scan_dir(self, repo):
        names = [Path(p).name for p in discover_images(repo, ["releasenotes", "missing"])]
        assert names == ["release.png"]

    def test_stable_order(self, repo):
        assert discover_images(repo, ["docs"]) == discover_images(repo, ["docs"])
