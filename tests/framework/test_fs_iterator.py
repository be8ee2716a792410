"""
Tests for FsIterator.

Covers:
- Recursive walk of regular files, sorted, with relative posix paths
- Single-file roots, excluded directories, symlinks
- Missing roots and re-enumeration
"""

import os

import pytest

from scanspine.core.errors import OrchestrationError, SourceNotFoundError
from scanspine.framework.iterators import FsIterator


class TestFsIterator:
    @pytest.mark.asyncio
    async def test_walks_every_regular_file(self, make_tree, sink):
        root = make_tree({"LICENSE": "MIT", "src/a.py": "x", "src/pkg/b.py": "y"})
        await FsIterator(root).enumerate(sink)

        assert sink.paths == ["LICENSE", "src/a.py", "src/pkg/b.py"]
        assert sink.iterators == []

    @pytest.mark.asyncio
    async def test_item_metadata(self, make_tree, sink):
        root = make_tree({"LICENSE": "MIT"})
        iterator = FsIterator(root)
        await iterator.enumerate(sink)

        item = sink.items[0]
        assert iterator.uid == "file://" + root.as_posix()
        assert item.info.source == iterator.uid
        assert item.info.uid == "file://" + (root / "LICENSE").as_posix()
        assert item.info.size == 3
        assert item.info.name == "LICENSE"
        assert item.data == b"MIT"

    @pytest.mark.asyncio
    async def test_single_file_root(self, make_tree, sink):
        root = make_tree({"DESCRIPTION": "License: MIT"})
        iterator = FsIterator(root / "DESCRIPTION")
        await iterator.enumerate(sink)

        assert sink.paths == ["DESCRIPTION"]
        assert sink.items[0].info.uid == iterator.uid

    @pytest.mark.asyncio
    async def test_excluded_dirs(self, make_tree, sink):
        root = make_tree({".git/config": "x", "LICENSE": "MIT"})
        await FsIterator(root, exclude_dirs={".git"}).enumerate(sink)
        assert sink.paths == ["LICENSE"]

    @pytest.mark.asyncio
    async def test_symlinks_not_followed(self, make_tree, tmp_path, sink):
        outside = make_tree({"SECRET": "x"}, name="outside")
        root = make_tree({"LICENSE": "MIT"})
        os.symlink(outside / "SECRET", root / "link")
        os.symlink(outside, root / "dirlink")

        await FsIterator(root).enumerate(sink)
        assert sink.paths == ["LICENSE"]

    @pytest.mark.asyncio
    async def test_symlinks_followed_on_request(self, make_tree, sink):
        outside = make_tree({"SECRET": "x"}, name="outside")
        root = make_tree({"LICENSE": "MIT"})
        os.symlink(outside / "SECRET", root / "link")

        await FsIterator(root, follow_symlinks=True).enumerate(sink)
        assert sink.paths == ["LICENSE", "link"]

    @pytest.mark.asyncio
    async def test_empty_directory(self, tmp_path, sink):
        (tmp_path / "empty").mkdir()
        await FsIterator(tmp_path / "empty").enumerate(sink)
        assert sink.items == []

    @pytest.mark.asyncio
    async def test_missing_root(self, tmp_path, sink):
        iterator = FsIterator(tmp_path / "missing")
        with pytest.raises(SourceNotFoundError) as exc_info:
            await iterator.enumerate(sink)
        assert exc_info.value.context.source == iterator.uid

    @pytest.mark.asyncio
    async def test_enumerate_once(self, make_tree, sink):
        iterator = FsIterator(make_tree({"a": "1"}))
        await iterator.enumerate(sink)
        with pytest.raises(OrchestrationError):
            await iterator.enumerate(sink)

    def test_parent(self, tmp_path):
        assert FsIterator(tmp_path).parent is None
        assert FsIterator(tmp_path, parent="git+https://x/y").parent == "git+https://x/y"
