"""
Shared pytest fixtures for scanspine tests.

This module provides:
- Registry isolation (the process-wide license registry is reset per test)
- A bundled-registry fixture
- Sink, backend and settings fixtures built on tests/_support/fakes.py
- A ``make_tree`` helper for building source trees under tmp_path
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

import pytest
import structlog

from scanspine.core.settings import ScanSettings
from scanspine.licenses.registry import LicenseRegistry, clear_registry
from tests._support.fakes import CollectingSink, FakeBackend, write_tree


# =============================================================================
# Registry Cleanup Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_license_registry():
    """Reset the process-wide license registry around every test."""
    clear_registry()
    yield
    clear_registry()


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo configure_logging calls made by a test."""
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)


@pytest.fixture
def registry() -> LicenseRegistry:
    return LicenseRegistry.bundled()


# =============================================================================
# Doubles
# =============================================================================


@pytest.fixture
def sink() -> CollectingSink:
    return CollectingSink()


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def settings(tmp_path: Path) -> ScanSettings:
    return ScanSettings(
        work_dir=tmp_path / "work",
        max_concurrency=4,
        max_pending_items=8,
        max_iterators=2,
    )


@pytest.fixture
def make_tree(tmp_path: Path) -> Callable[..., Path]:
    """Build a file tree under tmp_path: ``make_tree({"a/LICENSE": "MIT"})``."""

    def _make(files: dict[str, str | bytes], name: str = "tree") -> Path:
        return write_tree(tmp_path / name, files)

    return _make
