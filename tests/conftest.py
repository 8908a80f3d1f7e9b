"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import pytest

from tixfile.config import default_config, save_config
from tixfile.index import TicketIndex
from tixfile.models import Ticket, ticket_to_dict
from tixfile.storage import TicketStore, write_document


@pytest.fixture
def tickets_dir(tmp_path: Path) -> Path:
    """Create a temporary tickets directory for testing."""
    path = tmp_path / ".tickets"
    path.mkdir()
    return path


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    """Path of a (not yet created) cache directory."""
    return tmp_path / ".ticket_cache"


@pytest.fixture
def store(tickets_dir: Path) -> TicketStore:
    """Create a store writing into the temporary tickets directory."""
    return TicketStore(tickets_dir)


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Create a project directory with a default .tixfile.toml."""
    root = tmp_path / "project"
    root.mkdir()
    save_config(root, default_config())
    return root


def build_index(tickets_dir: Path, cache_dir: Path, **kwargs: Any) -> TicketIndex:
    """Construct a fresh index over the given directories."""
    return TicketIndex(tickets_dir, cache_dir, **kwargs)


def make_ticket(name: str, **kwargs: Any) -> Ticket:
    """Build an unsaved ticket with sensible defaults."""
    kwargs.setdefault("status", "opened")
    kwargs.setdefault("severity", "normal")
    kwargs.setdefault("created_by", "tester")
    return Ticket(name=name, **kwargs)


def make_record_dir(tickets_dir: Path, dirname: str, **kwargs: Any) -> Path:
    """Write a ticket directory by hand, with a chosen directory name.

    The record document carries no id, so the short id comes from the
    directory name.
    """
    directory = tickets_dir / dirname
    directory.mkdir()
    data = ticket_to_dict(make_ticket(kwargs.pop("name", dirname), **kwargs))
    data.pop("id")
    write_document(directory / "record.json", data)
    return directory


def touch_later(directory: Path, seconds: int = 5) -> None:
    """Push a directory's mtime forward so the index sees it as modified."""
    stat = directory.stat()
    later = stat.st_mtime_ns + seconds * 1_000_000_000
    os.utime(directory, ns=(later, later))
    record = directory / "record.json"
    if record.exists():
        os.utime(record, ns=(later, later))
