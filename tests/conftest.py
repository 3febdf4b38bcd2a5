"""Shared pytest fixtures for the stackforge test suite.

Provides reusable fixtures for:
- Temporary project directories
- Sample resource descriptors (the ``post`` / ``user`` / ``comment`` trio)
- Expanders, empty project trees and aggregator indexes
- In-memory and on-disk workbenches
- Mock subprocess helpers
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from stackforge.config import Config, TypeCheckConfig
from stackforge.planner.models import DomainCatalog
from stackforge.scaffolder.expander import TemplateExpander
from stackforge.scaffolder.models import (
    AggregatorIndex,
    Cardinality,
    FieldSpec,
    ProjectTree,
    Relation,
    ResourceDescriptor,
)
from stackforge.scaffolder.workbench import Workbench


# ---------------------------------------------------------------------------
# Paths & Directories
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_project_dir(tmp_path: Path) -> Path:
    """Temporary directory for generated projects (auto-cleanup)."""
    project_dir = tmp_path / "blog-api"
    project_dir.mkdir()
    yield project_dir


# ---------------------------------------------------------------------------
# Resource descriptors
# ---------------------------------------------------------------------------

@pytest.fixture
def post_descriptor() -> ResourceDescriptor:
    """A post with two string fields that belongs to a user."""
    return ResourceDescriptor(
        name="post",
        fields=[
            FieldSpec(name="title", semantic_type="String"),
            FieldSpec(name="content", semantic_type="String"),
        ],
        relations=[Relation(target="user", cardinality=Cardinality.MANY_TO_ONE)],
    )


@pytest.fixture
def user_descriptor() -> ResourceDescriptor:
    """A user with a unique email and many posts."""
    return ResourceDescriptor(
        name="user",
        fields=[
            FieldSpec(name="email", semantic_type="email", unique=True),
            FieldSpec(name="displayName", semantic_type="string", nullable=True),
        ],
        relations=[Relation(target="posts", cardinality=Cardinality.ONE_TO_MANY)],
    )


@pytest.fixture
def comment_descriptor() -> ResourceDescriptor:
    return ResourceDescriptor(
        name="comments",
        fields=[FieldSpec(name="body", semantic_type="text")],
    )


# ---------------------------------------------------------------------------
# Scaffolding state
# ---------------------------------------------------------------------------

@pytest.fixture
def config(tmp_project_dir: Path) -> Config:
    """Config rooted at the temp project with the type check disabled."""
    return Config(project_root=tmp_project_dir, type_check=TypeCheckConfig(enabled=False))


@pytest.fixture
def expander() -> TemplateExpander:
    return TemplateExpander(Config())


@pytest.fixture
def empty_tree() -> ProjectTree:
    return ProjectTree()


@pytest.fixture
def empty_index() -> AggregatorIndex:
    return AggregatorIndex()


@pytest.fixture
def core_catalog() -> DomainCatalog:
    """The schema / api / types catalog without middleware."""
    catalog = DomainCatalog.default()
    return DomainCatalog(
        domains=[domain for domain in catalog.domains if domain.name != "middleware"],
        fallback=catalog.fallback,
    )


@pytest.fixture
def bench() -> Workbench:
    """In-memory workbench: nothing touches the disk, no type check runs."""
    return Workbench(Config(), persist=False)


@pytest.fixture
def disk_bench(config: Config) -> Workbench:
    """Workbench that writes into the temp project directory."""
    return Workbench(config)


# ---------------------------------------------------------------------------
# Subprocess mocking
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_subprocess():
    """Mock asyncio subprocess for testing command execution.

    Returns a factory that creates mock subprocess instances with configurable
    stdout, stderr, and return codes.

    Usage:
        def test_command(mock_subprocess):
            proc = mock_subprocess(stdout="output", returncode=0)
            with patch("asyncio.create_subprocess_exec", return_value=proc):
                ...
    """
    def factory(
        stdout: str = "",
        stderr: str = "",
        returncode: int = 0,
    ) -> AsyncMock:
        mock_proc = AsyncMock()
        mock_proc.communicate = AsyncMock(
            return_value=(stdout.encode("utf-8"), stderr.encode("utf-8"))
        )
        mock_proc.returncode = returncode
        mock_proc.pid = 99999
        mock_proc.kill = MagicMock()
        mock_proc.wait = AsyncMock(return_value=returncode)
        return mock_proc

    return factory
