"""Shared pytest fixtures for sphinxconf tests."""

import tempfile
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from sphinxconf.configuration import Configuration
from sphinxconf.models import AttributeDescriptor, FieldDescriptor, ModelDescriptor
from sphinxconf.version import VersionProbe


SPHINX_VERSION = "2.0.4-release"


# ============================================================================
# Auto-mark tests based on directory
# ============================================================================

def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        test_path = str(item.fspath)

        if '/tests/unit/' in test_path or '\\tests\\unit\\' in test_path:
            item.add_marker(pytest.mark.unit)
        elif '/tests/integration/' in test_path or '\\tests\\integration\\' in test_path:
            item.add_marker(pytest.mark.integration)


# ============================================================================
# Model descriptor fixtures
# ============================================================================

@pytest.fixture
def person():
    """Delta-indexed model with one prefix and one infix field."""
    return ModelDescriptor(
        name="Person",
        table="people",
        fields=[
            FieldDescriptor("first_name"),
            FieldDescriptor("last_name", sortable=True),
            FieldDescriptor("city", prefixes=True),
            FieldDescriptor("state", infixes=True),
        ],
        attributes=[
            AttributeDescriptor("birthday", "timestamp"),
            AttributeDescriptor("team_id", "uint"),
        ],
        delta=True,
    )


@pytest.fixture
def alpha():
    """Plain model without prefix/infix fields or delta indexing."""
    return ModelDescriptor(
        name="Alpha",
        fields=[FieldDescriptor("name")],
        attributes=[AttributeDescriptor("value", "uint"), AttributeDescriptor("cost", "float")],
    )


@pytest.fixture
def beta():
    return ModelDescriptor(name="Beta", fields=[FieldDescriptor("name")], delta=True)


@pytest.fixture
def descriptors(person, alpha, beta):
    return [person, alpha, beta]


# ============================================================================
# Configuration fixtures
# ============================================================================

@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def mock_version_probe():
    """Version probe that never runs a binary."""
    probe = MagicMock(spec=VersionProbe)
    probe.get.return_value = SPHINX_VERSION
    return probe


@pytest.fixture
def configuration(temp_dir, descriptors, mock_version_probe, monkeypatch):
    """Configuration rooted in a temp dir with the sample models registered."""
    monkeypatch.delenv("SPHINX_ENV", raising=False)
    return Configuration(
        app_root=str(temp_dir),
        models=descriptors,
        version_probe=mock_version_probe,
    )


@pytest.fixture
def rendered(configuration):
    """Build the config file and return its text."""
    def _render():
        path = configuration.build()
        return path.read_text()
    return _render
