"""Shared test fixtures for rulesmith.

Provides reusable fixtures for loading spec fixtures, extracting their
endpoints, isolating the config environment, managing output state, and
running CLI commands. These fixtures are automatically discovered by pytest
and available to all test modules without explicit imports.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from rulesmith.models import EndpointInfo
from rulesmith.output import OutputFormat, OutputManager, reset_output, set_output


FIXTURES_DIR = Path(__file__).parent / "fixtures"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file").  Resetting forces a fresh manager
    to be created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Raw spec fixtures (plain dicts loaded from JSON files)
# ---------------------------------------------------------------------------


@pytest.fixture
def oas3_raw() -> dict[str, Any]:
    """Load the raw OpenAPI 3.0 petstore dict."""
    with open(FIXTURES_DIR / "petstore_oas3.json") as f:
        return json.load(f)


@pytest.fixture
def swagger2_raw() -> dict[str, Any]:
    """Load the raw Swagger 2.0 petstore dict."""
    with open(FIXTURES_DIR / "petstore_swagger2.json") as f:
        return json.load(f)


# ---------------------------------------------------------------------------
# Extracted endpoint fixtures
# ---------------------------------------------------------------------------


def _by_operation_id(endpoints: list[EndpointInfo]) -> dict[str, EndpointInfo]:
    return {ep.operation_id: ep for ep in endpoints}


@pytest.fixture
def oas3_endpoints(oas3_raw: dict[str, Any]) -> list[EndpointInfo]:
    """Endpoints extracted from the OpenAPI 3.0 petstore with default options."""
    from rulesmith.parser import extract_endpoints, preprocess

    return extract_endpoints(preprocess(oas3_raw), oas3_raw)


@pytest.fixture
def oas3_by_id(oas3_endpoints: list[EndpointInfo]) -> dict[str, EndpointInfo]:
    return _by_operation_id(oas3_endpoints)


@pytest.fixture
def swagger2_endpoints(swagger2_raw: dict[str, Any]) -> list[EndpointInfo]:
    """Endpoints extracted from the Swagger 2.0 petstore with default options."""
    from rulesmith.parser import extract_endpoints, preprocess

    return extract_endpoints(preprocess(swagger2_raw), swagger2_raw)


@pytest.fixture
def swagger2_by_id(swagger2_endpoints: list[EndpointInfo]) -> dict[str, EndpointInfo]:
    return _by_operation_id(swagger2_endpoints)


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_DATA_HOME to a subdirectory of tmp_path so that crash logs
    never touch real user data, clears RULESMITH_CONFIG, and changes the
    working directory to tmp_path so no project config file is picked up.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.delenv("RULESMITH_CONFIG", raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner.

    Returns a CliRunner instance that captures stdout/stderr and
    provides a consistent interface for invoking Typer apps in tests.
    """
    from typer.testing import CliRunner

    return CliRunner()
