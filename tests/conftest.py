"""Pytest configuration for phased testing.

Tests are organized by phase:
- f1: core utilities (retry, JSON extraction, skill distribution, OCR parsing, errors)
- f2: clients, config, repository and generation services
- f3: Web API and CLI

Only tests for the current phase and completed phases should run.
Future phase tests are automatically skipped.
"""

import pytest

from gradeflow.db import database

# Current implementation phase
CURRENT_PHASE = 3


def pytest_collection_modifyitems(config, items):
    """Skip tests from phases that haven't been implemented yet."""
    for item in items:
        # Extract phase from path (tests/f2/... -> 2)
        parts = item.fspath.strpath.split("/")
        for part in parts:
            if part.startswith("f") and part[1:].isdigit():
                test_phase = int(part[1:])
                if test_phase > CURRENT_PHASE:
                    item.add_marker(
                        pytest.mark.skip(
                            reason=f"Phase F{test_phase} not yet implemented (current: F{CURRENT_PHASE})"
                        )
                    )
                break


@pytest.fixture(autouse=True)
def isolated_db_path(tmp_path, monkeypatch):
    """Point the database module at a temp file so ./db is never touched."""
    monkeypatch.setattr(database, "_db_path", tmp_path / "isolated.db")
