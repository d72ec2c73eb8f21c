"""Pytest configuration applied to the entire test suite."""

from __future__ import annotations

# Step definition modules register before feature files are parsed so
# scenarios resolve no matter which subset of tests is collected.
pytest_plugins = [
    "tests.e2e.steps.common",
    "tests.e2e.steps.installs",
    "tests.e2e.steps.self_update",
]
