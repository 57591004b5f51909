"""Test-wide configuration."""

import pytest


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Live Data API tests only run when selected with ``-m integration``."""
    if "integration" in (config.getoption("-m", default="") or ""):
        return

    marker = pytest.mark.skip(reason="hits the live Data API; run with -m integration")
    for item in items:
        if item.get_closest_marker("integration") is not None:
            item.add_marker(marker)
