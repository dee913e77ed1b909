from __future__ import annotations

from pathlib import Path

import pytest

from tests._fixtures.component_builder import ComponentBuilder


@pytest.fixture
def components(tmp_path: Path) -> ComponentBuilder:
    """Provide a reusable component builder rooted at the pytest tmp_path."""
    return ComponentBuilder(tmp_path)
