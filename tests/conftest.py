from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
for _path in (ROOT / "src", ROOT):
    if str(_path) not in sys.path:
        sys.path.insert(0, str(_path))


import pytest

from helpcheck.config import HelpCheckSettings
from tests.module_helpers import MANIFEST_INSPECTOR


@pytest.fixture
def manifest_settings() -> HelpCheckSettings:
    return HelpCheckSettings(inspector=MANIFEST_INSPECTOR, timeout_seconds=60.0)
