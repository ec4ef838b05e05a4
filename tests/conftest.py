# tests/conftest.py
"""
Pytest configuration and fixtures.
Adds src to sys.path so `import scholarlens` works without an install.
"""

import sys
from pathlib import Path

import pytest

project_root = Path(__file__).parent.parent
src_root = project_root / "src"
if str(src_root) not in sys.path:
    sys.path.insert(0, str(src_root))


@pytest.fixture(autouse=True)
def _isolated_log_dir(tmp_path, monkeypatch):
    """Send file logs of each test into its own temporary directory."""
    from scholarlens.utils.logging_config import Logger

    monkeypatch.setenv("SCHOLARLENS_LOG_DIR", str(tmp_path / "logs"))
    Logger.close()
    yield
    Logger.close()
