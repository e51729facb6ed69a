"""Pytest configuration for fileshare tests."""
import sys
from pathlib import Path

# Add src/ to path for src-layout imports
_SRC = Path(__file__).parent.parent / 'src'
if str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))

import pytest


@pytest.fixture
def upload_root(tmp_path):
    """Create a temporary upload directory for blob store tests."""
    root = tmp_path / 'uploads'
    root.mkdir()
    return root
