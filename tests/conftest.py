from pathlib import Path

import pytest

DATA_DIR = Path(__file__).parent / "data"


@pytest.fixture
def data_dir() -> Path:
    return DATA_DIR


@pytest.fixture
def deck_text() -> str:
    return (DATA_DIR / "input-fixed-80.data").read_text()
