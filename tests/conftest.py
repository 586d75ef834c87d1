from collections.abc import Callable
from pathlib import Path

import pytest


@pytest.fixture
def make_file(tmp_path: Path) -> Callable[[str, str], Path]:
    """Factory writing a text file under a temporary directory."""

    def _make_file(name: str, content: str) -> Path:
        file = tmp_path / name
        file.write_text(content, encoding="utf-8")
        return file

    return _make_file


@pytest.fixture
def sample_files(make_file) -> list[Path]:
    """Two files whose merged counts are known."""
    return [
        make_file("first.txt", "Hello World! Java is awesome, Java is powerful!"),
        make_file("second.txt", "Hello Java! Java, Java, Java!"),
    ]
