from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SOURCE_FILES = sorted(
    p for p in PROJECT_ROOT.glob('**/*.py')
    if 'tests' not in p.parts and '.venv' not in p.parts
)


@pytest.mark.parametrize("path", SOURCE_FILES, ids=lambda p: str(p.relative_to(PROJECT_ROOT)))
def test_source_is_ascii(path):
    text = path.read_text(encoding='utf-8')
    bad = [n for n, line in enumerate(text.splitlines(), 1) if not line.isascii()]
    assert bad == [], f"non-ASCII text on lines {bad}"
