import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from minori.config import SiteConfig  # noqa: E402


def write_note(root: Path, rel: str, title: str, category: str, body: str, time: str = "2021-01-01") -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"title: {title}\ncategory: {category}\ntime: {time}\n---\n{body}", encoding="utf-8")
    return path


@pytest.fixture
def make_config(tmp_path):
    def factory(**overrides) -> SiteConfig:
        overrides.setdefault("root", tmp_path)
        return SiteConfig(**overrides)

    return factory


@pytest.fixture
def notes_dir(tmp_path):
    path = tmp_path / "notes"
    path.mkdir()
    return path


class RecordingTypesetter:
    def __init__(self):
        self.calls = []

    def __call__(self, expression, inputs):
        self.calls.append((expression, tuple(inputs)))
        return f"<math>{len(self.calls)}</math>"


@pytest.fixture
def typesetter():
    return RecordingTypesetter()
