import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from objput.upload.models import ExistenceProbe  # noqa: E402
from objput.upload.store import StoreClient  # noqa: E402


class FakeStore(StoreClient):
    """In-memory store; ``put_effects`` holds one exception (or None) per put call."""

    def __init__(self, probe=None, put_effects=(), probe_effects=()):
        self.probe_result = probe or ExistenceProbe.not_found()
        self.put_effects = list(put_effects)
        self.probe_effects = list(probe_effects)
        self.probe_calls: list[str] = []
        self.puts: list[SimpleNamespace] = []
        self.closed = 0

    def probe(self, path):
        self.probe_calls.append(path)
        if self.probe_effects:
            effect = self.probe_effects.pop(0)
            if effect is not None:
                raise effect
        return self.probe_result

    def put(self, path, stream, size, options):
        chunks = []
        for chunk in iter(lambda: stream.read(64), b""):
            chunks.append(chunk)
        self.puts.append(SimpleNamespace(path=path, body=b"".join(chunks), size=size, options=options))
        if self.put_effects:
            effect = self.put_effects.pop(0)
            if effect is not None:
                raise effect

    def close(self):
        self.closed += 1


@pytest.fixture
def make_store():
    return FakeStore


@pytest.fixture
def report_file(tmp_path: Path) -> Path:
    path = tmp_path / "report.txt"
    path.write_bytes(b"r" * 500)
    return path
