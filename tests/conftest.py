import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path for `import serverstats` and `tests.fakes`
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from serverstats.store import close_store, init_store  # noqa: E402


@pytest.fixture
def store(tmp_path):
    init_store(str(tmp_path / "serverstats.db"))
    yield
    close_store()
