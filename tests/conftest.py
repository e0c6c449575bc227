from __future__ import annotations

import json
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, List, Optional

import pytest

# Ensure src/ is importable when tests run from a plain checkout
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from chemical_inventory.domain.models import ChemicalRecord  # noqa: E402
from chemical_inventory.store.db import LocalStore  # noqa: E402


class FakeClock:
    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2024, 8, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeResponse:
    def __init__(self, status_code: int = 200, body: Any = None, text: Optional[str] = None) -> None:
        self.status_code = status_code
        self._body = body
        self.text = text if text is not None else (json.dumps(body) if body is not None else "")

    def json(self) -> Any:
        if self._body is None:
            return json.loads(self.text)
        return self._body


class FakeSession:
    """Stands in for requests.Session; replies are queued per HTTP method.

    A queued exception instance is raised instead of returned.
    """

    def __init__(self) -> None:
        self.headers: dict = {}
        self.calls: List[dict] = []
        self.replies: dict = {"GET": [], "POST": [], "HEAD": []}
        self.closed = False

    def queue(self, method: str, *replies: Any) -> None:
        self.replies[method].extend(replies)

    def _reply(self, method: str, url: str, **kwargs: Any) -> Any:
        self.calls.append({"method": method, "url": url, **kwargs})
        if not self.replies[method]:
            raise AssertionError(f"unexpected {method} {url}")
        reply = self.replies[method].pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def get(self, url: str, **kwargs: Any) -> Any:
        return self._reply("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> Any:
        return self._reply("POST", url, **kwargs)

    def head(self, url: str, **kwargs: Any) -> Any:
        return self._reply("HEAD", url, **kwargs)

    def close(self) -> None:
        self.closed = True


def make_record(name: str = "Acetone", cas: str = "67-64-1", **overrides: Any) -> ChemicalRecord:
    fields = {
        "product_name": name,
        "cas_number": cas,
        "manufacturer_name": "Sigma-Aldrich",
        "current_stock_quantity": 5.0,
        "unit": "L",
    }
    fields.update(overrides)
    return ChemicalRecord(**fields)


def envelope(*records: ChemicalRecord) -> dict:
    return {"record": {"chemicals": [r.to_json() for r in records]}}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(tmp_path: Path, clock: FakeClock) -> LocalStore:
    return LocalStore(str(tmp_path / "store.sqlite3"), clock=clock)


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()
