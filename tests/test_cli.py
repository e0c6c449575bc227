from __future__ import annotations

import json
from pathlib import Path

import pytest

from chemical_inventory.cli.main import main
from chemical_inventory.errors import NetworkError


@pytest.fixture
def cli_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    store_path = tmp_path / "var" / "store.sqlite3"
    monkeypatch.setenv("CHEMICAL_STORE_PATH", str(store_path))
    monkeypatch.setenv("CHEMICAL_API_URL", "https://inventory.invalid/api")
    monkeypatch.chdir(tmp_path)
    return store_path


def _add(name: str = "Acetone", *extra: str) -> int:
    return main(
        [
            "add",
            "--name", name,
            "--cas", "67-64-1",
            "--manufacturer", "Sigma-Aldrich",
            "--quantity", "2.5",
            "--unit", "L",
            *extra,
        ]
    )


def test_add_then_pending_and_status(cli_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _add() == 0
    added = json.loads(capsys.readouterr().out)
    assert added["chemical"]["product_name"] == "Acetone"
    assert added["chemical"]["storage_location"] == "Storage Room A"

    assert main(["pending"]) == 0
    pending = json.loads(capsys.readouterr().out)
    assert [p["id"] for p in pending] == [added["id"]]

    assert main(["status"]) == 0
    status = json.loads(capsys.readouterr().out)
    assert status["pending_sync_count"] == 1
    assert status["has_cache"] is False
    assert status["dark_mode"] is False
    assert cli_env.exists()


def test_add_with_other_location_requires_free_text(cli_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _add("Ethanol", "--location", "Other") == 2
    assert _add("Ethanol", "--location", "Other", "--other-location", "Fume hood 3") == 0
    added = json.loads(capsys.readouterr().out)
    assert added["chemical"]["storage_location"] == "Fume hood 3"


def test_add_rejects_negative_quantity(cli_env: Path) -> None:
    assert main(["add", "--name", "X", "--cas", "1-1-1", "--manufacturer", "M", "--quantity", "-1"]) == 2


@pytest.mark.parametrize(
    "name,cas,manufacturer,quantity",
    [
        ("  ", "", "", "1"),
        ("Acetone", "   ", "Sigma-Aldrich", "1"),
        ("Acetone", "67-64-1", "", "1"),
        ("Acetone", "67-64-1", "Sigma-Aldrich", "nan"),
        ("Acetone", "67-64-1", "Sigma-Aldrich", "inf"),
    ],
)
def test_add_rejects_invalid_entry_and_queues_nothing(
    cli_env: Path, capsys: pytest.CaptureFixture[str], name: str, cas: str, manufacturer: str, quantity: str
) -> None:
    code = main(
        ["add", "--name", name, "--cas", cas, "--manufacturer", manufacturer, "--quantity", quantity]
    )
    assert code == 2
    capsys.readouterr()
    assert main(["pending"]) == 0
    assert json.loads(capsys.readouterr().out) == []


def test_add_strips_padding_before_queueing(cli_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _add(" Acetone ", "--category", "  ") == 0
    added = json.loads(capsys.readouterr().out)
    assert added["chemical"]["product_name"] == "Acetone"
    assert added["chemical"]["category"] is None


def test_dark_mode_toggle_persists(cli_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["dark-mode", "on"]) == 0
    assert main(["dark-mode"]) == 0
    assert capsys.readouterr().out.split() == ["on", "on"]


def test_clear_cache_requires_confirmation(cli_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _add() == 0
    assert main(["clear-cache"]) == 2
    assert main(["clear-cache", "--yes"]) == 0
    capsys.readouterr()
    assert main(["pending"]) == 0
    assert json.loads(capsys.readouterr().out) == []


def test_list_offline_without_cache_fails(cli_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def _offline(self):
        raise NetworkError("offline")

    monkeypatch.setattr("chemical_inventory.remote.client.InventoryClient.fetch_all", _offline)
    assert main(["list"]) == 1
