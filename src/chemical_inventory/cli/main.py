from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Any, Sequence

from ..config import InventoryConfig, load_settings
from ..domain.constants import DEFAULT_UNIT, OTHER_LOCATION, STORAGE_LOCATIONS, UNITS
from ..domain.models import ChemicalRecord
from ..errors import NoDataAvailable, StorageError
from ..logging import get_logger
from ..remote.client import InventoryClient
from ..store.db import LocalStore
from ..sync.coordinator import InventorySnapshot, SyncCoordinator

LOG = get_logger("cli-main")


def build_coordinator(config: InventoryConfig) -> SyncCoordinator:
    """Composition root: one store and one client per process."""
    store = LocalStore(config.store_path)
    client = InventoryClient(
        config.api_url,
        submit_url=config.submit_url,
        api_key=config.api_key,
        fetch_timeout=config.fetch_timeout,
        connect_timeout=config.connect_timeout,
    )
    return SyncCoordinator(store, client)


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _snapshot_payload(snapshot: InventorySnapshot) -> dict:
    return {
        "source": snapshot.source,
        "stale": snapshot.stale,
        "fetched_at": snapshot.fetched_at.isoformat() if snapshot.fetched_at else None,
        "count": len(snapshot.records),
        "chemicals": [r.to_json() for r in snapshot.records],
    }


def _handle_list(coord: SyncCoordinator, ns: argparse.Namespace) -> int:
    try:
        if ns.cache_first:
            snapshot = coord.fetch_chemicals_with_cache()
            # Short-lived process: let the refresh land before exiting.
            coord.wait_for_refresh(timeout=coord.client.fetch_timeout + 1)
        else:
            snapshot = coord.fetch_chemicals()
    except NoDataAvailable as e:
        LOG.error(f"{e}. Check the connection and retry.")
        return 1
    if snapshot.stale:
        LOG.warning("Offline: showing stale cached data")
    _print_json(_snapshot_payload(snapshot))
    return 0


def _handle_add(coord: SyncCoordinator, ns: argparse.Namespace) -> int:
    location = ns.location
    if location == OTHER_LOCATION:
        location = ns.other_location
        if not location:
            LOG.error("--other-location is required when --location is 'Other'")
            return 2
    try:
        record = ChemicalRecord(
            product_name=ns.name,
            cas_number=ns.cas,
            manufacturer_name=ns.manufacturer,
            current_stock_quantity=ns.quantity,
            unit=ns.unit,
            category=ns.category,
            storage_location=location,
            expiry_date=ns.expiry,
        )
    except ValueError as e:
        LOG.error(f"Invalid record: {e}")
        return 2
    item = coord.add_chemical(record)
    LOG.info("Data saved locally and will sync when online")
    _print_json({"id": item.item_id, "queued_at": item.queued_at.isoformat(), "chemical": record.to_json()})
    return 0


def _handle_pending(coord: SyncCoordinator, _: argparse.Namespace) -> int:
    items = coord.store.list_pending()
    _print_json([i.to_json() for i in items])
    return 0


def _handle_sync(coord: SyncCoordinator, _: argparse.Namespace) -> int:
    report = coord.sync_pending_chemicals()
    _print_json(
        {
            "success": report.success,
            "submitted": report.submitted,
            "accepted": report.accepted,
            "remaining": report.remaining,
            "failures": [
                {"id": o.item_id, "error": o.error} for o in report.outcomes if not o.accepted
            ],
        }
    )
    return 0 if report.success else 1


def _handle_status(coord: SyncCoordinator, _: argparse.Namespace) -> int:
    payload = coord.cache_info().as_dict()
    payload["dark_mode"] = coord.store.get_dark_mode()
    _print_json(payload)
    return 0


def _handle_clear(coord: SyncCoordinator, ns: argparse.Namespace) -> int:
    if not ns.yes:
        LOG.error("Refusing to clear cached data without --yes")
        return 2
    coord.clear_cache()
    LOG.info("Cache cleared")
    return 0


def _handle_dark_mode(coord: SyncCoordinator, ns: argparse.Namespace) -> int:
    if ns.state is not None:
        coord.store.set_dark_mode(ns.state == "on")
    print("on" if coord.store.get_dark_mode() else "off")
    return 0


def _handle_ping(coord: SyncCoordinator, _: argparse.Namespace) -> int:
    online = coord.is_online()
    print("online" if online else "offline")
    return 0 if online else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chem-inventory",
        description="Offline-first chemical inventory: cached listing, queued entries, and sync.",
    )
    parser.add_argument("--env-dir", help="Directory to start the .env search from (default: cwd)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_cmd = subparsers.add_parser("list", help="List chemicals (network first, cache fallback).")
    list_cmd.add_argument(
        "--cache-first",
        action="store_true",
        help="Serve a valid cache immediately and refresh it in the background",
    )
    list_cmd.set_defaults(handler=_handle_list)

    add_cmd = subparsers.add_parser("add", help="Queue a chemical entered by hand for the next sync.")
    add_cmd.add_argument("--name", required=True, help="Product name")
    add_cmd.add_argument("--cas", required=True, help="CAS registry number")
    add_cmd.add_argument("--manufacturer", required=True)
    add_cmd.add_argument("--quantity", type=float, required=True, help="Current stock quantity")
    add_cmd.add_argument("--unit", choices=UNITS, default=DEFAULT_UNIT)
    add_cmd.add_argument("--category")
    add_cmd.add_argument("--location", choices=STORAGE_LOCATIONS + (OTHER_LOCATION,), default=STORAGE_LOCATIONS[0])
    add_cmd.add_argument("--other-location", help="Free-text location when --location is 'Other'")
    add_cmd.add_argument("--expiry", help="Expiry date (YYYY-MM-DD)")
    add_cmd.set_defaults(handler=_handle_add)

    subparsers.add_parser("pending", help="Show records waiting to be synced.").set_defaults(handler=_handle_pending)
    subparsers.add_parser("sync", help="Submit pending records to the remote source.").set_defaults(handler=_handle_sync)
    subparsers.add_parser("status", help="Show cache validity, last sync and queue size.").set_defaults(
        handler=_handle_status
    )

    clear_cmd = subparsers.add_parser("clear-cache", help="Delete the cached snapshot and the pending queue.")
    clear_cmd.add_argument("--yes", action="store_true", help="Confirm deletion")
    clear_cmd.set_defaults(handler=_handle_clear)

    dark_cmd = subparsers.add_parser("dark-mode", help="Show or set the dark mode preference.")
    dark_cmd.add_argument("state", nargs="?", choices=["on", "off"])
    dark_cmd.set_defaults(handler=_handle_dark_mode)

    subparsers.add_parser("ping", help="Check whether the remote endpoint is reachable.").set_defaults(handler=_handle_ping)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    provided = list(argv) if argv is not None else sys.argv[1:]
    LOG.debug(f"CLI invoked with arguments: {provided}")
    args = build_parser().parse_args(provided)

    config = load_settings(args.env_dir or os.getcwd())
    try:
        coord = build_coordinator(config)
    except StorageError as e:
        LOG.error(f"Local store unavailable: {e}")
        return 1
    try:
        code = args.handler(coord, args)
    except StorageError as e:
        LOG.error(f"Local store error ({e.region}/{e.key}): {e}")
        code = 1
    finally:
        coord.client.close()
        coord.store.close()
    LOG.debug(f"Subcommand '{args.command}' finished with exit code {code}.")
    return code


if __name__ == "__main__":
    sys.exit(main())
