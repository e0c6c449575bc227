from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

import requests

from ..config import DEFAULT_FETCH_TIMEOUT, DEFAULT_CONNECT_TIMEOUT
from ..domain.models import ChemicalRecord, PendingItem
from ..domain.parser import decode_envelope
from ..errors import NetworkError, ParseError
from ..logging import get_logger


@dataclass
class SubmitOutcome:
    item_id: str
    accepted: bool
    status_code: Optional[int] = None
    error: Optional[str] = None


@dataclass
class SubmitReport:
    outcomes: List[SubmitOutcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(o.accepted for o in self.outcomes)

    @property
    def accepted_ids(self) -> List[str]:
        return [o.item_id for o in self.outcomes if o.accepted]

    @property
    def failed_ids(self) -> List[str]:
        return [o.item_id for o in self.outcomes if not o.accepted]


class InventoryClient:
    """Thin client for the remote inventory endpoint with session, timeouts, and logging.

    The read side is a single GET of the whole inventory. The write side posts
    pending items one by one with an ``Idempotency-Key`` so the server can
    drop duplicates when a partially failed sync is retried.
    """

    def __init__(
        self,
        api_url: str,
        *,
        submit_url: Optional[str] = None,
        api_key: Optional[str] = None,
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_url = api_url
        self.submit_url = submit_url or api_url
        self.fetch_timeout = float(fetch_timeout)
        self.connect_timeout = float(connect_timeout)
        self.log = get_logger("remote-client")
        self.s = session or requests.Session()
        self.s.headers.update({"Accept": "application/json"})
        if api_key:
            self.s.headers.update({"X-Access-Key": api_key})

    # ---------- read ----------
    def fetch_all(self) -> List[ChemicalRecord]:
        self.log.info(f"GET chemicals from {self.api_url}")
        try:
            r = self.s.get(self.api_url, timeout=self.fetch_timeout)
        except requests.Timeout as e:
            self.log.warning(f"GET chemicals timed out after {self.fetch_timeout}s")
            raise NetworkError(f"request timed out after {self.fetch_timeout}s") from e
        except requests.RequestException as e:
            self.log.warning(f"GET chemicals failed: {e}")
            raise NetworkError(f"request failed: {e}") from e

        if r.status_code != 200:
            self.log.warning(f"GET chemicals returned HTTP {r.status_code}")
            raise NetworkError(f"failed to load chemicals: HTTP {r.status_code}", status_code=r.status_code)

        try:
            body: Any = r.json()
        except ValueError as e:
            preview = (r.text or "")[:200]
            self.log.error(f"Response is not JSON: {preview!r}")
            raise ParseError(f"response is not valid JSON: {e}") from e

        records = decode_envelope(body)
        self.log.info(f"Fetched {len(records)} chemical record(s)")
        return records

    # ---------- write ----------
    def submit_pending(self, items: Sequence[PendingItem]) -> SubmitReport:
        report = SubmitReport()
        aborted: Optional[str] = None
        for item in items:
            if aborted is not None:
                report.outcomes.append(SubmitOutcome(item.item_id, accepted=False, error=aborted))
                continue
            try:
                r = self.s.post(
                    self.submit_url,
                    json=item.to_json(),
                    headers={"Idempotency-Key": item.item_id},
                    timeout=self.fetch_timeout,
                )
            except (requests.ConnectionError, requests.Timeout) as e:
                # Connection-level failure: the remaining items would fail the same way.
                aborted = f"request failed: {e}"
                self.log.warning(f"POST pending item {item.item_id} failed: {e}")
                report.outcomes.append(SubmitOutcome(item.item_id, accepted=False, error=aborted))
                continue
            except requests.RequestException as e:
                self.log.warning(f"POST pending item {item.item_id} could not be sent: {e}")
                report.outcomes.append(
                    SubmitOutcome(item.item_id, accepted=False, error=f"request failed: {e}")
                )
                continue

            # 409: the server already holds this idempotency key.
            if 200 <= r.status_code < 300 or r.status_code == 409:
                report.outcomes.append(SubmitOutcome(item.item_id, accepted=True, status_code=r.status_code))
            else:
                self.log.warning(f"POST pending item {item.item_id} rejected with HTTP {r.status_code}")
                report.outcomes.append(
                    SubmitOutcome(
                        item.item_id,
                        accepted=False,
                        status_code=r.status_code,
                        error=f"HTTP {r.status_code}",
                    )
                )
        self.log.info(
            f"Submitted {len(report.outcomes)} pending item(s): "
            f"{len(report.accepted_ids)} accepted, {len(report.failed_ids)} failed"
        )
        return report

    # ---------- reachability ----------
    def check_connectivity(self) -> bool:
        """Advisory reachability check; never raises."""
        try:
            r = self.s.head(self.api_url, timeout=self.connect_timeout, allow_redirects=True)
        except requests.RequestException as e:
            self.log.debug(f"Connectivity check failed: {e}")
            return False
        return r.status_code < 500

    def close(self) -> None:
        self.s.close()
