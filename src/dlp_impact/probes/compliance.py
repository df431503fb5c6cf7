"""Compliance API client and policy probes.

:class:`ComplianceApiClient` talks to a Graph-style compliance REST API
with a pre-obtained bearer token: DLP policies, their rules, and the
unified audit log.  List endpoints return ``{"value": [...]}`` pages
linked by ``@odata.nextLink``; the client follows the links until the
pages run out or ``max_results`` items have been collected.

The probes built on top of it measure:

* :class:`PolicyMatchRateProbe` -- DLP rule matches per hour.
* :class:`PolicyCoverageProbe` -- percentage of policies in enforce mode.
* :class:`ApiLatencyProbe` -- round-trip milliseconds of the policy list.

Each probe checks access in ``setup()``; a missing permission turns the
whole check into a :class:`CheckFailure` instead of a run of failed
ticks.
"""

from __future__ import annotations

import datetime
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx

from dlp_impact.domain.exceptions import CheckFailure, DlpImpactError, ProbeFailure
from dlp_impact.probes.base import BaseProbe, TimedProbe

logger = logging.getLogger(__name__)

NEXT_LINK = "@odata.nextLink"


class ComplianceApiError(DlpImpactError):
    """An API call failed; ``status_code`` is 0 for transport errors."""

    def __init__(self, message: str, status_code: int = 0) -> None:
        super().__init__(message, details={"status_code": status_code})
        self.status_code = status_code

    @property
    def is_permission_error(self) -> bool:
        return self.status_code in (401, 403)


class PolicyMode(Enum):
    """Enforcement mode of a DLP policy."""

    ENABLE = "Enable"
    TEST_WITH_NOTIFICATIONS = "TestWithNotifications"
    TEST_WITHOUT_NOTIFICATIONS = "TestWithoutNotifications"
    DISABLE = "Disable"

    @classmethod
    def parse(cls, raw: str) -> PolicyMode:
        """Map an API mode string onto a member, ignoring case.

        Raises
        ------
        ValueError
            For any string that is not a known mode.
        """
        wanted = str(raw).replace("_", "").lower()
        for member in cls:
            if member.value.lower() == wanted:
                return member
        raise ValueError(
            f"Unknown policy mode {raw!r}; expected one of {[m.value for m in cls]}"
        )


@dataclass(frozen=True)
class DlpPolicy:
    id: str
    name: str
    mode: PolicyMode
    workloads: tuple[str, ...] = ()

    @property
    def is_enforced(self) -> bool:
        return self.mode is PolicyMode.ENABLE

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> DlpPolicy:
        workloads = data.get("workloads") or ()
        if isinstance(workloads, str):
            workloads = [w.strip() for w in workloads.split(",") if w.strip()]
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", data.get("displayName", ""))),
            mode=PolicyMode.parse(data.get("mode", "")),
            workloads=tuple(workloads),
        )


@dataclass(frozen=True)
class DlpRule:
    id: str
    name: str
    policy_id: str
    disabled: bool = False

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> DlpRule:
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", data.get("displayName", ""))),
            policy_id=str(data.get("policyId", data.get("policy", ""))),
            disabled=bool(data.get("disabled", False)),
        )


@dataclass(frozen=True)
class AuditRecord:
    id: str
    operation: str
    created: str
    user_id: str = ""
    workload: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> AuditRecord:
        return cls(
            id=str(data.get("id", "")),
            operation=str(data.get("operation", "")),
            created=str(data.get("createdDateTime", data.get("creationTime", ""))),
            user_id=str(data.get("userId", data.get("userPrincipalName", ""))),
            workload=str(data.get("workload", data.get("service", ""))),
        )


def _iso(ts: datetime.datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=datetime.UTC)
    return ts.astimezone(datetime.UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


class ComplianceApiClient:
    """Synchronous client for the compliance policy and audit endpoints.

    Parameters
    ----------
    base_url:
        API root, e.g. ``"https://compliance.example.com/api/v1"``.
    token:
        Bearer token, sent on every request.
    timeout:
        Per-request timeout in seconds.
    page_size:
        ``$top`` requested per page.
    max_results:
        Upper bound on items returned by any single list call.
    transport:
        Optional ``httpx`` transport; tests pass ``httpx.MockTransport``.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 30.0,
        page_size: int = 100,
        max_results: int = 5000,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._page_size = page_size
        self._max_results = max_results
        self._client = httpx.Client(
            base_url=self._base_url,
            timeout=httpx.Timeout(timeout),
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
            },
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    # -- low level ------------------------------------------------------------

    def _get(self, url: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        try:
            response = self._client.get(url, params=params)
        except httpx.TimeoutException as exc:
            raise ComplianceApiError(f"request to {url} timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise ComplianceApiError(f"request to {url} failed: {exc}") from exc

        if response.status_code in (401, 403):
            raise ComplianceApiError(
                f"access denied ({response.status_code}) for {url}; "
                f"check the token's compliance permissions",
                status_code=response.status_code,
            )
        if response.is_error:
            raise ComplianceApiError(
                f"HTTP {response.status_code} from {url}: {response.text[:200]}",
                status_code=response.status_code,
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise ComplianceApiError(f"invalid JSON from {url}") from exc
        if not isinstance(body, dict):
            raise ComplianceApiError(f"unexpected response shape from {url}")
        return body

    def _paged(self, path: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Collect items across ``@odata.nextLink`` pages up to ``max_results``."""
        query = dict(params or {})
        query.setdefault("$top", self._page_size)
        items: list[dict[str, Any]] = []
        url: str | None = path
        pages = 0
        while url is not None:
            body = self._get(url, params=query)
            pages += 1
            for item in body.get("value", []):
                items.append(item)
                if len(items) >= self._max_results:
                    logger.info(
                        "%s: stopped at max_results=%d after %d pages",
                        path,
                        self._max_results,
                        pages,
                    )
                    return items
            url = body.get(NEXT_LINK)
            # the next link already carries the query
            query = None
        logger.debug("%s: %d items in %d pages", path, len(items), pages)
        return items

    # -- endpoints ------------------------------------------------------------

    def list_policies(self) -> list[DlpPolicy]:
        return [DlpPolicy.from_api(item) for item in self._paged("/policies")]

    def list_rules(self, policy_id: str | None = None) -> list[DlpRule]:
        params = {"policyId": policy_id} if policy_id else None
        return [DlpRule.from_api(item) for item in self._paged("/rules", params)]

    def search_audit_log(
        self,
        operation: str,
        start: datetime.datetime,
        end: datetime.datetime,
    ) -> list[AuditRecord]:
        """Audit records of *operation* created in ``[start, end]``."""
        if end < start:
            raise ValueError("end must not be before start")
        params = {
            "operation": operation,
            "startDateTime": _iso(start),
            "endDateTime": _iso(end),
        }
        return [AuditRecord.from_api(item) for item in self._paged("/auditLog", params)]

    def check_access(self) -> None:
        """Make one cheap call; raise :class:`ComplianceApiError` on failure."""
        self._get("/policies", params={"$top": 1})

    # -- lifecycle ------------------------------------------------------------

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> ComplianceApiClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"ComplianceApiClient(base_url={self._base_url!r})"


def _verify_access(client: ComplianceApiClient, probe_name: str) -> None:
    try:
        client.check_access()
    except ComplianceApiError as exc:
        if exc.is_permission_error:
            raise CheckFailure(str(exc), details=exc.details) from exc
        # transient problems show up as failed ticks
        logger.warning("%s: compliance API not reachable during setup: %s", probe_name, exc)


class PolicyMatchRateProbe(BaseProbe):
    """Audit-log matches of *operation* per hour over the trailing *window*."""

    name = "policy_match_rate"
    unit = "/h"

    def __init__(
        self,
        client: ComplianceApiClient,
        operation: str = "DLPRuleMatch",
        window: datetime.timedelta = datetime.timedelta(hours=24),
        now: Callable[[], datetime.datetime] = lambda: datetime.datetime.now(datetime.UTC),
    ) -> None:
        if window.total_seconds() <= 0:
            raise ValueError("window must be positive")
        self._client = client
        self._operation = operation
        self._window = window
        self._now = now

    def setup(self) -> None:
        _verify_access(self._client, self.name)

    def _measure(self) -> float:
        end = self._now()
        try:
            records = self._client.search_audit_log(self._operation, end - self._window, end)
        except ComplianceApiError as exc:
            raise ProbeFailure(str(exc), probe=self.name) from exc
        return len(records) / (self._window.total_seconds() / 3600.0)


class PolicyCoverageProbe(BaseProbe):
    """Percentage of DLP policies in ``Enable`` mode."""

    name = "policy_coverage"
    unit = "%"

    def __init__(self, client: ComplianceApiClient) -> None:
        self._client = client

    def setup(self) -> None:
        _verify_access(self._client, self.name)

    def _measure(self) -> float:
        try:
            policies = self._client.list_policies()
        except ComplianceApiError as exc:
            raise ProbeFailure(str(exc), probe=self.name) from exc
        if not policies:
            raise ProbeFailure("no DLP policies defined", probe=self.name)
        enforced = sum(1 for p in policies if p.is_enforced)
        return enforced / len(policies) * 100.0


class ApiLatencyProbe(TimedProbe):
    """Round-trip milliseconds of listing the DLP policies."""

    name = "compliance_api_latency"

    def __init__(
        self,
        client: ComplianceApiClient,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        super().__init__(timer)
        self._client = client

    def setup(self) -> None:
        _verify_access(self._client, self.name)

    def _operation(self) -> None:
        try:
            self._client.list_policies()
        except ComplianceApiError as exc:
            raise ProbeFailure(str(exc), probe=self.name) from exc
