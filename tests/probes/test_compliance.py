"""Tests for the compliance API client and policy probes."""

from __future__ import annotations

import datetime
from collections.abc import Callable

import httpx
import pytest

from dlp_impact.domain.exceptions import CheckFailure, ProbeFailure
from dlp_impact.probes.compliance import (
    ApiLatencyProbe,
    ComplianceApiClient,
    ComplianceApiError,
    DlpPolicy,
    PolicyCoverageProbe,
    PolicyMatchRateProbe,
    PolicyMode,
)

BASE = "https://compliance.test/api"


def _client(handler: Callable[[httpx.Request], httpx.Response], **kwargs) -> ComplianceApiClient:
    return ComplianceApiClient(BASE, "tok", transport=httpx.MockTransport(handler), **kwargs)


def _policies(*modes: str) -> list[dict]:
    return [{"id": str(i), "name": f"p{i}", "mode": m} for i, m in enumerate(modes)]


class TestPolicyMode:

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("Enable", PolicyMode.ENABLE),
            ("enable", PolicyMode.ENABLE),
            ("TEST_WITH_NOTIFICATIONS", PolicyMode.TEST_WITH_NOTIFICATIONS),
            ("testwithoutnotifications", PolicyMode.TEST_WITHOUT_NOTIFICATIONS),
        ],
    )
    def test_parse(self, raw: str, expected: PolicyMode) -> None:
        assert PolicyMode.parse(raw) is expected

    def test_unknown(self) -> None:
        with pytest.raises(ValueError, match="Unknown policy mode"):
            PolicyMode.parse("Audit")

    def test_policy_from_api(self) -> None:
        policy = DlpPolicy.from_api(
            {"id": "7", "displayName": "PCI", "mode": "Enable", "workloads": "Exchange, Endpoint"}
        )
        assert policy.name == "PCI"
        assert policy.workloads == ("Exchange", "Endpoint")
        assert policy.is_enforced


class TestComplianceApiClient:

    def test_sends_bearer_token(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"value": []})

        with _client(handler) as client:
            assert client.list_policies() == []
        assert seen[0].headers["Authorization"] == "Bearer tok"
        assert seen[0].url.path == "/api/policies"
        assert seen[0].url.params["$top"] == "100"

    def test_follows_next_link(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.params.get("page") == "2":
                return httpx.Response(200, json={"value": _policies("Disable")})
            return httpx.Response(
                200,
                json={"value": _policies("Enable", "Enable"),
                      "@odata.nextLink": f"{BASE}/policies?page=2"},
            )

        policies = _client(handler).list_policies()
        assert [p.mode for p in policies] == [
            PolicyMode.ENABLE, PolicyMode.ENABLE, PolicyMode.DISABLE,
        ]

    def test_max_results_caps_paging(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(
                200,
                json={"value": _policies("Enable", "Enable", "Enable"),
                      "@odata.nextLink": f"{BASE}/policies?page=next"},
            )

        policies = _client(handler, max_results=5).list_policies()
        assert len(policies) == 5
        assert len(calls) == 2

    def test_permission_error(self) -> None:
        client = _client(lambda request: httpx.Response(403, json={"error": "forbidden"}))
        with pytest.raises(ComplianceApiError) as info:
            client.check_access()
        assert info.value.status_code == 403
        assert info.value.is_permission_error

    def test_server_error(self) -> None:
        client = _client(lambda request: httpx.Response(503, text="busy"))
        with pytest.raises(ComplianceApiError, match="HTTP 503") as info:
            client.list_rules()
        assert not info.value.is_permission_error

    def test_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ComplianceApiError, match="failed") as info:
            _client(handler).list_policies()
        assert info.value.status_code == 0

    def test_rules_filtered_by_policy(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["policyId"] == "42"
            return httpx.Response(
                200, json={"value": [{"id": "r1", "name": "SSN", "policyId": "42"}]}
            )

        rules = _client(handler).list_rules("42")
        assert rules[0].policy_id == "42"
        assert not rules[0].disabled

    def test_audit_search_params(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            params = request.url.params
            assert params["operation"] == "DLPRuleMatch"
            assert params["startDateTime"] == "2026-03-01T00:00:00Z"
            assert params["endDateTime"] == "2026-03-02T00:00:00Z"
            return httpx.Response(
                200, json={"value": [{"id": "a", "operation": "DLPRuleMatch",
                                      "createdDateTime": "2026-03-01T05:00:00Z"}]}
            )

        start = datetime.datetime(2026, 3, 1, tzinfo=datetime.UTC)
        records = _client(handler).search_audit_log(
            "DLPRuleMatch", start, start + datetime.timedelta(days=1)
        )
        assert records[0].created == "2026-03-01T05:00:00Z"

    def test_audit_search_rejects_reversed_range(self) -> None:
        start = datetime.datetime(2026, 3, 1, tzinfo=datetime.UTC)
        client = _client(lambda request: httpx.Response(200, json={"value": []}))
        with pytest.raises(ValueError):
            client.search_audit_log("DLPRuleMatch", start, start - datetime.timedelta(hours=1))


class TestPolicyProbes:

    def test_coverage(self) -> None:
        client = _client(
            lambda request: httpx.Response(
                200, json={"value": _policies("Enable", "Enable", "Enable", "Disable")}
            )
        )
        probe = PolicyCoverageProbe(client)
        probe.setup()
        assert probe()[0] == pytest.approx(75.0)

    def test_coverage_without_policies_fails(self) -> None:
        client = _client(lambda request: httpx.Response(200, json={"value": []}))
        with pytest.raises(ProbeFailure, match="no DLP policies"):
            PolicyCoverageProbe(client)()

    def test_setup_permission_denied_is_check_failure(self) -> None:
        client = _client(lambda request: httpx.Response(401))
        with pytest.raises(CheckFailure, match="access denied"):
            PolicyCoverageProbe(client).setup()

    def test_setup_transient_error_is_tolerated(self) -> None:
        client = _client(lambda request: httpx.Response(500))
        probe = PolicyCoverageProbe(client)
        probe.setup()
        with pytest.raises(ProbeFailure, match="HTTP 500"):
            probe()

    def test_match_rate_per_hour(self) -> None:
        now = datetime.datetime(2026, 3, 2, tzinfo=datetime.UTC)
        records = [{"id": str(i), "operation": "DLPRuleMatch"} for i in range(48)]
        client = _client(lambda request: httpx.Response(200, json={"value": records}))
        probe = PolicyMatchRateProbe(client, now=lambda: now)
        assert probe()[0] == pytest.approx(2.0)

    def test_match_rate_rejects_empty_window(self) -> None:
        client = _client(lambda request: httpx.Response(200, json={"value": []}))
        with pytest.raises(ValueError):
            PolicyMatchRateProbe(client, window=datetime.timedelta(0))

    def test_api_latency(self) -> None:
        ticks = iter([1.0, 1.25])
        client = _client(lambda request: httpx.Response(200, json={"value": []}))
        probe = ApiLatencyProbe(client, timer=lambda: next(ticks))
        value, _ = probe()
        assert value == pytest.approx(250.0)
