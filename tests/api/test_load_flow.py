"""Tests for the synchronous load flow, contingency and grid code endpoints."""

from __future__ import annotations

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio


class TestHealth:
    async def test_health(self, client: AsyncClient):
        resp = await client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["version"] == "0.1.0"

    async def test_request_id_header(self, client: AsyncClient):
        resp = await client.get("/health")
        assert resp.headers.get("x-request-id")

    async def test_request_id_echoed(self, client: AsyncClient):
        resp = await client.get("/health", headers={"X-Request-ID": "abc123"})
        assert resp.headers["x-request-id"] == "abc123"


class TestValidate:
    async def test_valid_network(self, client: AsyncClient, two_bus_payload):
        resp = await client.post("/api/v1/load-flow/validate", json=two_bus_payload)
        assert resp.status_code == 200
        assert resp.json() == {"valid": True, "errors": []}

    async def test_two_slack_buses(self, client: AsyncClient, two_bus_payload):
        two_bus_payload["buses"][1] = {"id": "load", "kind": "slack"}
        resp = await client.post("/api/v1/load-flow/validate", json=two_bus_payload)
        assert resp.status_code == 422
        detail = resp.json()["detail"]
        assert detail["message"] == "Invalid network"
        assert any("slack" in e for e in detail["errors"])

    async def test_unknown_endpoint_bus(self, client: AsyncClient, two_bus_payload):
        two_bus_payload["branches"][0]["to"] = "ghost"
        resp = await client.post("/api/v1/load-flow/validate", json=two_bus_payload)
        assert resp.status_code == 422
        assert "ghost" in resp.json()["detail"]["errors"][0]

    async def test_stray_field_rejected_by_schema(self, client: AsyncClient, two_bus_payload):
        two_bus_payload["buses"][1]["voltageSetpoint"] = 1.0
        resp = await client.post("/api/v1/load-flow/validate", json=two_bus_payload)
        assert resp.status_code == 422

    async def test_unknown_kind_rejected(self, client: AsyncClient, two_bus_payload):
        two_bus_payload["buses"][1]["kind"] = "storage"
        resp = await client.post("/api/v1/load-flow/validate", json=two_bus_payload)
        assert resp.status_code == 422


class TestSolve:
    async def test_two_bus(self, client: AsyncClient, two_bus_payload):
        resp = await client.post("/api/v1/load-flow/solve", json={"network": two_bus_payload})
        assert resp.status_code == 200
        data = resp.json()
        assert data["converged"] is True
        assert data["termination"] == "converged"
        assert data["stability"] == "stable"
        load = next(b for b in data["buses"] if b["id"] == "load")
        assert load["voltage_pu"] == pytest.approx(0.985, abs=2e-3)
        line = data["branches"][0]
        assert line["from"] == "slack"
        assert line["to"] == "load"
        assert line["loading_level"] == "normal"

    async def test_four_bus(self, client: AsyncClient, four_bus_payload):
        resp = await client.post("/api/v1/load-flow/solve", json={"network": four_bus_payload})
        assert resp.status_code == 200
        data = resp.json()
        assert len(data["buses"]) == 4
        assert len(data["branches"]) == 4
        assert data["totals"]["load_mw"] == pytest.approx(70.0, abs=0.2)

    async def test_non_convergence_is_not_an_error(self, client: AsyncClient, two_bus_payload):
        resp = await client.post(
            "/api/v1/load-flow/solve",
            json={
                "network": two_bus_payload,
                "options": {"tolerance_pu": 1e-12, "max_iterations": 1},
            },
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["converged"] is False
        assert data["termination"] == "max_iterations"
        assert data["stability"] == "unstable"

    async def test_grid_code_option_changes_stability(self, client: AsyncClient, two_bus_payload):
        # 165 MW + 66 MVAr pulls the load bus to about 0.944 pu: below the IEC
        # normal band, inside the wider Fiji one
        two_bus_payload["buses"][1]["p"] = 165.0
        two_bus_payload["buses"][1]["q"] = 66.0
        iec = await client.post("/api/v1/load-flow/solve", json={"network": two_bus_payload})
        fiji = await client.post(
            "/api/v1/load-flow/solve",
            json={"network": two_bus_payload, "options": {"grid_code": "fiji"}},
        )
        assert iec.status_code == fiji.status_code == 200
        assert iec.json()["stability"] == "marginal"
        assert fiji.json()["stability"] == "stable"

    async def test_unknown_grid_code(self, client: AsyncClient, two_bus_payload):
        resp = await client.post(
            "/api/v1/load-flow/solve",
            json={"network": two_bus_payload, "options": {"grid_code": "atlantis"}},
        )
        assert resp.status_code == 404
        assert "Unknown grid code profile" in resp.json()["detail"]

    async def test_bad_clamp(self, client: AsyncClient, two_bus_payload):
        resp = await client.post(
            "/api/v1/load-flow/solve",
            json={"network": two_bus_payload, "options": {"voltage_clamp_pu": [1.1, 0.9]}},
        )
        assert resp.status_code == 422

    async def test_negative_tolerance(self, client: AsyncClient, two_bus_payload):
        resp = await client.post(
            "/api/v1/load-flow/solve",
            json={"network": two_bus_payload, "options": {"tolerance_pu": -1}},
        )
        assert resp.status_code == 422

    async def test_invalid_network(self, client: AsyncClient, two_bus_payload):
        two_bus_payload["branches"][0]["r"] = 0.0
        two_bus_payload["branches"][0]["x"] = 0.0
        resp = await client.post("/api/v1/load-flow/solve", json={"network": two_bus_payload})
        assert resp.status_code == 422
        assert "zero impedance" in resp.json()["detail"]["errors"][0]


class TestContingency:
    async def test_four_bus(self, client: AsyncClient, four_bus_payload):
        resp = await client.post(
            "/api/v1/contingency-analysis", json={"network": four_bus_payload}
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["grid_code"] == "IEC Default"
        assert data["summary"]["total_contingencies"] == 4
        assert data["summary"]["islanding_cases"] == 1
        assert data["summary"]["n1_secure"] is False
        assert data["contingencies"][0]["branch_id"] == "line1"
        assert data["contingencies"][0]["causes_islanding"] is True

    async def test_custom_profile(self, client: AsyncClient, four_bus_payload):
        resp = await client.post(
            "/api/v1/contingency-analysis",
            json={
                "network": four_bus_payload,
                "grid_code": "custom",
                "custom_profile": {"name": "Strict", "thermal_limit_pct": 50.0},
            },
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["grid_code"] == "Strict"
        line3_out = next(c for c in data["contingencies"] if c["branch_id"] == "line3")
        assert any(t["branch_id"] == "line2" for t in line3_out["thermal_violations"])

    async def test_custom_without_profile(self, client: AsyncClient, four_bus_payload):
        resp = await client.post(
            "/api/v1/contingency-analysis",
            json={"network": four_bus_payload, "grid_code": "custom"},
        )
        assert resp.status_code == 422

    async def test_unknown_grid_code(self, client: AsyncClient, four_bus_payload):
        resp = await client.post(
            "/api/v1/contingency-analysis",
            json={"network": four_bus_payload, "grid_code": "atlantis"},
        )
        assert resp.status_code == 404


class TestGridCodes:
    async def test_list(self, client: AsyncClient):
        resp = await client.get("/api/v1/grid-codes")
        assert resp.status_code == 200
        keys = {p["key"] for p in resp.json()["profiles"]}
        assert keys == {"iec_default", "fiji", "ieee_1547"}

    async def test_detail(self, client: AsyncClient):
        resp = await client.get("/api/v1/grid-codes/fiji")
        assert resp.status_code == 200
        data = resp.json()
        assert data["name"] == "Fiji Grid Code"
        assert data["voltage_limits"]["normal"] == [0.94, 1.06]
        assert data["thermal_limit_pct"] == 90.0

    async def test_unknown(self, client: AsyncClient):
        resp = await client.get("/api/v1/grid-codes/atlantis")
        assert resp.status_code == 404
