import uuid

import pytest
from httpx import AsyncClient

API = "/api/v1"


@pytest.mark.asyncio
async def test_metrics_endpoint_exposes_pricing_counters(client: AsyncClient):
    product = await client.post(f"{API}/products", json={"title": "Metrics Tee", "price": 20})
    assert product.status_code == 201
    await client.get(f"{API}/products/{product.json()['id']}/price")
    await client.post(f"{API}/coupons/validate", json={"code": "NOPE", "subtotal": 10})

    resp = await client.get("/metrics")
    assert resp.status_code == 200
    assert "teestore_price_resolutions_total" in resp.text
    assert 'teestore_coupon_validations_total{outcome="not_found"}' in resp.text
    assert "teestore_http_requests_total" in resp.text


@pytest.mark.asyncio
async def test_client_errors_are_logged_with_route_template(client: AsyncClient, caplog):
    with caplog.at_level("WARNING", logger="teestore.requests"):
        resp = await client.get(f"{API}/products/{uuid.uuid4()}/price", headers={"x-request-id": "req-42"})
    assert resp.status_code == 404

    records = [record for record in caplog.records if record.name == "teestore.requests"]
    assert records, "expected a request log line"
    assert records[-1].status_code == 404
    assert records[-1].path == "/api/v1/products/{product_id}/price"
    assert records[-1].request_id == "req-42"


@pytest.mark.asyncio
async def test_root_reports_status(client: AsyncClient):
    resp = await client.get("/")
    assert resp.json()["status"] == "ok"
