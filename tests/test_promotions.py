import uuid
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from teestore.db.session_async import AsyncSessionLocal
from teestore.services import promotion_service

API = "/api/v1"


def _window(days_before: int = 1, days_after: int = 7) -> dict:
    now = datetime.now(timezone.utc)
    return {
        "start_at": (now - timedelta(days=days_before)).isoformat(),
        "end_at": (now + timedelta(days=days_after)).isoformat(),
    }


async def _crear_categoria(client: AsyncClient) -> dict:
    resp = await client.post(f"{API}/categories", json={"name": f"Cat-{uuid.uuid4().hex[:8]}"})
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _crear_producto(client: AsyncClient, price: float = 50.0, **extra) -> dict:
    payload = {"title": f"Tee {uuid.uuid4().hex[:6]}", "price": price, **extra}
    resp = await client.post(f"{API}/products", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _crear_promocion(client: AsyncClient, **overrides) -> dict:
    payload = {
        "name": "Promo de prueba",
        "discount_type": "percentage",
        "discount_value": 20,
        "promotion_type": "store_wide",
        "is_active": True,
        "priority": 1,
        **_window(),
    }
    payload.update(overrides)
    resp = await client.post(f"{API}/admin/promotions", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.mark.asyncio
async def test_store_wide_promotion_prices_products_and_cache(client: AsyncClient):
    product = await _crear_producto(client, 50.0)
    promo = await _crear_promocion(client)

    price = await client.get(f"{API}/products/{product['id']}/price")
    assert price.status_code == 200, price.text
    body = price.json()
    assert body["has_discount"] is True
    assert body["original_price"] == 50.0
    assert body["final_price"] == 40.0
    assert body["discount_percentage"] == 20
    assert body["applied_promotion_id"] == promo["id"]
    assert body["badge_text"] == "20% OFF"

    # crear la promoción recalcula el cache orientativo
    detail = await client.get(f"{API}/products/{product['id']}")
    assert detail.json()["cached_final_price"] == 40.0
    assert detail.json()["cached_promotion_id"] == promo["id"]


@pytest.mark.asyncio
async def test_priority_and_tie_break_through_the_api(client: AsyncClient):
    product = await _crear_producto(client, 80.0)
    await _crear_promocion(client, name="Diez", discount_value=10, priority=5)
    quince = await _crear_promocion(client, name="Quince", discount_value=15, priority=5)

    for _ in range(2):
        body = (await client.get(f"{API}/products/{product['id']}/price")).json()
        assert body["applied_promotion_id"] == quince["id"]
        assert body["final_price"] == 68.0


@pytest.mark.asyncio
async def test_category_promotion_and_batch_prices(client: AsyncClient):
    category = await _crear_categoria(client)
    in_category = await _crear_producto(client, 30.0, category_id=category["id"])
    other = await _crear_producto(client, 30.0)
    await _crear_promocion(
        client,
        promotion_type="category",
        applicable_categories=[category["id"]],
        discount_type="fixed_amount",
        discount_value=5,
    )

    resp = await client.post(f"{API}/products/prices", json={"product_ids": [in_category["id"], other["id"]]})
    assert resp.status_code == 200, resp.text
    prices = resp.json()
    assert prices[in_category["id"]]["final_price"] == 25.0
    assert prices[in_category["id"]]["badge_text"] == "$5.00 OFF"
    assert prices[other["id"]]["has_discount"] is False

    missing = await client.post(f"{API}/products/prices", json={"product_ids": [str(uuid.uuid4())]})
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_apply_promotion_to_products(client: AsyncClient):
    product = await _crear_producto(client, 40.0)
    promo = await _crear_promocion(client, promotion_type="product_specific", discount_value=25)

    before = (await client.get(f"{API}/products/{product['id']}/price")).json()
    assert before["has_discount"] is False

    resp = await client.post(
        f"{API}/admin/promotions/{promo['id']}/products",
        json={"product_ids": [product["id"]]},
    )
    assert resp.status_code == 200, resp.text
    assert product["id"] in resp.json()["applicable_products"]

    detail = (await client.get(f"{API}/products/{product['id']}")).json()
    assert detail["promotion_id"] == promo["id"]
    assert detail["cached_final_price"] == 30.0


@pytest.mark.asyncio
async def test_deactivated_linked_promotion_is_reported_not_guessed(client: AsyncClient, caplog):
    product = await _crear_producto(client, 40.0)
    promo = await _crear_promocion(client, promotion_type="product_specific", discount_value=25)
    await client.post(f"{API}/admin/promotions/{promo['id']}/products", json={"product_ids": [product["id"]]})

    resp = await client.post(f"{API}/admin/promotions/{promo['id']}/deactivate")
    assert resp.status_code == 200
    assert resp.json()["is_active"] is False

    price = (await client.get(f"{API}/products/{product['id']}/price")).json()
    assert price["has_discount"] is False
    assert price["final_price"] == 40.0

    with caplog.at_level("WARNING", logger="teestore.consistency"):
        report = await client.post(f"{API}/admin/promotions/refresh-prices")
    assert report.status_code == 200, report.text
    issues = report.json()["issues"]
    assert [issue["product_id"] for issue in issues] == [product["id"]]
    assert issues[0]["expected_promotion_id"] == promo["id"]
    assert issues[0]["detail"] == "linked promotion is inactive"
    assert "resolves without discount" in caplog.text


@pytest.mark.asyncio
async def test_soft_delete_keeps_the_record(client: AsyncClient):
    promo = await _crear_promocion(client)

    resp = await client.delete(f"{API}/admin/promotions/{promo['id']}")
    assert resp.status_code == 204

    stored = await client.get(f"{API}/admin/promotions/{promo['id']}")
    assert stored.status_code == 200
    assert stored.json()["is_active"] is False

    inactive = (await client.get(f"{API}/admin/promotions", params={"active": "false"})).json()
    assert [item["id"] for item in inactive] == [promo["id"]]

    reactivated = await client.post(f"{API}/admin/promotions/{promo['id']}/activate")
    assert reactivated.json()["is_active"] is True


@pytest.mark.asyncio
async def test_active_listing_only_shows_current_promotions(client: AsyncClient):
    current = await _crear_promocion(client, name="Vigente")
    await _crear_promocion(client, name="Futura", **_window(days_before=-2, days_after=5))
    await _crear_promocion(client, name="Borrador", is_active=False)
    await _crear_promocion(client, name="Agotada", usage_limit=1)

    # agotar la última
    promotions = (await client.get(f"{API}/admin/promotions")).json()
    agotada = next(promo for promo in promotions if promo["name"] == "Agotada")
    async with AsyncSessionLocal() as session:
        assert await promotion_service.commit_promotion_usage(session, uuid.UUID(agotada["id"])) is True
        assert await promotion_service.commit_promotion_usage(session, uuid.UUID(agotada["id"])) is False
        await session.commit()

    active = (await client.get(f"{API}/promotions/active")).json()
    assert [promo["id"] for promo in active] == [current["id"]]


@pytest.mark.asyncio
async def test_promotion_window_validation(client: AsyncClient):
    now = datetime.now(timezone.utc)
    bad = await client.post(
        f"{API}/admin/promotions",
        json={
            "name": "Al reves",
            "discount_value": 10,
            "start_at": now.isoformat(),
            "end_at": (now - timedelta(days=1)).isoformat(),
        },
    )
    assert bad.status_code == 422

    promo = await _crear_promocion(client)
    resp = await client.patch(
        f"{API}/admin/promotions/{promo['id']}",
        json={"end_at": (now - timedelta(days=30)).isoformat()},
    )
    assert resp.status_code == 422
    assert resp.json()["detail"] == "start_at must be before end_at"


@pytest.mark.asyncio
async def test_update_changes_price_and_missing_promotion_is_404(client: AsyncClient):
    product = await _crear_producto(client, 100.0)
    promo = await _crear_promocion(client, discount_value=10)

    resp = await client.patch(f"{API}/admin/promotions/{promo['id']}", json={"discount_value": 30})
    assert resp.status_code == 200, resp.text
    assert (await client.get(f"{API}/products/{product['id']}/price")).json()["final_price"] == 70.0

    missing = await client.get(f"{API}/admin/promotions/{uuid.uuid4()}")
    assert missing.status_code == 404
    assert missing.json()["detail"] == "Promotion not found"


@pytest.mark.asyncio
async def test_clearance_marking_and_on_sale_listing(client: AsyncClient):
    rack = await _crear_producto(client, 35.0)
    regular = await _crear_producto(client, 35.0)
    clearance = await _crear_promocion(client, name="Liquidacion", promotion_type="clearance", discount_value=40)

    resp = await client.post(
        f"{API}/admin/promotions/clearance",
        json={"product_ids": [rack["id"]], "promotion_id": clearance["id"]},
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["refreshed"] == 1
    assert resp.json()["discounted"] == 1

    price = (await client.get(f"{API}/products/{rack['id']}/price")).json()
    assert price["final_price"] == 21.0
    assert price["is_on_clearance"] is True
    assert price["badge_text"] == "CLEARANCE 40% OFF"

    on_sale = (await client.get(f"{API}/products/on-sale")).json()
    assert [entry["product"]["id"] for entry in on_sale] == [rack["id"]]
    assert regular["id"] not in {entry["product"]["id"] for entry in on_sale}


@pytest.mark.asyncio
async def test_admin_preview_uses_the_resolver(client: AsyncClient):
    product = await _crear_producto(client, 60.0)
    promo = await _crear_promocion(client, discount_type="fixed_amount", discount_value=12)

    resp = await client.get(
        f"{API}/admin/promotions/{promo['id']}/preview",
        params={"product_id": product["id"]},
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["final_price"] == 48.0
    assert body["discount_percentage"] == 20
    assert body["applied_promotion_id"] == promo["id"]
