import uuid
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from teestore.db.session_async import AsyncSessionLocal
from teestore.services import coupon_service

API = "/api/v1"


def _window(days_before: int = 1, days_after: int = 7) -> dict:
    now = datetime.now(timezone.utc)
    return {
        "start_at": (now - timedelta(days=days_before)).isoformat(),
        "end_at": (now + timedelta(days=days_after)).isoformat(),
    }


async def _crear_cupon(client: AsyncClient, **overrides) -> dict:
    payload = {
        "code": f"c{uuid.uuid4().hex[:6]}",
        "discount_type": "percentage",
        "discount_value": 20,
        "usage_limit": 5,
        **_window(),
    }
    payload.update(overrides)
    resp = await client.post(f"{API}/admin/coupons", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.mark.asyncio
async def test_create_coupon_normalizes_code_and_fills_banner(client: AsyncClient):
    coupon = await _crear_cupon(client, code="summer20")

    assert coupon["code"] == "SUMMER20"
    assert coupon["usage_count"] == 0
    assert coupon["banner_text"] == "Use code SUMMER20 for 20% off your order"
    assert coupon["banner_color"] == "#3b82f6"

    fetched = await client.get(f"{API}/admin/coupons/{coupon['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["code"] == "SUMMER20"


@pytest.mark.asyncio
async def test_duplicate_code_is_rejected_regardless_of_case(client: AsyncClient):
    await _crear_cupon(client, code="SAVE15")

    resp = await client.post(
        f"{API}/admin/coupons",
        json={"code": "save15", "discount_value": 15, **_window()},
    )
    assert resp.status_code == 409
    assert resp.json()["detail"] == "Coupon code already exists"


@pytest.mark.asyncio
async def test_fixed_alias_and_invalid_terms(client: AsyncClient):
    fixed = await _crear_cupon(client, code="FIFTEEN", discount_type="fixed", discount_value=15)
    assert fixed["discount_type"] == "fixed_amount"
    assert fixed["banner_text"] == "Use code FIFTEEN for $15.00 off your order"

    too_much = await client.post(
        f"{API}/admin/coupons",
        json={"code": "ALLFREE", "discount_type": "percentage", "discount_value": 150},
    )
    assert too_much.status_code == 422

    now = datetime.now(timezone.utc)
    backwards = await client.post(
        f"{API}/admin/coupons",
        json={
            "code": "BACKWARDS",
            "discount_value": 10,
            "start_at": now.isoformat(),
            "end_at": (now - timedelta(days=1)).isoformat(),
        },
    )
    assert backwards.status_code == 422


@pytest.mark.asyncio
async def test_generate_and_bulk_generate(client: AsyncClient):
    single = await client.post(f"{API}/admin/coupons/generate", json={"code_prefix": "vip", "discount_value": 10})
    assert single.status_code == 201, single.text
    code = single.json()["code"]
    assert code.startswith("VIP")
    assert len(code) == len("VIP") + 6

    bulk = await client.post(f"{API}/admin/coupons/bulk-generate", json={"count": 3, "discount_value": 5})
    assert bulk.status_code == 201, bulk.text
    codes = [item["code"] for item in bulk.json()]
    assert len(codes) == len(set(codes)) == 3

    over = await client.post(f"{API}/admin/coupons/bulk-generate", json={"count": 101, "discount_value": 5})
    assert over.status_code == 422
    assert over.json()["detail"] == "count cannot exceed 100"


@pytest.mark.asyncio
async def test_toggle_public_controls_the_public_listing(client: AsyncClient):
    coupon = await _crear_cupon(client, code="WELCOME10", discount_value=10, minimum_purchase=500)
    await _crear_cupon(client, code="HIDDEN")

    assert (await client.get(f"{API}/coupons/public")).json() == []

    resp = await client.patch(f"{API}/admin/coupons/{coupon['id']}/toggle-public")
    assert resp.status_code == 200
    assert resp.json()["is_public"] is True

    # el mínimo de compra no oculta el cupón del listado
    listed = (await client.get(f"{API}/coupons/public")).json()
    assert [item["code"] for item in listed] == ["WELCOME10"]
    assert listed[0]["banner_text"] == "Use code WELCOME10 for 10% off your order"
    assert "usage_count" not in listed[0]


@pytest.mark.asyncio
async def test_validate_endpoint_reports_reasons(client: AsyncClient):
    await _crear_cupon(client, code="SAVE15", discount_type="fixed_amount", discount_value=15, minimum_purchase=50)

    ok = await client.post(f"{API}/coupons/validate", json={"code": "save15", "subtotal": 100})
    assert ok.status_code == 200
    body = ok.json()
    assert body["valid"] is True
    assert body["discount_amount"] == 15.0
    assert body["new_total"] == 85.0

    short = (await client.post(f"{API}/coupons/validate", json={"code": "SAVE15", "subtotal": 30})).json()
    assert short["valid"] is False
    assert short["reason"] == "minimum_purchase_not_met"
    assert short["shortfall"] == 20.0
    assert short["message"] == "Add $20.00 more to your cart to use this coupon"

    unknown = (await client.post(f"{API}/coupons/validate", json={"code": "NOPE", "subtotal": 30})).json()
    assert unknown["reason"] == "not_found"
    assert unknown["message"] == "Invalid coupon code"

    empty = (await client.post(f"{API}/coupons/validate", json={"code": "SAVE15", "subtotal": 0})).json()
    assert empty["reason"] == "input_invalid"

    # validar nunca consume usos
    coupons = (await client.get(f"{API}/admin/coupons")).json()
    assert coupons[0]["usage_count"] == 0


@pytest.mark.asyncio
async def test_deactivate_expired_and_stats(client: AsyncClient):
    expired = await _crear_cupon(client, code="OLDIE", **_window(days_before=10, days_after=-2))
    await _crear_cupon(client, code="FRESH", is_public=True)

    assert (await client.post(f"{API}/coupons/validate", json={"code": "OLDIE", "subtotal": 40})).json()[
        "reason"
    ] == "expired"

    resp = await client.post(f"{API}/admin/coupons/deactivate-expired")
    assert resp.status_code == 200
    assert resp.json() == {"deactivated": 1}
    assert (await client.get(f"{API}/admin/coupons/{expired['id']}")).json()["is_active"] is False

    again = await client.post(f"{API}/admin/coupons/deactivate-expired")
    assert again.json() == {"deactivated": 0}

    stats = (await client.get(f"{API}/admin/coupons/stats")).json()
    assert stats == {
        "total_coupons": 2,
        "active_coupons": 1,
        "expired_coupons": 1,
        "redeemed_coupons": 0,
        "public_coupons": 1,
    }

    inactive = (await client.get(f"{API}/admin/coupons", params={"active": "false"})).json()
    assert [item["code"] for item in inactive] == ["OLDIE"]


@pytest.mark.asyncio
async def test_update_and_delete_coupon(client: AsyncClient):
    coupon = await _crear_cupon(client, code="EDITME")

    resp = await client.patch(
        f"{API}/admin/coupons/{coupon['id']}",
        json={"discount_value": 25, "banner_text": "Quarter off"},
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["discount_value"] == 25.0
    assert resp.json()["banner_text"] == "Quarter off"

    bad = await client.patch(f"{API}/admin/coupons/{coupon['id']}", json={"discount_value": 120})
    assert bad.status_code == 422
    assert bad.json()["detail"] == "percentage discounts cannot exceed 100"

    # null en un campo obligatorio no cambia el límite
    unchanged = await client.patch(f"{API}/admin/coupons/{coupon['id']}", json={"usage_limit": None})
    assert unchanged.status_code == 200, unchanged.text
    assert unchanged.json()["usage_limit"] == 5

    async with AsyncSessionLocal() as session:
        for _ in range(2):
            assert await coupon_service.commit_coupon_redemption(session, uuid.UUID(coupon["id"])) is True
        await session.commit()

    too_low = await client.patch(f"{API}/admin/coupons/{coupon['id']}", json={"usage_limit": 1})
    assert too_low.status_code == 422
    assert too_low.json()["detail"] == "usage_limit cannot be lower than usage_count"

    raised = await client.patch(f"{API}/admin/coupons/{coupon['id']}", json={"usage_limit": 2})
    assert raised.status_code == 200, raised.text
    assert raised.json()["usage_limit"] == 2

    deleted = await client.delete(f"{API}/admin/coupons/{coupon['id']}")
    assert deleted.status_code == 204
    missing = await client.get(f"{API}/admin/coupons/{coupon['id']}")
    assert missing.status_code == 404
    assert missing.json()["detail"] == "Coupon not found"
