"""Tests for view tracking endpoints."""

from datetime import date, timedelta

from sqlalchemy import func, select

from productbazar.models import ProductStatus, UserRole, View
from productbazar.services.cache_service import product_count_key


async def _view_count(db_session, product_id: int) -> int:
    return (
        await db_session.execute(select(func.count(View.id)).where(View.product_id == product_id))
    ).scalar_one()


async def test_record_view(client, make_user, make_product, browser_headers, fake_redis, db_session):
    maker = await make_user(role=UserRole.MAKER)
    product = await make_product(maker)
    product_id, maker_id = product.id, maker.id

    response = await client.post(
        f"/api/views/product/{product_id}",
        json={"client_id": "client-1", "source": "search", "referrer": "https://google.com/q"},
        headers=browser_headers,
    )
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["product_views"] == {"count": 1, "unique": 1}
    assert data["is_unique"] is True
    assert data["is_duplicate"] is False

    view = (await db_session.execute(select(View))).scalar_one()
    assert view.client_id == "client-1"
    assert view.browser == "Chrome"
    assert view.os == "Windows"

    cached = fake_redis.store[product_count_key(product_id)]
    assert '"count": 1' in cached
    rooms = {channel for channel, _ in fake_redis.published}
    assert rooms == {
        f"productbazar:room:product:{product_id}",
        f"productbazar:room:user:{maker_id}",
    }


async def test_record_view_without_body(client, make_user, make_product, browser_headers):
    product = await make_product(await make_user(role=UserRole.MAKER))
    response = await client.post(f"/api/views/product/{product.id}", headers=browser_headers)
    assert response.status_code == 201
    # Anonymous viewers without a client id are never unique
    assert response.json()["data"]["product_views"] == {"count": 1, "unique": 0}


async def test_bot_view_is_ignored(client, make_user, make_product, db_session):
    product = await make_product(await make_user(role=UserRole.MAKER))
    response = await client.post(
        f"/api/views/product/{product.id}",
        headers={"user-agent": "Googlebot/2.1 (+http://www.google.com/bot.html)"},
    )
    assert response.status_code == 200
    assert response.json()["message"] == "Bot view ignored."
    assert await _view_count(db_session, product.id) == 0


async def test_default_http_client_counts_as_bot(client, make_user, make_product):
    product = await make_product(await make_user(role=UserRole.MAKER))
    response = await client.post(f"/api/views/product/{product.id}")
    assert response.json()["message"] == "Bot view ignored."


async def test_duplicate_view_within_window(
    client, make_user, make_product, browser_headers, auth_headers, db_session
):
    viewer = await make_user()
    product = await make_product(await make_user(role=UserRole.MAKER))
    headers = auth_headers(viewer, **browser_headers)

    first = await client.post(f"/api/views/product/{product.id}", headers=headers)
    assert first.status_code == 201
    second = await client.post(f"/api/views/product/{product.id}", headers=headers)
    assert second.status_code == 200
    assert second.json()["data"]["is_duplicate"] is True
    assert await _view_count(db_session, product.id) == 1


async def test_record_view_unknown_product(client, browser_headers):
    response = await client.post("/api/views/product/999", headers=browser_headers)
    assert response.status_code == 404


async def test_duration_skipped_and_updated(
    client, make_user, make_product, browser_headers, db_session
):
    product = await make_product(await make_user(role=UserRole.MAKER))
    url = f"/api/views/product/{product.id}/duration"

    skipped = await client.post(url, json={"session_id": "s1", "view_duration": 0.4}, headers=browser_headers)
    assert skipped.status_code == 200
    assert skipped.json()["status"] == "skipped"

    created = await client.post(
        url, json={"session_id": "s1", "view_duration": 12.7, "scroll_depth": 140}, headers=browser_headers
    )
    assert created.status_code == 201
    assert created.json()["data"] == {"view_duration": 12, "created": True}

    updated = await client.post(
        url, json={"session_id": "s1", "view_duration": 30, "exit_page": "/pricing"}, headers=browser_headers
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["created"] is False

    view = (await db_session.execute(select(View))).scalar_one()
    await db_session.refresh(view)
    assert view.view_duration == 30
    assert view.scroll_depth == 100
    assert view.exit_page == "/pricing"


async def test_duration_failure_is_not_surfaced(client, browser_headers):
    response = await client.post(
        "/api/views/product/999/duration", json={"view_duration": 10}, headers=browser_headers
    )
    assert response.status_code == 200
    assert response.json()["status"] == "error"


async def test_popular_and_related(
    client, make_user, make_product, browser_headers, auth_headers
):
    maker = await make_user(role=UserRole.MAKER)
    alpha = await make_product(maker, name="Alpha")
    beta = await make_product(maker, name="Beta")
    draft = await make_product(maker, name="Hidden", status=ProductStatus.DRAFT)
    alpha_id, beta_id, draft_id = alpha.id, beta.id, draft.id

    viewers = [await make_user() for _ in range(2)]
    for viewer in viewers:
        headers = auth_headers(viewer, **browser_headers)
        for product_id in (alpha_id, beta_id, draft_id):
            await client.post(f"/api/views/product/{product_id}", headers=headers)
    await client.post(
        f"/api/views/product/{alpha_id}", json={"client_id": "anon"}, headers=browser_headers
    )

    popular = await client.get("/api/views/popular", params={"period": "nonsense", "limit": 99})
    names = [item["name"] for item in popular.json()["data"]]
    assert names == ["Alpha", "Beta"]
    assert popular.json()["data"][0]["views"] == 3

    related = await client.get(f"/api/views/related/{alpha_id}")
    data = related.json()["data"]
    assert data["meta"]["source"] == "co-view"
    assert [p["id"] for p in data["products"]] == [beta_id]
    assert data["products"][0]["co_view_strength"] == 2


async def test_related_without_viewers(client, make_user, make_product):
    product = await make_product(await make_user(role=UserRole.MAKER))
    response = await client.get(f"/api/views/related/{product.id}")
    assert response.json()["data"] == {"products": [], "meta": {"source": "co-view-empty"}}


async def test_product_stats_and_devices(
    client, make_user, make_product, browser_headers, auth_headers
):
    maker = await make_user(role=UserRole.MAKER)
    product = await make_product(maker)
    product_id = product.id
    for n in range(3):
        await client.post(
            f"/api/views/product/{product_id}",
            json={"client_id": f"c{n}", "view_duration": 40},
            headers={**browser_headers, "cf-ipcountry": "IN"},
        )

    stats = await client.get(f"/api/views/product/{product_id}/stats")
    assert stats.status_code == 200
    payload = stats.json()["data"]
    assert payload["product"]["view_count"] == 3
    assert payload["stats"]["totals"]["total_views"] == 3
    assert payload["stats"]["countries"] == [{"country": "IN", "count": 3}]
    assert len(payload["stats"]["hourly"]) == 24
    assert payload["engagement"]["average_view_duration"] == 40
    assert payload["insights"]["summary"] == [
        "Not enough data to generate meaningful insights yet."
    ]

    devices = await client.get(f"/api/views/product/{product_id}/devices")
    assert devices.json()["data"]["devices"] == [{"device": "desktop", "count": 3}]
    assert devices.json()["data"]["browsers"] == [{"browser": "Chrome", "count": 3}]


async def test_draft_stats_are_private(client, make_user, make_product, auth_headers):
    maker = await make_user(role=UserRole.MAKER)
    product = await make_product(maker, status=ProductStatus.DRAFT)
    product_id, maker_headers = product.id, auth_headers(maker)

    assert (await client.get(f"/api/views/product/{product_id}/stats")).status_code == 403
    owner = await client.get(f"/api/views/product/{product_id}/stats", headers=maker_headers)
    assert owner.status_code == 200


async def test_history_and_engagement(
    client, make_user, make_product, browser_headers, auth_headers
):
    maker = await make_user(role=UserRole.MAKER)
    product = await make_product(maker, category="Design")
    viewer = await make_user()
    other = await make_user()
    headers = auth_headers(viewer, **browser_headers)
    viewer_id, other_headers = viewer.id, auth_headers(other)

    await client.post(f"/api/views/product/{product.id}", headers=headers)

    history = await client.get("/api/views/history", headers=headers)
    body = history.json()["data"]
    assert body["pagination"] == {"page": 1, "limit": 10, "total": 1, "pages": 1}
    assert body["history"][0]["product"]["name"] == "Launch Kit"

    engagement = await client.get("/api/views/engagement", headers=headers)
    summary = engagement.json()["data"]["summary"]
    assert summary["total_views"] == 1
    assert summary["unique_products_viewed"] == 1
    assert engagement.json()["data"]["top_categories"] == [{"category": "Design", "count": 1}]

    forbidden = await client.get(f"/api/views/user/{viewer_id}/engagement", headers=other_headers)
    assert forbidden.status_code == 403

    cleared = await client.delete("/api/views/history", headers=headers)
    assert cleared.json()["data"] == {"deleted": 1}
    empty = await client.get("/api/views/history", headers=headers)
    assert empty.json()["data"]["history"] == []


async def test_daily_analytics_requires_admin(
    client, make_user, make_product, browser_headers, auth_headers
):
    admin = await make_user(role=UserRole.ADMIN)
    regular = await make_user()
    product = await make_product(await make_user(role=UserRole.MAKER))
    admin_headers, regular_headers = auth_headers(admin), auth_headers(regular)
    await client.post(
        f"/api/views/product/{product.id}", json={"client_id": "c1"}, headers=browser_headers
    )

    today = date.today()
    params = {
        "start_date": (today - timedelta(days=1)).isoformat(),
        "end_date": (today + timedelta(days=1)).isoformat(),
    }
    assert (await client.get("/api/views/analytics/daily", params=params, headers=regular_headers)).status_code == 403

    response = await client.get("/api/views/analytics/daily", params=params, headers=admin_headers)
    assert response.status_code == 200
    days = response.json()["data"]
    assert sum(day["total_views"] for day in days) == 1
    assert sum(day["device_breakdown"].get("desktop", 0) for day in days) == 1

    missing = await client.get("/api/views/analytics/daily", headers=admin_headers)
    assert missing.status_code == 400
    backwards = await client.get(
        "/api/views/analytics/daily",
        params={"start_date": params["end_date"], "end_date": params["start_date"]},
        headers=admin_headers,
    )
    assert backwards.status_code == 400
