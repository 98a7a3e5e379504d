"""Tests for view counter sync, history buckets and retention."""

from datetime import date, timedelta

from sqlalchemy import func, select

from productbazar.models import Product, UserRole, View
from productbazar.models.base import utcnow
from productbazar.models.product import VIEW_HISTORY_LIMIT
from productbazar.realtime.pubsub import set_redis
from productbazar.services.view_service import ViewService


def _view(product_id, **fields) -> View:
    return View(product_id=product_id, is_bot=False, **fields)


async def test_sync_recomputes_counters(db_session, make_user, make_product):
    maker = await make_user(role=UserRole.MAKER)
    alice, bob = await make_user(), await make_user()
    today = utcnow().date().isoformat()
    product = await make_product(maker, view_history=[{"date": today, "count": 99}])
    db_session.add_all(
        [
            _view(product.id, user_id=alice.id),
            _view(product.id, user_id=alice.id, client_id="c-alice"),
            _view(product.id, user_id=bob.id),
            _view(product.id, client_id="c1"),
            _view(product.id, client_id="c1"),
            _view(product.id, ip="198.51.100.1"),
            _view(product.id, ip="198.51.100.1"),
            _view(product.id, ip="198.51.100.2"),
            View(product_id=product.id, is_bot=True, ip="66.249.66.1"),
        ]
    )
    await db_session.commit()

    result = await ViewService(db_session).sync_views_with_product(product.id)

    # 2 users + 1 client id + 2 bare IPs
    assert result == {"total_count": 8, "unique_count": 5, "updated": True, "skipped": False}
    assert product.view_count == 8
    assert product.unique_view_count == 5
    assert product.view_history == [{"date": today, "count": 8}]
    assert product.views_synced_at is not None


async def test_sync_is_debounced(db_session, make_user, make_product):
    product = await make_product(await make_user(role=UserRole.MAKER))
    db_session.add(_view(product.id, client_id="c1"))
    await db_session.commit()
    service = ViewService(db_session)

    assert (await service.sync_views_with_product(product.id))["skipped"] is False
    assert await service.sync_views_with_product(product.id) == {"skipped": True, "updated": False}

    forced = await service.sync_views_with_product(product.id, force=True)
    assert forced["skipped"] is False
    assert forced["updated"] is False

    product.views_synced_at = utcnow() - timedelta(seconds=11)
    await db_session.flush()
    assert (await service.sync_views_with_product(product.id))["skipped"] is False


def test_view_history_is_capped_newest_first():
    product = Product(name="Capped", slug="capped", maker_id=1, view_history=[])
    start = date(2024, 1, 1)
    for offset in range(VIEW_HISTORY_LIMIT + 5):
        product.bump_history((start + timedelta(days=offset)).isoformat())

    assert len(product.view_history) == VIEW_HISTORY_LIMIT == 90
    newest = (start + timedelta(days=VIEW_HISTORY_LIMIT + 4)).isoformat()
    assert product.view_history[0] == {"date": newest, "count": 1}

    product.bump_history(newest, by=2)
    assert product.view_history[0]["count"] == 3
    product.set_history(newest, 7)
    assert product.view_history[0] == {"date": newest, "count": 7}
    assert len(product.view_history) == VIEW_HISTORY_LIMIT


async def test_purge_old_views(db_session, make_user, make_product):
    product = await make_product(await make_user(role=UserRole.MAKER))
    now = utcnow()
    db_session.add_all(
        [
            _view(product.id, ip="198.51.100.1", created_at=now - timedelta(days=61)),
            _view(product.id, ip="198.51.100.2", created_at=now - timedelta(days=59)),
            _view(product.id, ip="198.51.100.3"),
        ]
    )
    await db_session.commit()

    assert await ViewService(db_session).purge_old_views() == 1
    remaining = (
        await db_session.execute(select(func.count(View.id)).where(View.product_id == product.id))
    ).scalar_one()
    assert remaining == 2


async def test_views_are_recorded_without_redis(client, make_user, make_product, browser_headers):
    product = await make_product(await make_user(role=UserRole.MAKER))
    product_id = product.id
    set_redis(None)

    recorded = await client.post(
        f"/api/views/product/{product_id}",
        json={"client_id": "client-1", "session_id": "s1"},
        headers=browser_headers,
    )
    assert recorded.status_code == 201
    assert recorded.json()["data"]["product_views"] == {"count": 1, "unique": 1}

    duration = await client.post(
        f"/api/views/product/{product_id}/duration",
        json={"session_id": "s1", "view_duration": 15},
        headers=browser_headers,
    )
    assert duration.status_code == 200
    assert duration.json()["status"] == "success"
    assert duration.json()["data"] == {"view_duration": 15, "created": False}
