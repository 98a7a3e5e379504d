"""Tests for global search."""

import pytest

from productbazar.models import ProductStatus, UserRole
from productbazar.models.search import SearchHistory, SearchType
from productbazar.services.cache_service import search_key
from productbazar.services.search_service import SearchService


@pytest.mark.parametrize(
    "name,tagline,featured,expected",
    [
        ("Launch", None, False, 15),
        ("launch", "Launch day", True, 20),
        ("Launch Kit", None, False, 8),
        ("Rocket", "Helps you launch", False, 3),
    ],
)
async def test_relevance_scores(db_session, make_user, make_product, name, tagline, featured, expected):
    maker = await make_user(role=UserRole.MAKER)
    await make_product(maker, name=name, tagline=tagline, description=None, featured=featured)

    result = await SearchService(db_session).search("Launch", SearchType.PRODUCTS)
    assert [item["score"] for item in result["results"]["products"]["items"]] == [expected]


async def test_exact_match_wins_over_many_partial_matches(db_session, make_user, make_product):
    maker = await make_user(role=UserRole.MAKER)
    await make_product(maker, name="Nova", tagline=None, description=None)
    for n in range(12):
        await make_product(maker, name=f"Nova Tool {n}", tagline=None, description=None)

    result = await SearchService(db_session).search("nova", SearchType.PRODUCTS, limit=5)
    products = result["results"]["products"]
    assert products["total"] == 13
    assert len(products["items"]) == 5
    assert products["items"][0]["name"] == "Nova"
    assert [item["name"] for item in products["items"][1:3]] == ["Nova Tool 11", "Nova Tool 10"]


async def test_empty_query_returns_empty_groups(db_session):
    result = await SearchService(db_session).search("   ", SearchType.PRODUCTS)
    assert result["query"] == ""
    assert result["type"] == "products"
    assert result["total"] == 0
    assert result["results"]["users"] == {"items": [], "total": 0}


async def test_search_ranks_by_relevance(client, make_user, make_product, make_job, fake_redis):
    maker = await make_user(role=UserRole.MAKER)
    await make_product(maker, name="Launch Kit")
    await make_product(maker, name="Launch")
    await make_product(maker, name="Launch Draft", status=ProductStatus.DRAFT)
    await make_job(maker, title="Launch Engineer")

    response = await client.get("/api/v1/search", params={"q": "launch"})
    assert response.status_code == 200
    data = response.json()["data"]
    products = data["results"]["products"]
    assert [item["name"] for item in products["items"]] == ["Launch", "Launch Kit"]
    assert products["items"][0]["score"] == 18
    assert data["results"]["jobs"]["items"][0]["title"] == "Launch Engineer"
    assert data["results"]["jobs"]["items"][0]["company"] == "Acme"
    assert data["total"] == 3
    assert search_key("all", "launch", 1, 10) in fake_redis.store


async def test_search_by_type_and_page(client, make_user, make_product):
    maker = await make_user(role=UserRole.MAKER)
    for name in ("Orbit One", "Orbit Two", "Orbit Three"):
        await make_product(maker, name=name)

    response = await client.get(
        "/api/v1/search", params={"q": "orbit", "type": "products", "page": 2, "limit": 2}
    )
    data = response.json()["data"]
    assert data["results"]["products"]["total"] == 3
    assert len(data["results"]["products"]["items"]) == 1
    assert data["results"]["jobs"] == {"items": [], "total": 0}


async def test_search_users(client, make_user):
    await make_user(username="gracehopper", headline="Compiler pioneer")
    response = await client.get("/api/v1/search", params={"q": "compiler", "type": "users"})
    items = response.json()["data"]["results"]["users"]["items"]
    assert [item["username"] for item in items] == ["gracehopper"]
    assert items[0]["score"] == 3


async def test_search_records_history(client, make_user, auth_headers, db_session):
    user = await make_user()
    headers = auth_headers(user)

    await client.get("/api/v1/search", params={"q": "Widgets"}, headers=headers)
    await client.get("/api/v1/search", params={"q": "widgets "}, headers=headers)

    history = await client.get("/api/v1/search/history", headers=headers)
    entries = history.json()["data"]
    assert len(entries) == 1
    assert entries[0]["query"] == "widgets"
    assert entries[0]["count"] == 2
    assert entries[0]["type"] == "all"

    cleared = await client.delete("/api/v1/search/history", headers=headers)
    assert cleared.json()["data"] == {"deleted": 1}
    assert (await client.get("/api/v1/search/history", headers=headers)).json()["data"] == []


async def test_anonymous_search_has_no_history(client, db_session):
    await client.get("/api/v1/search", params={"q": "widgets"})
    assert await db_session.get(SearchHistory, 1) is None


async def test_history_requires_login(client):
    assert (await client.get("/api/v1/search/history")).status_code == 401


async def test_suggestions(client, make_user, make_product, make_job, auth_headers, db_session):
    maker = await make_user(role=UserRole.MAKER, username="launchpad")
    await make_product(maker, name="Launch Kit")
    await make_job(maker, title="Launch Engineer")
    headers = auth_headers(maker)
    service = SearchService(db_session)
    await service.record_history(maker.id, "launch plans", SearchType.ALL)
    await db_session.commit()

    response = await client.get("/api/v1/search/suggestions", params={"q": "lau"}, headers=headers)
    suggestions = response.json()["data"]
    assert suggestions[0] == {"text": "launch plans", "type": "history"}
    assert {"text": "Launch Kit", "type": "product"} in suggestions
    assert {"text": "Launch Engineer", "type": "job"} in suggestions
    assert {"text": "launchpad", "type": "user"} in suggestions

    only_jobs = await client.get("/api/v1/search/suggestions", params={"q": "lau", "type": "jobs"})
    assert only_jobs.json()["data"] == [{"text": "Launch Engineer", "type": "job"}]


async def test_suggestions_need_two_characters(db_session):
    assert await SearchService(db_session).suggestions("l") == []
