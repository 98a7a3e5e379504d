"""Tests for the job board, applications and product endpoints."""

from datetime import timedelta

from productbazar.models import JobStatus, UserRole
from productbazar.models.base import utcnow
from productbazar.models.job import LocationType

JOB_PAYLOAD = {
    "title": "Platform Engineer",
    "company": {"name": "Orbit Labs"},
    "location": "Berlin",
    "location_type": "Hybrid",
    "description": "Own our deployment platform.",
    "skills": ["Kubernetes", "Python"],
    "salary_min": 60000,
    "salary_max": 90000,
}


async def test_create_job(client, make_user, auth_headers):
    poster = await make_user(role=UserRole.MAKER)
    response = await client.post("/api/v1/jobs", json=JOB_PAYLOAD, headers=auth_headers(poster))
    assert response.status_code == 201
    job = response.json()["data"]
    assert job["slug"].startswith("platform-engineer-")
    assert job["status"] == "Published"
    assert job["expires_at"] is not None
    assert job["salary_range"] == "USD 60,000 - 90,000"
    assert job["company"]["name"] == "Orbit Labs"


async def test_create_job_requires_capability(client, make_user, auth_headers):
    seeker = await make_user(role=UserRole.JOBSEEKER)
    response = await client.post("/api/v1/jobs", json=JOB_PAYLOAD, headers=auth_headers(seeker))
    assert response.status_code == 403
    assert response.json()["code"] == "CAPABILITY_REQUIRED"


async def test_create_job_rejects_inverted_salary(client, make_user, auth_headers):
    poster = await make_user(role=UserRole.AGENCY)
    payload = {**JOB_PAYLOAD, "salary_min": 100000, "salary_max": 50000}
    response = await client.post("/api/v1/jobs", json=payload, headers=auth_headers(poster))
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_FAILED"


async def test_list_jobs_with_filters(client, make_user, make_job):
    poster = await make_user(role=UserRole.MAKER)
    await make_job(poster, title="Backend Engineer", location_type=LocationType.REMOTE)
    await make_job(poster, title="Frontend Developer", skills=["React", "TypeScript"])
    await make_job(poster, title="Secret Role", status=JobStatus.DRAFT)
    await make_job(poster, title="Old Role", expires_at=utcnow() - timedelta(days=1))

    everything = (await client.get("/api/v1/jobs")).json()["data"]
    assert everything["total"] == 2
    assert everything["current_page"] == 1
    assert everything["total_pages"] == 1

    by_skill = (await client.get("/api/v1/jobs", params={"skills": "react,go"})).json()["data"]
    assert [job["title"] for job in by_skill["results"]] == ["Frontend Developer"]

    by_text = (await client.get("/api/v1/jobs", params={"search": "backend"})).json()["data"]
    assert [job["title"] for job in by_text["results"]] == ["Backend Engineer"]

    remote = (await client.get("/api/v1/jobs", params={"location_type": "Remote"})).json()["data"]
    assert [job["title"] for job in remote["results"]] == ["Backend Engineer"]

    by_company = (await client.get("/api/v1/jobs", params={"company": "acme"})).json()["data"]
    assert by_company["total"] == 2


async def test_get_job_counts_views(client, make_user, make_job):
    job = await make_job(await make_user(role=UserRole.MAKER))
    slug, job_id = job.slug, job.id

    await client.get(f"/api/v1/jobs/{slug}")
    response = await client.get(f"/api/v1/jobs/{job_id}")
    assert response.status_code == 200
    assert response.json()["data"]["views"] == 2


async def test_draft_job_is_private(client, make_user, make_job, auth_headers):
    poster = await make_user(role=UserRole.MAKER)
    job = await make_job(poster, status=JobStatus.DRAFT)
    job_id, headers = job.id, auth_headers(poster)

    assert (await client.get(f"/api/v1/jobs/{job_id}")).status_code == 404
    assert (await client.get(f"/api/v1/jobs/{job_id}", headers=headers)).status_code == 200


async def test_update_and_delete_job(client, make_user, make_job, auth_headers):
    poster = await make_user(role=UserRole.MAKER)
    stranger = await make_user(role=UserRole.MAKER)
    job = await make_job(poster)
    job_id = job.id
    poster_headers, stranger_headers = auth_headers(poster), auth_headers(stranger)

    forbidden = await client.patch(
        f"/api/v1/jobs/{job_id}", json={"title": "Hijacked"}, headers=stranger_headers
    )
    assert forbidden.status_code == 403

    blank = await client.patch(f"/api/v1/jobs/{job_id}", json={"title": " "}, headers=poster_headers)
    assert blank.status_code == 400

    updated = await client.patch(
        f"/api/v1/jobs/{job_id}", json={"title": "Staff Engineer", "featured": True}, headers=poster_headers
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["title"] == "Staff Engineer"
    assert updated.json()["data"]["featured"] is True

    posted = await client.get("/api/v1/jobs/user/posted", headers=poster_headers)
    assert [item["id"] for item in posted.json()["data"]] == [job_id]

    deleted = await client.delete(f"/api/v1/jobs/{job_id}", headers=poster_headers)
    assert deleted.status_code == 204
    assert (await client.get(f"/api/v1/jobs/{job_id}")).status_code == 404


async def test_apply_to_job(client, make_user, make_job, auth_headers):
    poster = await make_user(role=UserRole.MAKER)
    seeker = await make_user(role=UserRole.JOBSEEKER)
    job = await make_job(poster)
    job_id, seeker_headers = job.id, auth_headers(seeker)

    response = await client.post(
        f"/api/v1/jobs/{job_id}/apply",
        json={
            "cover_letter": "I would love to help.",
            "answers": [{"question": "Start date?", "answer": "Next month"}],
        },
        headers=seeker_headers,
    )
    assert response.status_code == 201
    application = response.json()["data"]
    assert application["status"] == "Pending"
    assert application["job"]["id"] == job_id
    assert application["answers"] == [{"question": "Start date?", "answer": "Next month"}]

    again = await client.post(f"/api/v1/jobs/{job_id}/apply", json={}, headers=seeker_headers)
    assert again.status_code == 400
    assert again.json()["code"] == "ALREADY_APPLIED"

    job_view = await client.get(f"/api/v1/jobs/{job_id}")
    assert job_view.json()["data"]["applications_count"] == 1


async def test_apply_requires_open_job_and_capability(client, make_user, make_job, auth_headers):
    poster = await make_user(role=UserRole.MAKER)
    seeker = await make_user(role=UserRole.JOBSEEKER)
    closed = await make_job(poster, status=JobStatus.CLOSED)
    open_job = await make_job(poster)
    closed_id, open_id = closed.id, open_job.id
    seeker_headers, poster_headers = auth_headers(seeker), auth_headers(poster)

    response = await client.post(f"/api/v1/jobs/{closed_id}/apply", json={}, headers=seeker_headers)
    assert response.json()["code"] == "JOB_CLOSED"

    response = await client.post(f"/api/v1/jobs/{open_id}/apply", json={}, headers=poster_headers)
    assert response.status_code == 403

    response = await client.post("/api/v1/jobs/999/apply", json={}, headers=seeker_headers)
    assert response.status_code == 404


async def test_review_and_withdraw(client, make_user, make_job, auth_headers):
    poster = await make_user(role=UserRole.MAKER)
    first = await make_user(role=UserRole.JOBSEEKER)
    second = await make_user(role=UserRole.JOBSEEKER)
    job = await make_job(poster)
    job_id = job.id
    poster_headers = auth_headers(poster)
    first_headers, second_headers = auth_headers(first), auth_headers(second)

    first_app = (await client.post(f"/api/v1/jobs/{job_id}/apply", json={}, headers=first_headers)).json()["data"]
    second_app = (await client.post(f"/api/v1/jobs/{job_id}/apply", json={}, headers=second_headers)).json()["data"]

    listing = await client.get(f"/api/v1/jobs/{job_id}/applications", headers=poster_headers)
    assert {a["id"] for a in listing.json()["data"]} == {first_app["id"], second_app["id"]}
    assert (await client.get(f"/api/v1/jobs/{job_id}/applications", headers=first_headers)).status_code == 403

    reviewed = await client.patch(
        f"/api/v1/jobs/{job_id}/applications/{first_app['id']}",
        json={"status": "Shortlisted", "notes": "Strong portfolio", "rating": 4},
        headers=poster_headers,
    )
    assert reviewed.status_code == 200
    assert reviewed.json()["data"]["status"] == "Shortlisted"
    assert reviewed.json()["data"]["rating"] == 4

    # Only the applicant, poster or an admin may read an application
    seen = await client.get(f"/api/v1/jobs/applications/{first_app['id']}", headers=poster_headers)
    assert seen.status_code == 200
    hidden = await client.get(f"/api/v1/jobs/applications/{first_app['id']}", headers=second_headers)
    assert hidden.status_code == 403

    blocked = await client.patch(
        f"/api/v1/jobs/applications/{first_app['id']}/withdraw", headers=first_headers
    )
    assert blocked.status_code == 400
    assert blocked.json()["code"] == "NOT_WITHDRAWABLE"

    withdrawn = await client.patch(
        f"/api/v1/jobs/applications/{second_app['id']}/withdraw", headers=second_headers
    )
    assert withdrawn.status_code == 200
    assert withdrawn.json()["data"]["status"] == "Withdrawn"


async def test_my_applications_with_status_counts(client, make_user, make_job, auth_headers):
    poster = await make_user(role=UserRole.MAKER)
    seeker = await make_user(role=UserRole.JOBSEEKER)
    jobs = [await make_job(poster, title=f"Role {n}") for n in range(3)]
    job_ids = [job.id for job in jobs]
    headers = auth_headers(seeker)
    for job_id in job_ids:
        await client.post(f"/api/v1/jobs/{job_id}/apply", json={}, headers=headers)
    mine = (await client.get("/api/v1/jobs/user/applications", headers=headers)).json()["data"]
    await client.patch(f"/api/v1/jobs/applications/{mine['applications'][0]['id']}/withdraw", headers=headers)

    response = await client.get("/api/v1/jobs/user/applications", headers=headers)
    data = response.json()["data"]
    assert data["pagination"]["total"] == 3
    assert data["status_counts"]["Pending"] == 2
    assert data["status_counts"]["Withdrawn"] == 1
    assert data["status_counts"]["All"] == 3

    pending = await client.get(
        "/api/v1/jobs/user/applications", params={"status": "Pending"}, headers=headers
    )
    assert len(pending.json()["data"]["applications"]) == 2


async def test_product_lifecycle(client, make_user, auth_headers):
    maker = await make_user(role=UserRole.STARTUP_OWNER)
    viewer = await make_user()
    maker_headers, viewer_headers = auth_headers(maker), auth_headers(viewer)

    denied = await client.post("/api/v1/products", json={"name": "Nope"}, headers=viewer_headers)
    assert denied.status_code == 403

    created = await client.post(
        "/api/v1/products",
        json={"name": "Ship It", "tagline": "Deploy in one click", "category": "DevTools"},
        headers=maker_headers,
    )
    assert created.status_code == 201
    product = created.json()["data"]
    assert product["status"] == "Draft"
    assert product["slug"] == "ship-it"

    duplicate = await client.post("/api/v1/products", json={"name": "Ship It"}, headers=maker_headers)
    assert duplicate.json()["data"]["slug"] == "ship-it-1"

    assert (await client.get("/api/v1/products/ship-it")).status_code == 404
    assert (await client.get("/api/v1/products/ship-it", headers=maker_headers)).status_code == 200
    assert (await client.get("/api/v1/products")).json()["data"]["products"] == []

    forbidden = await client.patch(
        f"/api/v1/products/{product['id']}/status", json={"status": "Published"}, headers=viewer_headers
    )
    assert forbidden.status_code == 403

    published = await client.patch(
        f"/api/v1/products/{product['id']}/status", json={"status": "Published"}, headers=maker_headers
    )
    assert published.json()["data"]["status"] == "Published"

    listing = (await client.get("/api/v1/products")).json()["data"]
    assert [p["slug"] for p in listing["products"]] == ["ship-it"]
    assert listing["pagination"]["total"] == 1
    assert (await client.get("/api/v1/products/ship-it")).status_code == 200


async def test_numeric_product_slug(client, make_user, make_product):
    maker = await make_user(role=UserRole.STARTUP_OWNER)
    puzzle = await make_product(maker, name="2048", slug="2048")
    by_id = await make_product(maker, name="Other")
    puzzle_id, other_id = puzzle.id, by_id.id

    response = await client.get("/api/v1/products/2048")
    assert response.status_code == 200
    assert response.json()["data"]["id"] == puzzle_id

    response = await client.get(f"/api/v1/products/{other_id}")
    assert response.json()["data"]["name"] == "Other"
