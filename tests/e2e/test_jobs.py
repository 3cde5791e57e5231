"""
E2E tests for the job board and the job lifecycle.

Covers:
- Posting and browsing with filters and sorting
- open -> in-progress -> completed with actor guards
- One review per completed job, reflected in the worker's rating
- Favorites
- Email notifications to the poster
"""

from __future__ import annotations

import uuid

import pytest
from httpx import AsyncClient

from src.services.notificationService import NotificationKind
from tests.e2e.conftest import accept_job_via_api, create_job_via_api

pytestmark = pytest.mark.asyncio


class TestPostAndBrowse:

    async def test_create_job(self, client: AsyncClient, alice):
        job = await create_job_via_api(
            client, alice, description="Needs a reinstall", expectedDuration="1-2 hours"
        )

        assert job["title"] == "Fix my laptop"
        assert job["paymentAmount"] == 500
        assert job["category"] == "tech"
        assert job["expectedDuration"] == "1-2 hours"
        assert job["status"] == "open"
        assert job["postedBy"]["id"] == str(alice.id)
        assert job["acceptedBy"] is None
        assert job["workerRating"] is None

    async def test_title_and_price_required(self, client: AsyncClient, alice):
        resp = await client.post("/api/jobs", json={"title": "x"}, headers=alice.headers)
        assert resp.status_code == 400
        assert resp.json()["message"] == "Title and price required"

    async def test_invalid_category(self, client: AsyncClient, alice):
        resp = await client.post(
            "/api/jobs",
            json={"title": "x", "price": 10, "category": "gardening"},
            headers=alice.headers,
        )
        assert resp.status_code == 400
        assert "Invalid category" in resp.json()["message"]

    async def test_board_is_public_and_filterable(self, client: AsyncClient, alice):
        await create_job_via_api(client, alice, title="Laptop fix", price=500, category="tech")
        await create_job_via_api(client, alice, title="Deliver notes", price=100, category="delivery")
        await create_job_via_api(client, alice, title="Logo design", price=900, category="design")

        everything = await client.get("/api/jobs")
        assert everything.status_code == 200
        assert len(everything.json()["data"]) == 3

        tech = await client.get("/api/jobs", params={"category": "tech"})
        assert [j["title"] for j in tech.json()["data"]] == ["Laptop fix"]

        cheap_first = await client.get("/api/jobs", params={"sortBy": "price-low"})
        assert [j["paymentAmount"] for j in cheap_first.json()["data"]] == [100, 500, 900]

        ranged = await client.get("/api/jobs", params={"minPrice": 200, "maxPrice": 600})
        assert [j["title"] for j in ranged.json()["data"]] == ["Laptop fix"]

        search = await client.get("/api/jobs", params={"search": "NOTES"})
        assert [j["title"] for j in search.json()["data"]] == ["Deliver notes"]

    async def test_board_hides_accepted_jobs(self, client: AsyncClient, alice, bob):
        job = await create_job_via_api(client, alice)
        await accept_job_via_api(client, bob, job["id"])

        resp = await client.get("/api/jobs")
        assert resp.json()["data"] == []

    async def test_job_detail(self, client: AsyncClient, alice):
        job = await create_job_via_api(client, alice)
        resp = await client.get(f"/api/jobs/{job['id']}")
        assert resp.status_code == 200
        assert resp.json()["data"]["id"] == job["id"]

        missing = await client.get(f"/api/jobs/{uuid.uuid4()}")
        assert missing.status_code == 404


class TestLifecycle:

    async def test_full_lifecycle(self, client: AsyncClient, alice, bob, notifier):
        """Alice posts, Bob accepts and completes, Alice rates Bob 4."""
        job = await create_job_via_api(client, alice, price=500, category="tech")

        accepted = await accept_job_via_api(client, bob, job["id"])
        assert accepted["status"] == "in-progress"
        assert accepted["acceptedBy"]["id"] == str(bob.id)

        resp = await client.post(f"/api/jobs/{job['id']}/complete", headers=bob.headers)
        assert resp.status_code == 200, resp.text
        assert resp.json()["data"]["status"] == "completed"

        resp = await client.post(
            f"/api/jobs/{job['id']}/review", json={"rating": 4}, headers=alice.headers
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["data"]["workerRating"] == 4

        profile = await client.get(f"/api/profile/{bob.id}")
        data = profile.json()["data"]
        assert data["user"]["rating"] == 4.0
        assert data["user"]["ratingCount"] == 1
        assert data["stats"]["jobsCompleted"] == 1
        assert data["stats"]["averageRating"] == 4.0

        mine = (await client.get("/api/jobs/my", headers=alice.headers)).json()["data"]
        assert [j["id"] for j in mine["posted"]] == [job["id"]]
        assert mine["accepted"] == []
        theirs = (await client.get("/api/jobs/my", headers=bob.headers)).json()["data"]
        assert [j["id"] for j in theirs["accepted"]] == [job["id"]]

        assert [n.to for n in notifier.of_kind(NotificationKind.JOB_ACCEPTED)] == [alice.email]
        assert [n.to for n in notifier.of_kind(NotificationKind.JOB_COMPLETED)] == [alice.email]

    async def test_running_average_over_two_reviews(self, client: AsyncClient, alice, bob):
        for rating in (5, 2):
            job = await create_job_via_api(client, alice)
            await accept_job_via_api(client, bob, job["id"])
            await client.post(f"/api/jobs/{job['id']}/complete", headers=bob.headers)
            await client.post(
                f"/api/jobs/{job['id']}/review", json={"rating": rating}, headers=alice.headers
            )

        data = (await client.get(f"/api/profile/{bob.id}")).json()["data"]
        assert data["user"]["ratingCount"] == 2
        assert data["stats"]["averageRating"] == 3.5


class TestGuards:

    async def test_poster_cannot_accept_own_job(self, client: AsyncClient, alice):
        job = await create_job_via_api(client, alice)
        resp = await client.post(f"/api/jobs/{job['id']}/accept", headers=alice.headers)
        assert resp.status_code == 400
        assert resp.json()["message"] == "Cannot accept your own job"

    async def test_second_accept_rejected(self, client: AsyncClient, alice, bob, carol):
        job = await create_job_via_api(client, alice)
        await accept_job_via_api(client, bob, job["id"])

        resp = await client.post(f"/api/jobs/{job['id']}/accept", headers=carol.headers)
        assert resp.status_code == 400
        assert resp.json()["message"] == "Job is no longer available"

    async def test_only_worker_completes(self, client: AsyncClient, alice, bob, carol):
        job = await create_job_via_api(client, alice)
        await accept_job_via_api(client, bob, job["id"])

        for actor in (alice, carol):
            resp = await client.post(f"/api/jobs/{job['id']}/complete", headers=actor.headers)
            assert resp.status_code == 403

    async def test_cannot_complete_open_job(self, client: AsyncClient, alice, bob):
        job = await create_job_via_api(client, alice)
        resp = await client.post(f"/api/jobs/{job['id']}/complete", headers=bob.headers)
        assert resp.status_code == 403

    async def test_review_rules(self, client: AsyncClient, alice, bob):
        job = await create_job_via_api(client, alice)
        await accept_job_via_api(client, bob, job["id"])
        url = f"/api/jobs/{job['id']}/review"

        early = await client.post(url, json={"rating": 5}, headers=alice.headers)
        assert early.status_code == 400

        await client.post(f"/api/jobs/{job['id']}/complete", headers=bob.headers)

        by_worker = await client.post(url, json={"rating": 5}, headers=bob.headers)
        assert by_worker.status_code == 403

        out_of_range = await client.post(url, json={"rating": 6}, headers=alice.headers)
        assert out_of_range.status_code == 400

        ok = await client.post(url, json={"rating": 5}, headers=alice.headers)
        assert ok.status_code == 200

        twice = await client.post(url, json={"rating": 1}, headers=alice.headers)
        assert twice.status_code == 400
        assert twice.json()["message"] == "Job already reviewed"

    async def test_delete_rules(self, client: AsyncClient, alice, bob):
        job = await create_job_via_api(client, alice)

        not_owner = await client.delete(f"/api/jobs/{job['id']}", headers=bob.headers)
        assert not_owner.status_code == 403

        await accept_job_via_api(client, bob, job["id"])
        not_open = await client.delete(f"/api/jobs/{job['id']}", headers=alice.headers)
        assert not_open.status_code == 400

        other = await create_job_via_api(client, alice, title="Another")
        ok = await client.delete(f"/api/jobs/{other['id']}", headers=alice.headers)
        assert ok.status_code == 200
        assert ok.json()["message"] == "Job deleted"


class TestFavorites:

    async def test_toggle_and_list(self, client: AsyncClient, alice, bob):
        job = await create_job_via_api(client, alice)
        url = f"/api/jobs/{job['id']}/favorite"

        on = await client.post(url, headers=bob.headers)
        assert on.json()["data"] == {"isFavorite": True, "favorites": [job["id"]]}

        listed = await client.get("/api/jobs/favorites", headers=bob.headers)
        assert [j["id"] for j in listed.json()["data"]] == [job["id"]]

        off = await client.post(url, headers=bob.headers)
        assert off.json()["data"] == {"isFavorite": False, "favorites": []}

    async def test_favorite_unknown_job(self, client: AsyncClient, bob):
        resp = await client.post(f"/api/jobs/{uuid.uuid4()}/favorite", headers=bob.headers)
        assert resp.status_code == 404
