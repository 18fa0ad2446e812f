"""
End-to-end tests through the HTTP API.
"""
import pytest
from httpx import ASGITransport, AsyncClient

from teameval.core.auth import create_access_token
from teameval.database import get_db
from teameval.main import app
from teameval.models.user import Role

from conftest import assign_manager, make_users

PERIOD = {"year": 2025, "month": 3, "day": 14, "hour": 9}


@pytest.fixture
async def client(db):
    async def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def auth(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
async def people(db):
    members = await make_users(db, 4)
    admin = (await make_users(db, 1, role=Role.ADMIN, prefix="admin"))[0]
    manager = (await make_users(db, 1, role=Role.MANAGER, prefix="mgr"))[0]
    return members, admin, manager


async def _generate(client, admin):
    return await client.post("/teams/generate", json=PERIOD, headers=auth(admin))


async def _question(client, admin):
    response = await client.post(
        "/admin/questions", json={**PERIOD, "text": "How well did we work together?"}, headers=auth(admin)
    )
    assert response.status_code == 201
    return response.json()


class TestAuth:
    async def test_missing_token(self, client):
        response = await client.get("/results", params=PERIOD)
        assert response.status_code in (401, 403)

    async def test_garbage_token(self, client):
        response = await client.get(
            "/results", params=PERIOD, headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert response.status_code == 401

    async def test_members_cannot_generate(self, client, people):
        members, _, _ = people
        response = await _generate(client, members[0])
        assert response.status_code == 403


class TestGenerate:
    async def test_generate_and_skip(self, client, people):
        members, admin, manager = people
        response = await _generate(client, admin)
        assert response.status_code == 200
        body = response.json()
        assert body["period"] == "2025-03-14T09"
        # Every active user takes part, admins and managers included
        assert body["total_users"] == 6

        again = await _generate(client, admin)
        assert again.status_code == 409
        assert again.json()["skipped"] is True

    async def test_invalid_period(self, client, people):
        _, admin, _ = people
        response = await client.post(
            "/teams/generate", json={"year": 2025, "month": 2, "day": 30, "hour": 1}, headers=auth(admin)
        )
        assert response.status_code == 400

    async def test_my_team(self, client, people):
        members, admin, _ = people
        await _generate(client, admin)
        response = await client.get("/teams/me", params=PERIOD, headers=auth(members[0]))
        assert response.status_code == 200
        assert members[0].id in response.json()["member_ids"]

    async def test_my_team_before_generation(self, client, people):
        members, _, _ = people
        response = await client.get("/teams/me", params=PERIOD, headers=auth(members[0]))
        assert response.status_code == 404


class TestRatingsAndResults:
    async def test_rate_then_rank(self, client, people):
        members, admin, manager = people
        generated = (await _generate(client, admin)).json()
        question = await _question(client, admin)
        a, b = generated["teams"][0]["member_ids"][:2]
        # Six users in teams of four make one team of six
        everyone = {u.id: u for u in members + [admin, manager]}
        rater = everyone[a]

        response = await client.post(
            "/ratings",
            json={"question_id": question["id"], "subject_id": b, "source": "peer", "score": 5},
            headers=auth(rater),
        )
        assert response.status_code == 201
        assert response.json()["score"] == 5

        dup = await client.post(
            "/ratings",
            json={"question_id": question["id"], "subject_id": b, "source": "peer", "score": 3},
            headers=auth(rater),
        )
        assert dup.status_code == 409

        ranking = await client.get("/results", params=PERIOD, headers=auth(members[0]))
        assert ranking.status_code == 200
        body = ranking.json()
        assert body["cached"] is False
        assert body["winner"]["total_score"] == 2.5

        again = await client.get("/results", params=PERIOD, headers=auth(members[0]))
        assert again.json()["cached"] is True

    async def test_bad_score(self, client, people):
        members, admin, _ = people
        await _generate(client, admin)
        question = await _question(client, admin)
        rater = members[0]

        response = await client.post(
            "/ratings",
            json={"question_id": question["id"], "source": "self", "score": 9},
            headers=auth(rater),
        )
        assert response.status_code == 400

    async def test_member_cannot_submit_manager_rating(self, client, people):
        members, admin, _ = people
        await _generate(client, admin)
        question = await _question(client, admin)
        response = await client.post(
            "/ratings",
            json={"question_id": question["id"], "subject_id": members[1].id, "source": "manager", "score": 4},
            headers=auth(members[0]),
        )
        assert response.status_code == 403

    async def test_manager_rates_only_their_reports(self, client, db, people):
        members, admin, manager = people
        await _generate(client, admin)
        question = await _question(client, admin)
        await assign_manager(db, members[0].id, manager.id)

        allowed = await client.post(
            "/ratings",
            json={"question_id": question["id"], "subject_id": members[0].id, "source": "manager", "score": 4},
            headers=auth(manager),
        )
        assert allowed.status_code == 201

        refused = await client.post(
            "/ratings",
            json={"question_id": question["id"], "subject_id": members[1].id, "source": "manager", "score": 4},
            headers=auth(manager),
        )
        assert refused.status_code == 403

    async def test_unknown_question(self, client, people):
        members, admin, _ = people
        await _generate(client, admin)
        response = await client.post(
            "/ratings",
            json={"question_id": 999, "source": "self", "score": 3},
            headers=auth(members[0]),
        )
        assert response.status_code == 404

    async def test_recompute_requires_admin(self, client, people):
        members, admin, _ = people
        response = await client.post("/results/recompute", json=PERIOD, headers=auth(members[0]))
        assert response.status_code == 403

        response = await client.post("/results/recompute", json=PERIOD, headers=auth(admin))
        assert response.status_code == 200
        assert response.json()["ordered"] == []


class TestAdmin:
    async def test_questions_listed_for_period(self, client, people):
        members, admin, _ = people
        await _question(client, admin)
        response = await client.get("/questions", params=PERIOD, headers=auth(members[0]))
        assert response.status_code == 200
        assert len(response.json()) == 1

    async def test_self_management_refused(self, client, people):
        members, admin, _ = people
        response = await client.post(
            "/admin/managers",
            json={"user_id": members[0].id, "manager_id": members[0].id},
            headers=auth(admin),
        )
        assert response.status_code == 400

    async def test_duplicate_manager_assignment(self, client, people):
        members, admin, manager = people
        payload = {"user_id": members[0].id, "manager_id": manager.id}
        first = await client.post("/admin/managers", json=payload, headers=auth(admin))
        assert first.status_code == 201
        second = await client.post("/admin/managers", json=payload, headers=auth(admin))
        assert second.status_code == 409

    async def test_add_member_to_missing_team(self, client, people):
        members, admin, _ = people
        response = await client.post(
            "/admin/teams/999/members", json={"user_id": members[0].id}, headers=auth(admin)
        )
        assert response.status_code == 404

    async def test_add_member_twice_in_period(self, client, people):
        members, admin, _ = people
        generated = (await _generate(client, admin)).json()
        team_id = generated["teams"][0]["id"]
        already_placed = generated["teams"][0]["member_ids"][0]
        response = await client.post(
            f"/admin/teams/{team_id}/members", json={"user_id": already_placed}, headers=auth(admin)
        )
        assert response.status_code == 409

    async def test_remove_member(self, client, people):
        members, admin, _ = people
        generated = (await _generate(client, admin)).json()
        team_id = generated["teams"][0]["id"]
        leaving = generated["teams"][0]["member_ids"][0]

        response = await client.delete(f"/admin/teams/{team_id}/members/{leaving}", headers=auth(admin))
        assert response.status_code == 200
        assert leaving not in response.json()["member_ids"]
        assert len(response.json()["member_ids"]) == 5

        again = await client.delete(f"/admin/teams/{team_id}/members/{leaving}", headers=auth(admin))
        assert again.status_code == 404

    async def test_remove_member_unknown_team_or_user(self, client, people):
        members, admin, _ = people
        generated = (await _generate(client, admin)).json()
        team_id = generated["teams"][0]["id"]

        missing_team = await client.delete(f"/admin/teams/999/members/{members[0].id}", headers=auth(admin))
        assert missing_team.status_code == 404
        missing_user = await client.delete(f"/admin/teams/{team_id}/members/999", headers=auth(admin))
        assert missing_user.status_code == 404

    async def test_remove_member_requires_admin(self, client, people):
        members, admin, _ = people
        generated = (await _generate(client, admin)).json()
        team_id = generated["teams"][0]["id"]
        response = await client.delete(
            f"/admin/teams/{team_id}/members/{members[1].id}", headers=auth(members[0])
        )
        assert response.status_code == 403


# ---------------------------------------------------------------------------
# Team listing and admin dashboard
# ---------------------------------------------------------------------------
MONTH = {"year": PERIOD["year"], "month": PERIOD["month"]}


async def _rated_period(client, admin, everyone):
    generated = (await _generate(client, admin)).json()
    question = await _question(client, admin)
    a, b = generated["teams"][0]["member_ids"][:2]
    response = await client.post(
        "/ratings",
        json={"question_id": question["id"], "subject_id": b, "source": "peer", "score": 5},
        headers=auth(everyone[a]),
    )
    assert response.status_code == 201
    return generated, b


class TestTeamListing:
    async def test_teams_with_scores(self, client, people):
        members, admin, manager = people
        everyone = {u.id: u for u in members + [admin, manager]}
        generated, _ = await _rated_period(client, admin, everyone)

        response = await client.get("/teams", params=PERIOD, headers=auth(members[0]))
        assert response.status_code == 200
        body = response.json()
        assert body["period"] == "2025-03-14T09"
        assert len(body["teams"]) == 1
        team = body["teams"][0]
        assert team["team_id"] == generated["teams"][0]["id"]
        assert sorted(team["member_ids"]) == sorted(generated["teams"][0]["member_ids"])
        assert team["answer_count"] == 1
        assert body["winner"]["team_id"] == team["team_id"]

    async def test_listing_is_not_cached(self, client, people):
        members, admin, manager = people
        everyone = {u.id: u for u in members + [admin, manager]}
        await _rated_period(client, admin, everyone)

        await client.get("/teams", params=PERIOD, headers=auth(members[0]))
        ranking = await client.get("/results", params=PERIOD, headers=auth(members[0]))
        # /teams never wrote a snapshot, so the first /results call computes
        assert ranking.json()["cached"] is False

    async def test_default_period_without_teams(self, client, people):
        members, _, _ = people
        response = await client.get("/teams", headers=auth(members[0]))
        assert response.status_code == 200
        assert response.json()["teams"] == []
        assert response.json()["winner"] is None

    async def test_requires_login(self, client):
        response = await client.get("/teams", params=PERIOD)
        assert response.status_code in (401, 403)


class TestDashboard:
    async def test_full_dashboard(self, client, people):
        members, admin, manager = people
        everyone = {u.id: u for u in members + [admin, manager]}
        generated, subject = await _rated_period(client, admin, everyone)

        response = await client.get("/admin/dashboard", params=MONTH, headers=auth(admin))
        assert response.status_code == 200
        body = response.json()
        assert body["overview"] == {
            "total_users": 6,
            "total_teams": 1,
            "total_questions": 1,
            "overall_participation_rate": 16.67,
            "overall_average_score": 5.0,
        }
        rates = body["participation_rates"]
        assert len(rates) == 1
        assert rates[0]["submitted_answers"] == 1
        assert rates[0]["expected_answers"] == 6
        assert body["team_averages"][0]["average_score"] == 5.0
        assert [u["user_id"] for u in body["user_averages"]] == [subject]
        # One answer is below the three needed to rank a performer
        assert body["performers"]["top"] == []
        assert body["month_comparison"]["changes"]["total_teams"] == {"value": 1.0, "percentage": 100.0}
        assert body["winner"]["team_id"] == generated["teams"][0]["id"]

    async def test_sections_are_cached_until_refresh(self, client, people):
        members, admin, manager = people
        everyone = {u.id: u for u in members + [admin, manager]}
        await _rated_period(client, admin, everyone)

        first = await client.get("/admin/dashboard/participation", params=MONTH, headers=auth(admin))
        assert first.json()["cached"] is False
        second = await client.get("/admin/dashboard/participation", params=MONTH, headers=auth(admin))
        assert second.json()["cached"] is True
        assert second.json()["participation_rates"] == first.json()["participation_rates"]

        fresh = await client.get(
            "/admin/dashboard/participation", params={**MONTH, "refresh": True}, headers=auth(admin)
        )
        assert fresh.json()["cached"] is False

    async def test_each_section_is_served(self, client, people):
        _, admin, _ = people
        for section in ("participation", "team-averages", "user-averages", "performers", "month-comparison"):
            response = await client.get(f"/admin/dashboard/{section}", params=MONTH, headers=auth(admin))
            assert response.status_code == 200, section
            assert response.json()["month"] == 3

    async def test_month_without_year_is_rejected(self, client, people):
        _, admin, _ = people
        response = await client.get("/admin/dashboard", params={"month": 3}, headers=auth(admin))
        assert response.status_code == 400

    async def test_admin_only(self, client, people):
        members, _, _ = people
        response = await client.get("/admin/dashboard", params=MONTH, headers=auth(members[0]))
        assert response.status_code == 403
