"""
Integration tests for team generation against a real (in-memory) database.
"""
import random

import pytest
from sqlalchemy import select, func

from teameval import repositories
from teameval.core.exceptions import (
    AlreadyFormed,
    ConcurrentGeneration,
    DuplicateMember,
    InsufficientPopulation,
)
from teameval.models.rating import RatingSource
from teameval.models.team import Team, TeamMember
from teameval.models.user import User
from teameval.schemas.period import Period
from teameval.services.evaluation import submit_rating
from teameval.services.generation import generate_teams

from conftest import make_question, make_users


class TestGenerateTeams:
    async def test_everyone_placed_once(self, db, period):
        users = await make_users(db, 10)
        result = await generate_teams(db, period, rng=random.Random(1))

        assert result.period == period.key
        assert result.total_users == 10
        assert result.team_count == 2
        assert result.skipped is False
        placed = sorted(u for t in result.teams for u in t.member_ids)
        assert placed == sorted(u.id for u in users)

    async def test_team_names_and_period(self, db, period):
        await make_users(db, 8)
        result = await generate_teams(db, period, rng=random.Random(1))
        assert [t.name for t in result.teams] == ["Team 1", "Team 2"]

        teams = await repositories.teams_for_period(db, period)
        assert {t.period_key for t in teams} == {"2025-03-14T09"}

    async def test_inactive_users_are_left_out(self, db, period):
        users = await make_users(db, 4)
        users[0].is_active = False
        await db.commit()

        result = await generate_teams(db, period)
        assert result.total_users == 3
        assert users[0].id not in result.teams[0].member_ids

    async def test_insufficient_population(self, db, period):
        await make_users(db, 2)
        with pytest.raises(InsufficientPopulation) as exc_info:
            await generate_teams(db, period)
        assert exc_info.value.count == 2
        assert not await repositories.teams_exist(db, period)

    async def test_second_run_is_rejected(self, db, period):
        await make_users(db, 5)
        await generate_teams(db, period)
        with pytest.raises(AlreadyFormed):
            await generate_teams(db, period)

        count = await db.execute(select(func.count(Team.id)))
        assert count.scalar_one() == 1

    async def test_force_regenerates_without_ratings(self, db, period):
        await make_users(db, 8)
        await generate_teams(db, period, rng=random.Random(1))
        second = await generate_teams(db, period, force=True, rng=random.Random(2))

        assert second.team_count == 2
        teams = await db.execute(select(func.count(Team.id)))
        assert teams.scalar_one() == 2
        members = await db.execute(select(func.count(TeamMember.id)))
        assert members.scalar_one() == 8

    async def test_force_refused_once_rated(self, db, period):
        await make_users(db, 3)
        result = await generate_teams(db, period)
        q = await make_question(db, period)
        rater = result.teams[0].member_ids[0]
        await submit_rating(db, rater, q.id, None, RatingSource.SELF, 4)

        with pytest.raises(AlreadyFormed):
            await generate_teams(db, period, force=True)

    async def test_other_periods_are_independent(self, db, period):
        await make_users(db, 4)
        await generate_teams(db, period)
        later = Period(year=2025, month=3, day=14, hour=10)
        result = await generate_teams(db, later)
        assert result.period == "2025-03-14T10"

    async def test_monthly_period(self, db):
        await make_users(db, 7)
        result = await generate_teams(db, Period(year=2025, month=3))
        assert result.period == "2025-03"
        assert sorted(t.member_count for t in result.teams) == [3, 4]

    async def test_custom_team_size(self, db, period):
        await make_users(db, 9)
        result = await generate_teams(db, period, team_size=3)
        assert [t.member_count for t in result.teams] == [3, 3, 3]

    async def test_concurrent_insert_is_reported(self, db, period, monkeypatch):
        await make_users(db, 4)

        # Simulate another run winning the race after our existence check
        async def lost_race(db, team, user_id):
            raise DuplicateMember(team.id, user_id)

        monkeypatch.setattr(repositories, "add_member", lost_race)
        with pytest.raises(ConcurrentGeneration):
            await generate_teams(db, period)
        assert not await repositories.teams_exist(db, period)


class TestRepeatPairings:
    async def test_previous_pairings_read_from_prior_period(self, db):
        users = await make_users(db, 6)
        first = Period(year=2025, month=3, day=14, hour=9)
        await generate_teams(db, first, team_size=3, rng=random.Random(5))

        ids = [u.id for u in users]
        pairs = await repositories.previous_pairings(db, ids, first)
        # Two teams of three → three pairs each
        assert len(pairs) == 6

        old_teams = [
            set(await repositories.team_member_ids(db, t.id))
            for t in await repositories.teams_for_period(db, first)
        ]
        second = Period(year=2025, month=3, day=14, hour=10)
        assert second.previous() == first
        result = await generate_teams(db, second, team_size=3, rng=random.Random(6))
        for team in result.teams:
            assert set(team.member_ids) not in old_teams

    async def test_no_pairings_without_history(self, db, period):
        users = await make_users(db, 4)
        assert await repositories.previous_pairings(db, [u.id for u in users], period) == set()


class TestAddMember:
    async def test_duplicate_in_period_rejected(self, db, period):
        await make_users(db, 8)
        result = await generate_teams(db, period, rng=random.Random(1))
        team_ids = [t.id for t in result.teams]
        user_in_first = result.teams[0].member_ids[0]

        other = await repositories.get_team(db, team_ids[1])
        with pytest.raises(DuplicateMember):
            await repositories.add_member(db, other, user_in_first)

    async def test_new_user_can_be_added(self, db, period):
        await make_users(db, 4)
        result = await generate_teams(db, period)
        newcomer = User(username="late", email="late@example.com")
        db.add(newcomer)
        await db.commit()

        team = await repositories.get_team(db, result.teams[0].id)
        await repositories.add_member(db, team, newcomer.id)
        await db.commit()
        assert newcomer.id in await repositories.team_member_ids(db, team.id)


class TestRemoveMember:
    async def test_member_removed(self, db, period):
        await make_users(db, 4)
        result = await generate_teams(db, period)
        team_id = result.teams[0].id
        leaving = result.teams[0].member_ids[0]

        assert await repositories.remove_member(db, team_id, leaving) is True
        await db.commit()
        assert leaving not in await repositories.team_member_ids(db, team_id)

    async def test_non_member_reports_false(self, db, period):
        await make_users(db, 4)
        result = await generate_teams(db, period)
        outsider = User(username="outsider", email="outsider@example.com")
        db.add(outsider)
        await db.commit()

        assert await repositories.remove_member(db, result.teams[0].id, outsider.id) is False
        assert len(await repositories.team_member_ids(db, result.teams[0].id)) == 4

    async def test_removed_user_can_join_another_team(self, db, period):
        await make_users(db, 8)
        result = await generate_teams(db, period, rng=random.Random(1))
        first, second = result.teams
        moving = first.member_ids[0]

        await repositories.remove_member(db, first.id, moving)
        await repositories.add_member(db, await repositories.get_team(db, second.id), moving)
        await db.commit()
        assert moving in await repositories.team_member_ids(db, second.id)
