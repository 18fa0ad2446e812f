"""Random, size-constrained partitioning of a user population into teams.

All functions here are pure: they take user ids and a random source and
return groups of ids. Persistence lives in teameval.services.generation.
"""
from __future__ import annotations

import random
from typing import Optional, Sequence, TypeVar

T = TypeVar("T")

MIN_POPULATION = 3
# Leftovers below this are spread over existing teams instead of forming a team
MIN_REMAINDER_TEAM = 3

Pairings = set[frozenset[int]]


def fisher_yates_shuffle(items: Sequence[T], rng: random.Random) -> list[T]:
    """Uniform random permutation; `items` is left untouched."""
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def plan_team_sizes(n: int, team_size: int) -> tuple[list[int], int]:
    """
    Decide how many teams to build and how large, before anyone is placed.

    Returns (sizes of the teams to fill, number of leftover users to spread
    round-robin over the first teams).
    """
    if team_size < 2:
        raise ValueError("team_size must be at least 2")

    sizes = [team_size] * (n // team_size)
    remainder = n % team_size

    # Peel off full teams until the remainder fits one of the bands below
    while remainder > team_size + 1:
        sizes.append(team_size)
        remainder -= team_size

    if remainder == 0:
        return sizes, 0
    if remainder < MIN_REMAINDER_TEAM and sizes:
        return sizes, remainder
    sizes.append(remainder)
    return sizes, 0


def _were_teammates(pairs: Pairings, a: int, b: int) -> bool:
    return frozenset((a, b)) in pairs


def _pick_candidate(pool: list[int], team: list[int], pairs: Pairings) -> int:
    """First user in `pool` with no previous pairing with `team`, else the first user."""
    if pairs and team:
        for idx, candidate in enumerate(pool):
            if not any(_were_teammates(pairs, candidate, member) for member in team):
                return pool.pop(idx)
    return pool.pop(0)


def partition_users(
    user_ids: Sequence[int],
    team_size: int = 4,
    rng: Optional[random.Random] = None,
    previous_pairs: Optional[Pairings] = None,
) -> list[list[int]]:
    """
    Shuffle `user_ids` and cut them into teams.

    Leftover policy for r = n mod team_size:
      r == 0          nothing to do
      1 <= r < 3      spread round-robin over the teams already built
      3 <= r          one more team of exactly r

    `previous_pairs` (pairs of ids that were teammates last period) is a soft
    preference: the fill order skips a candidate who already worked with the
    team when another candidate is available.
    """
    if len(set(user_ids)) != len(user_ids):
        raise ValueError("Population contains duplicate users")
    if len(user_ids) < MIN_POPULATION:
        raise ValueError(f"Need at least {MIN_POPULATION} users, got {len(user_ids)}")

    rng = rng or random.SystemRandom()
    pairs = previous_pairs or set()
    pool = fisher_yates_shuffle(user_ids, rng)

    sizes, leftovers = plan_team_sizes(len(pool), team_size)
    teams: list[list[int]] = []
    for size in sizes:
        team: list[int] = []
        for _ in range(size):
            team.append(_pick_candidate(pool, team, pairs))
        teams.append(team)

    # Round-robin, but prefer the team this user clashes with least
    eligible: list[int] = []
    for user_id in pool:
        if not eligible:
            eligible = list(range(len(teams)))
        best = min(
            eligible,
            key=lambda t: sum(_were_teammates(pairs, user_id, m) for m in teams[t]),
        )
        teams[best].append(user_id)
        eligible.remove(best)

    return teams
