"""Roster lookups consumed by the scoring core.

Rosters are owned by the team-management side of the system; the scoring
core only reads them to check team membership and the all-out threshold.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import TeamNotFound
from ..models import Match, Team


@dataclass(frozen=True)
class MatchRosters:
    batting_team_id: str
    bowling_team_id: str
    batting: tuple[str, ...]
    bowling: tuple[str, ...]

    def on_batting_side(self, player_id: str) -> bool:
        return player_id in self.batting

    def on_bowling_side(self, player_id: str) -> bool:
        return player_id in self.bowling


async def team_roster(session: AsyncSession, team_id: str) -> list[str]:
    team = await session.get(Team, team_id)
    if team is None:
        raise TeamNotFound(team_id)
    return [pid for pid in (team.player_ids or []) if pid]


def other_team(match: Match, team_id: str) -> str:
    return match.team_b_id if team_id == match.team_a_id else match.team_a_id


async def match_rosters(
    session: AsyncSession, match: Match, batting_team_id: Optional[str] = None
) -> MatchRosters:
    batting_team_id = batting_team_id or match.current_batting_team_id or match.team_a_id
    bowling_team_id = other_team(match, batting_team_id)
    return MatchRosters(
        batting_team_id=batting_team_id,
        bowling_team_id=bowling_team_id,
        batting=tuple(await team_roster(session, batting_team_id)),
        bowling=tuple(await team_roster(session, bowling_team_id)),
    )
