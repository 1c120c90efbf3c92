import asyncio
import os
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from crease.models import Tournament, Team, Player

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL environment variable is required")
if DATABASE_URL.startswith("postgresql://"):
    DATABASE_URL = DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://", 1)

engine = create_async_engine(DATABASE_URL, echo=False, pool_pre_ping=True)
Session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

SQUADS = {
    "harbour-hawks": (
        "Harbour Hawks",
        [
            "Arjun Mehta",
            "Ben Carter",
            "Chris Nolan",
            "Dev Patel",
            "Ethan Brooks",
            "Farhan Ali",
            "George Hill",
            "Harry Lewis",
            "Imran Qureshi",
            "Jack Turner",
            "Kieran Shaw",
        ],
    ),
    "valley-lions": (
        "Valley Lions",
        [
            "Liam Walsh",
            "Mohit Sharma",
            "Nathan Reid",
            "Oliver Grant",
            "Pranav Iyer",
            "Quinn Foster",
            "Rahul Nair",
            "Sam Whitaker",
            "Tom Ashby",
            "Umar Siddiqui",
            "Vikram Rao",
        ],
    ),
}


def _player_id(name: str) -> str:
    return name.lower().replace(" ", "-")


async def main():
    async with Session() as s:
        if await s.get(Tournament, "demo-cup") is None:
            s.add(Tournament(id="demo-cup", name="Demo Cup"))
        await s.commit()

        existing_players = {
            x.id for x in (await s.execute(select(Player))).scalars().all()
        }
        for _, names in SQUADS.values():
            for name in names:
                pid = _player_id(name)
                if pid not in existing_players:
                    s.add(Player(id=pid, name=name))
        await s.commit()

        existing_teams = {
            x.id for x in (await s.execute(select(Team))).scalars().all()
        }
        for tid, (name, players) in SQUADS.items():
            if tid not in existing_teams:
                s.add(
                    Team(
                        id=tid,
                        name=name,
                        tournament_id="demo-cup",
                        player_ids=[_player_id(p) for p in players],
                    )
                )
        await s.commit()

if __name__ == "__main__":
    asyncio.run(main())
