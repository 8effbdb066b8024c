from datetime import datetime, timezone
from typing import Annotated, List, Literal, Optional

from pydantic import ConfigDict, StringConstraints, conint
from pydantic.alias_generators import to_camel
from sqlmodel import SQLModel, Field

FixtureStatus = Literal["pending", "completed"]

# Stringhe obbligatorie: niente coercizione da numeri, niente stringa vuota.
RequiredStr = Annotated[str, StringConstraints(strict=True, min_length=1)]
OptionalStr = Optional[Annotated[str, StringConstraints(strict=True)]]

# Interi che stanno in una colonna INTEGER a 64 bit.
MAX_DB_INT = 2**63 - 1
DbInt = conint(strict=True, ge=-MAX_DB_INT, le=MAX_DB_INT)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ========== TABELLE ==========
class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(unique=True)
    password: str


class Player(SQLModel, table=True):
    __tablename__ = "players"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str = Field(unique=True)
    phone: Optional[str] = None
    gamertag: str
    created_at: datetime = Field(default_factory=utcnow)


class Fixture(SQLModel, table=True):
    __tablename__ = "fixtures"

    id: Optional[int] = Field(default=None, primary_key=True)
    player1_id: int = Field(foreign_key="players.id")
    player2_id: int = Field(foreign_key="players.id")
    round: str  # es. "Quarter Final", "Semi Final", "Final"
    match_id: str  # es. "QF-001", "SF-001", "F-001"
    status: str = Field(default="pending")
    created_at: datetime = Field(default_factory=utcnow)


class Result(SQLModel, table=True):
    __tablename__ = "results"

    id: Optional[int] = Field(default=None, primary_key=True)
    # Al massimo un risultato per partita: il vincolo sta nel DB.
    fixture_id: int = Field(foreign_key="fixtures.id", unique=True)
    winner_id: int = Field(foreign_key="players.id")
    winner_score: Optional[int] = None
    loser_score: Optional[int] = None
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


# ========== SCHEMI API (JSON in camelCase) ==========
class ApiModel(SQLModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class UserCreate(ApiModel):
    username: RequiredStr
    password: RequiredStr


class PlayerCreate(ApiModel):
    name: RequiredStr
    email: RequiredStr
    phone: OptionalStr = None
    gamertag: RequiredStr


class PlayerRead(ApiModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    gamertag: str
    created_at: datetime


class FixtureCreate(ApiModel):
    player1_id: DbInt
    player2_id: DbInt
    round: RequiredStr
    match_id: RequiredStr
    status: FixtureStatus = "pending"


class FixtureRead(ApiModel):
    id: int
    player1_id: int
    player2_id: int
    round: str
    match_id: str
    status: str
    created_at: datetime


class GenerateFixturesIn(ApiModel):
    player_ids: List[DbInt]


class ResultCreate(ApiModel):
    fixture_id: DbInt
    winner_id: DbInt
    winner_score: Optional[DbInt] = None
    loser_score: Optional[DbInt] = None
    notes: OptionalStr = None


class ResultRead(ApiModel):
    id: int
    fixture_id: int
    winner_id: int
    winner_score: Optional[int] = None
    loser_score: Optional[int] = None
    notes: Optional[str] = None
    created_at: datetime
