import logging
import uuid
from typing import Iterator, List, Optional, Sequence, Tuple

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from db import init_db
from errors import ConstraintError, ValidationError
from models import (
    Fixture,
    FixtureCreate,
    Player,
    PlayerCreate,
    Result,
    ResultCreate,
    User,
    UserCreate,
)

logger = logging.getLogger(__name__)

ROUND_ROBIN_LABEL = "Round Robin"


def round_robin_pairs(player_ids: Sequence[int]) -> Iterator[Tuple[int, int]]:
    """Ogni coppia non ordinata (i < j), nell'ordine della lista in ingresso.

    Gli id duplicati vengono scartati tenendo la prima occorrenza.
    """
    ids = list(dict.fromkeys(player_ids))
    for i, first in enumerate(ids):
        for second in ids[i + 1:]:
            yield first, second


def new_match_token() -> str:
    return f"RR-{uuid.uuid4().hex.upper()}"


class Storage:
    """Persistenza di giocatori, partite e risultati su un engine SQLAlchemy."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def init_schema(self, lazy: bool = False):
        init_db(self.engine, lazy=lazy)

    def ping(self) -> bool:
        with Session(self.engine) as session:
            session.exec(text("SELECT 1"))
        return True

    def _insert(self, *rows):
        with Session(self.engine) as session:
            session.add_all(rows)
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise ConstraintError(
                    f"{type(rows[0]).__name__} violates a database constraint"
                ) from e
            for row in rows:
                session.refresh(row)
        return rows

    def _list(self, model) -> list:
        with Session(self.engine) as session:
            return list(session.exec(select(model).order_by(model.id)).all())

    def _get(self, model, row_id: int):
        with Session(self.engine) as session:
            return session.get(model, row_id)

    # ========== USERS ==========
    def get_user(self, user_id: int) -> Optional[User]:
        return self._get(User, user_id)

    def get_user_by_username(self, username: str) -> Optional[User]:
        with Session(self.engine) as session:
            return session.exec(select(User).where(User.username == username)).first()

    def create_user(self, data: UserCreate) -> User:
        (user,) = self._insert(User(**data.model_dump()))
        return user

    # ========== PLAYERS ==========
    def list_players(self) -> List[Player]:
        return self._list(Player)

    def get_player(self, player_id: int) -> Optional[Player]:
        return self._get(Player, player_id)

    def create_player(self, data: PlayerCreate) -> Player:
        (player,) = self._insert(Player(**data.model_dump()))
        logger.info("Creato giocatore %s (%s)", player.id, player.gamertag)
        return player

    # ========== FIXTURES ==========
    def list_fixtures(self) -> List[Fixture]:
        return self._list(Fixture)

    def get_fixture(self, fixture_id: int) -> Optional[Fixture]:
        return self._get(Fixture, fixture_id)

    def create_fixture(self, data: FixtureCreate) -> Fixture:
        (fixture,) = self._insert(Fixture(**data.model_dump()))
        return fixture

    def generate_fixtures(
        self, player_ids: Sequence[int], round_label: str = ROUND_ROBIN_LABEL
    ) -> List[Fixture]:
        """
        Genera un girone all'italiana: una partita per ogni coppia di giocatori.

        Con n id distinti si ottengono n*(n-1)/2 partite, salvate in un'unica
        transazione e restituite nell'ordine di accoppiamento. Non verifica
        che gli id corrispondano a giocatori esistenti.
        """
        pairs = list(round_robin_pairs(player_ids))
        if not pairs:
            raise ValidationError("At least 2 players are required to generate fixtures")

        fixtures = [
            Fixture(
                player1_id=p1,
                player2_id=p2,
                round=round_label,
                match_id=new_match_token(),
                status="pending",
            )
            for p1, p2 in pairs
        ]
        saved = list(self._insert(*fixtures))
        logger.info("Generate %d partite per %d giocatori", len(saved), len(set(player_ids)))
        return saved

    # ========== RESULTS ==========
    def list_results(self) -> List[Result]:
        return self._list(Result)

    def get_result(self, result_id: int) -> Optional[Result]:
        return self._get(Result, result_id)

    def get_result_by_fixture_id(self, fixture_id: int) -> Optional[Result]:
        with Session(self.engine) as session:
            return session.exec(select(Result).where(Result.fixture_id == fixture_id)).first()

    def create_result(self, data: ResultCreate) -> Result:
        # Il vincolo UNIQUE su fixture_id rende l'inserimento atomico:
        # di due scritture concorrenti per la stessa partita ne passa una sola.
        (result,) = self._insert(Result(**data.model_dump()))
        logger.info("Registrato risultato %s per la partita %s", result.id, result.fixture_id)
        return result
