import logging
import re
from contextlib import contextmanager
from typing import Any, List

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from pydantic import ValidationError as PydanticValidationError

from errors import ConflictError, ConstraintError, NotFoundError, TournamentError, ValidationError
from models import (
    FixtureCreate,
    FixtureRead,
    GenerateFixturesIn,
    MAX_DB_INT,
    PlayerCreate,
    PlayerRead,
    ResultCreate,
    ResultRead,
)
from storage import Storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["tournament"])

ID_PATTERN = re.compile(r"-?[0-9]+")


def get_storage(request: Request) -> Storage:
    return request.app.state.storage


def validation_issues(exc: PydanticValidationError) -> List[dict]:
    # Solo i campi utili al client, senza rimandare indietro l'input.
    return [
        {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
        for err in exc.errors()
    ]


def parse_body(model, payload: Any, message: str):
    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError(message, errors=validation_issues(e))


def parse_id(raw: str, entity: str) -> int:
    raw = raw.strip()
    if not ID_PATTERN.fullmatch(raw) or abs(int(raw)) > MAX_DB_INT:
        raise ValidationError(f"Invalid {entity} ID")
    return int(raw)


@contextmanager
def fault_boundary(message: str):
    """Gli errori di dominio passano; tutto il resto diventa un 500 generico."""
    try:
        yield
    except (TournamentError, HTTPException):
        raise
    except Exception:
        logger.exception(message)
        raise HTTPException(status_code=500, detail=message)


# ========== PLAYERS ==========
@router.get("/players", response_model=List[PlayerRead])
def list_players(storage: Storage = Depends(get_storage)):
    with fault_boundary("Failed to retrieve players"):
        return storage.list_players()


@router.post("/players", response_model=PlayerRead, status_code=201)
def create_player(payload: Any = Body(None), storage: Storage = Depends(get_storage)):
    data = parse_body(PlayerCreate, payload, "Invalid player data")
    with fault_boundary("Failed to create player"):
        try:
            return storage.create_player(data)
        except ConstraintError:
            raise ConflictError("A player with this email already exists")


@router.get("/players/{player_id}", response_model=PlayerRead)
def get_player(player_id: str, storage: Storage = Depends(get_storage)):
    pid = parse_id(player_id, "player")
    with fault_boundary("Failed to retrieve player"):
        player = storage.get_player(pid)
    if not player:
        raise NotFoundError("Player not found")
    return player


# ========== FIXTURES ==========
@router.get("/fixtures", response_model=List[FixtureRead])
def list_fixtures(storage: Storage = Depends(get_storage)):
    with fault_boundary("Failed to retrieve fixtures"):
        return storage.list_fixtures()


@router.post("/fixtures", response_model=FixtureRead, status_code=201)
def create_fixture(payload: Any = Body(None), storage: Storage = Depends(get_storage)):
    data = parse_body(FixtureCreate, payload, "Invalid fixture data")
    with fault_boundary("Failed to create fixture"):
        return storage.create_fixture(data)


@router.post("/fixtures/generate", response_model=List[FixtureRead], status_code=201)
def generate_fixtures(payload: Any = Body(None), storage: Storage = Depends(get_storage)):
    data = parse_body(GenerateFixturesIn, payload, "Invalid data")
    if len(set(data.player_ids)) < 2:
        raise ValidationError("At least 2 players are required to generate fixtures")
    with fault_boundary("Failed to generate fixtures"):
        return storage.generate_fixtures(data.player_ids)


@router.get("/fixtures/{fixture_id}", response_model=FixtureRead)
def get_fixture(fixture_id: str, storage: Storage = Depends(get_storage)):
    fid = parse_id(fixture_id, "fixture")
    with fault_boundary("Failed to retrieve fixture"):
        fixture = storage.get_fixture(fid)
    if not fixture:
        raise NotFoundError("Fixture not found")
    return fixture


# ========== RESULTS ==========
@router.get("/results", response_model=List[ResultRead])
def list_results(storage: Storage = Depends(get_storage)):
    with fault_boundary("Failed to retrieve results"):
        return storage.list_results()


@router.post("/results", response_model=ResultRead, status_code=201)
def create_result(payload: Any = Body(None), storage: Storage = Depends(get_storage)):
    data = parse_body(ResultCreate, payload, "Invalid result data")
    with fault_boundary("Failed to create result"):
        fixture = storage.get_fixture(data.fixture_id)
        if not fixture:
            raise NotFoundError("Fixture not found")

        if storage.get_result_by_fixture_id(data.fixture_id):
            raise ConflictError("Result already exists for this fixture")

        if data.winner_id not in (fixture.player1_id, fixture.player2_id):
            raise ValidationError("Winner must be one of the players in the fixture")

        try:
            return storage.create_result(data)
        except ConstraintError:
            # Un'altra richiesta ha registrato il risultato nel frattempo.
            if storage.get_result_by_fixture_id(data.fixture_id):
                raise ConflictError("Result already exists for this fixture")
            raise


@router.get("/results/{result_id}", response_model=ResultRead)
def get_result(result_id: str, storage: Storage = Depends(get_storage)):
    rid = parse_id(result_id, "result")
    with fault_boundary("Failed to retrieve result"):
        result = storage.get_result(rid)
    if not result:
        raise NotFoundError("Result not found")
    return result
