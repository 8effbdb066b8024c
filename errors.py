from typing import Any, List, Optional


class TournamentError(Exception):
    """Errore di dominio con il relativo status HTTP."""

    status_code = 500

    def __init__(self, message: str, errors: Optional[List[Any]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors

    def to_dict(self) -> dict:
        body = {"message": self.message}
        if self.errors is not None:
            body["errors"] = self.errors
        return body


class ValidationError(TournamentError):
    status_code = 400


class NotFoundError(TournamentError):
    status_code = 404


class ConflictError(TournamentError):
    status_code = 409


class ConstraintError(ConflictError):
    """Vincolo del database violato (unique, foreign key)."""
