from fastapi import HTTPException
from pydantic import BaseModel
from typing import Optional


class ProblemDetail(BaseModel):
    """RFC 7807 compliant error response."""

    type: str = "about:blank"
    title: str
    detail: Optional[str] = None
    status: int
    instance: Optional[str] = None
    code: str
    retryable: bool = False


class DomainException(Exception):
    """Base class for domain-specific exceptions."""

    retryable = False

    def __init__(
        self,
        status_code: int,
        title: str,
        *,
        code: str,
        detail: str | None = None,
        type_: str = "about:blank",
    ) -> None:
        super().__init__(detail or title)
        self.status_code = status_code
        self.title = title
        self.detail = detail
        self.type = type_
        self.code = code


class MatchNotFound(DomainException):
    def __init__(self, match_id: str) -> None:
        super().__init__(
            status_code=404,
            title="Match not found",
            detail=f"match '{match_id}' not found",
            code="match_not_found",
        )


class TeamNotFound(DomainException):
    def __init__(self, team_id: str) -> None:
        super().__init__(
            status_code=404,
            title="Team not found",
            detail=f"team '{team_id}' not found",
            code="team_not_found",
        )


# -----------------------------------------------------------------------------
# Transition validation errors: raised before anything is written.
# -----------------------------------------------------------------------------
class ScoringValidationError(DomainException):
    def __init__(self, title: str, detail: str, *, code: str) -> None:
        super().__init__(status_code=422, title=title, detail=detail, code=code)


class MatchNotLiveError(ScoringValidationError):
    def __init__(self, status: str) -> None:
        super().__init__(
            "Match not live",
            f"match is {status}; deliveries can only be recorded while LIVE",
            code="match_not_live",
        )


class PlayersNotSelectedError(ScoringValidationError):
    def __init__(self, detail: str = "striker and bowler must be selected") -> None:
        super().__init__("Players not selected", detail, code="players_not_selected")


class OversLimitReachedError(ScoringValidationError):
    def __init__(self, overs: int) -> None:
        super().__init__(
            "Overs limit reached",
            f"the {overs}-over limit for this innings has been reached",
            code="overs_limit_reached",
        )


class InningsOverError(ScoringValidationError):
    def __init__(self, wickets: int) -> None:
        super().__init__(
            "Innings over",
            f"batting side is all out ({wickets} wickets); start the next innings",
            code="innings_over",
        )


class InvalidBowlerError(ScoringValidationError):
    def __init__(self, detail: str = "bowler cannot be from the batting team") -> None:
        super().__init__("Invalid bowler", detail, code="invalid_bowler")


class InvalidBatsmanError(ScoringValidationError):
    def __init__(self, detail: str = "batsman must belong to the batting team") -> None:
        super().__init__("Invalid batsman", detail, code="invalid_batsman")


class DuplicateBatsmanError(ScoringValidationError):
    def __init__(self, player_id: str) -> None:
        super().__init__(
            "Duplicate batsman",
            f"player '{player_id}' is already batting at the other end",
            code="duplicate_batsman",
        )


class InvalidStatusTransitionError(ScoringValidationError):
    def __init__(self, current: str, requested: str, reason: str | None = None) -> None:
        detail = f"cannot move match from {current} to {requested}"
        if reason:
            detail = f"{detail}: {reason}"
        super().__init__("Invalid status transition", detail, code="invalid_status_transition")


class InvalidMatchSetupError(ScoringValidationError):
    def __init__(self, detail: str) -> None:
        super().__init__("Invalid match setup", detail, code="invalid_match_setup")


# -----------------------------------------------------------------------------
# State errors
# -----------------------------------------------------------------------------
class EmptyLogError(DomainException):
    def __init__(self, match_id: str) -> None:
        super().__init__(
            status_code=404,
            title="Nothing to undo",
            detail=f"match '{match_id}' has no deliveries to undo",
            code="empty_log",
        )


# -----------------------------------------------------------------------------
# Concurrency conflicts: the caller may retry the whole operation.
# -----------------------------------------------------------------------------
class MatchConflictError(DomainException):
    retryable = True

    def __init__(self, match_id: str, detail: str | None = None) -> None:
        super().__init__(
            status_code=409,
            title="Match conflict",
            detail=detail or f"match '{match_id}' was modified concurrently; retry",
            code="match_conflict",
        )


class StaleDeliveryError(DomainException):
    retryable = True

    def __init__(self, field: str, expected, got) -> None:
        super().__init__(
            status_code=409,
            title="Stale delivery",
            detail=f"{field} is {expected!r} but the delivery says {got!r}; re-fetch and retry",
            code="stale_delivery",
        )


def http_problem(
    status_code: int,
    detail: str,
    code: str,
    *,
    headers: Optional[dict[str, str]] = None,
) -> HTTPException:
    """Create an HTTPException with an attached problem code."""

    exc = HTTPException(status_code=status_code, detail=detail, headers=headers)
    setattr(exc, "code", code)
    return exc
