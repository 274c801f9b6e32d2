"""Read-only HTTP query surface over an escrow ledger.

Routes (under the configured prefix, /api/v1 by default):
    GET /api/v1/health
    GET /api/v1/challenges/{challenge_id}
    GET /api/v1/challenges/{challenge_id}/voting
    GET /api/v1/challenges/{challenge_id}/votes/{voter}
    GET /api/v1/custody

Every response reflects the ledger's committed state at request time.
Errors use the standard body:
{"success": false, "error": {"code": "...", "message": "..."}}
"""

from __future__ import annotations

import logging

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from .config import get_config
from .exceptions import ChallengeNotFoundError, EscrowError
from .ledger import EscrowLedger

logger = logging.getLogger(__name__)

NOT_FOUND_CHALLENGE = "NOT_FOUND_CHALLENGE"


def error_response(code: str, message: str, status_code: int = 400) -> JSONResponse:
    """Create a standardized error response."""
    return JSONResponse(
        {
            "success": False,
            "error": {
                "code": code,
                "message": message,
            },
        },
        status_code=status_code,
    )


def not_found_error(challenge_id: str) -> JSONResponse:
    return error_response(NOT_FOUND_CHALLENGE, f"Challenge {challenge_id} not found", status_code=404)


def _ledger(request: Request) -> EscrowLedger:
    return request.app.state.ledger


async def health_endpoint(request: Request) -> JSONResponse:
    """GET /api/v1/health"""
    ledger = _ledger(request)
    return JSONResponse({"status": "ok", "challenges": len(ledger.store)})


async def challenge_endpoint(request: Request) -> JSONResponse:
    """GET /api/v1/challenges/{challenge_id} - Challenge record."""
    challenge_id = request.path_params["challenge_id"]
    try:
        challenge = _ledger(request).get_challenge(challenge_id)
    except ChallengeNotFoundError:
        return not_found_error(challenge_id)
    return JSONResponse({"success": True, "challenge": challenge.to_dict()})


async def voting_endpoint(request: Request) -> JSONResponse:
    """GET /api/v1/challenges/{challenge_id}/voting - Voting record."""
    challenge_id = request.path_params["challenge_id"]
    try:
        voting = _ledger(request).get_voting_record(challenge_id)
    except ChallengeNotFoundError:
        return not_found_error(challenge_id)
    return JSONResponse({"success": True, "voting": voting.to_dict()})


async def vote_endpoint(request: Request) -> JSONResponse:
    """GET /api/v1/challenges/{challenge_id}/votes/{voter} - One guarantor's ballot."""
    challenge_id = request.path_params["challenge_id"]
    voter = request.path_params["voter"]
    ledger = _ledger(request)
    try:
        vote = ledger.get_vote(challenge_id, voter)
    except ChallengeNotFoundError:
        return not_found_error(challenge_id)
    return JSONResponse(
        {
            "success": True,
            "challenge_id": challenge_id,
            "voter": voter,
            "has_voted": vote is not None,
            "approve": vote,
        }
    )


async def custody_endpoint(request: Request) -> JSONResponse:
    """GET /api/v1/custody - Custody account totals."""
    return JSONResponse({"success": True, "custody": _ledger(request).custody_report().to_dict()})


async def _escrow_error_handler(request: Request, exc: EscrowError) -> JSONResponse:
    logger.warning(f"Escrow error on {request.url.path}: {exc.message}")
    return error_response(exc.code, exc.message)


def create_app(ledger: EscrowLedger, prefix: str | None = None) -> Starlette:
    """Build the query app for ``ledger``.

    Routes are mounted under ``prefix``, defaulting to the
    ``SHOWUP_API_PREFIX`` setting (``/api/v1`` when unset).
    """
    prefix = (prefix or get_config().api_prefix).rstrip("/")
    routes = [
        Route(f"{prefix}/health", health_endpoint, methods=["GET"]),
        Route(f"{prefix}/challenges/{{challenge_id}}", challenge_endpoint, methods=["GET"]),
        Route(f"{prefix}/challenges/{{challenge_id}}/voting", voting_endpoint, methods=["GET"]),
        Route(f"{prefix}/challenges/{{challenge_id}}/votes/{{voter}}", vote_endpoint, methods=["GET"]),
        Route(f"{prefix}/custody", custody_endpoint, methods=["GET"]),
    ]
    app = Starlette(
        routes=routes,
        exception_handlers={EscrowError: _escrow_error_handler},
    )
    app.state.ledger = ledger
    return app
