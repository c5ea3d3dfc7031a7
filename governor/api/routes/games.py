from typing import Annotated, List

from fastapi import APIRouter, Depends, Response, status

from governor.api.dependencies import get_game_service
from governor.core.auth import current_user_id
from governor.core.errors import NotFoundAppError
from governor.schemas.game import (
    Game,
    GameCreate,
    GamePollResponse,
    GameUpdate,
    PendingRequest,
)
from governor.services.game_service import GameService

router = APIRouter(tags=["Games"])

Service = Annotated[GameService, Depends(get_game_service)]
UserId = Annotated[str, Depends(current_user_id)]


@router.get("/games", response_model=List[Game])
async def list_games(service: Service) -> List[Game]:
    """All games ordered by date. Throttled with 429 when over quota."""
    return await service.list_games()


@router.get("/games/poll", response_model=GamePollResponse)
async def poll_games(service: Service) -> GamePollResponse:
    """Listing for periodic refresh; returns ``skipped`` instead of 429."""
    games = await service.poll_games()
    if games is None:
        return GamePollResponse(skipped=True)
    return GamePollResponse(games=games)


@router.get("/games/{game_id}", response_model=Game)
async def get_game(game_id: str, service: Service) -> Game:
    game = await service.get_game(game_id)
    if game is None:
        raise NotFoundAppError(
            code="game_not_found", message="Game not found.", details={"game_id": game_id}
        )
    return game


@router.post("/games", response_model=Game, status_code=status.HTTP_201_CREATED)
async def create_game(payload: GameCreate, service: Service, user_id: UserId) -> Game:
    """Create a game organized by the caller.

    Raises:
        ConflictAppError: 409 when the caller already organizes a game.
        ValidationAppError: 400 when the caller's profile has no phone.
    """
    return await service.create_game(payload, organizer_id=user_id)


@router.patch("/games/{game_id}", response_model=Game)
async def update_game(
    game_id: str, payload: GameUpdate, service: Service, user_id: UserId
) -> Game:
    return await service.update_game(game_id, payload, organizer_id=user_id)


@router.delete("/games/{game_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_game(game_id: str, service: Service, user_id: UserId) -> Response:
    await service.delete_game(game_id, organizer_id=user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/games/{game_id}/join-requests", status_code=status.HTTP_202_ACCEPTED)
async def request_to_join(game_id: str, service: Service, user_id: UserId) -> dict:
    await service.request_to_join(game_id, user_id)
    return {"status": "pending"}


@router.post("/games/{game_id}/players")
async def join_game(game_id: str, service: Service, user_id: UserId) -> dict:
    """Join directly as a player (no organizer approval)."""
    await service.join_game(game_id, user_id)
    return {"status": "joined"}


@router.post("/games/{game_id}/join-requests/{requester_id}/approve")
async def approve_request(
    game_id: str, requester_id: str, service: Service, user_id: UserId
) -> dict:
    await service.approve_request(game_id, requester_id, organizer_id=user_id)
    return {"status": "approved"}


@router.post("/games/{game_id}/join-requests/{requester_id}/reject")
async def reject_request(
    game_id: str, requester_id: str, service: Service, user_id: UserId
) -> dict:
    await service.reject_request(game_id, requester_id, organizer_id=user_id)
    return {"status": "rejected"}


@router.post("/games/{game_id}/leave")
async def leave_game(game_id: str, service: Service, user_id: UserId) -> dict:
    await service.leave_game(game_id, user_id)
    return {"status": "left"}


@router.get("/organizers/me/pending-requests", response_model=List[PendingRequest])
async def my_pending_requests(service: Service, user_id: UserId) -> List[PendingRequest]:
    return await service.get_organizer_pending_requests(user_id)
