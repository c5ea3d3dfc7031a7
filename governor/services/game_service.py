"""Pickup game operations routed through the request governor.

Every read goes through ``deduplicated_fetch`` with a namespaced cache key and
consults the rate limiter only when it actually reaches the store. Every
write checks its action quota up front and invalidates the cache families it
touched.

Cache keys:
- ``games``: the full game listing (shared by listing and polling)
- ``game:<id>``: one game
- ``pending:<organizer_id>``: join requests awaiting that organizer
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from governor.adapters.store.base import AbstractDocumentStore, Document, DocumentNotFoundError
from governor.core.errors import (
    ConflictAppError,
    NotFoundAppError,
    PermissionAppError,
    RateLimitedAppError,
    ValidationAppError,
)
from governor.core.logging import hash_key
from governor.schemas.game import Game, GameCreate, GameUpdate, PendingRequest
from governor.services.governor import RequestGovernor, governed_key

logger = logging.getLogger(__name__)

GAMES = "games"
USERS = "users"

ALL_GAMES_KEY = "games"


def game_key(game_id: str) -> str:
    return governed_key("game", game_id)


def pending_key(organizer_id: str) -> str:
    return governed_key("pending", organizer_id)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class GameService:
    """Game listing, creation and membership workflow.

    Attributes:
        store: Document store holding ``games`` and ``users``.
        governor: Governor shared with the rest of the session.
    """

    def __init__(self, store: AbstractDocumentStore, governor: RequestGovernor) -> None:
        self.store = store
        self.governor = governor

    # Reads

    async def list_games(self) -> list[Game]:
        """All games ordered by date (cached for the ``all_games`` TTL).

        Raises:
            RateLimitedAppError: If the listing quota is exhausted.
        """

        async def fetch() -> list[Game]:
            self.governor.check_rate_limit("get_all_games")
            return await self._read_all_games()

        return await self.governor.deduplicated_fetch(
            ALL_GAMES_KEY, fetch, cache_category="all_games"
        )

    async def poll_games(self) -> list[Game] | None:
        """Listing for polling loops.

        Shares the ``games`` cache entry and in-flight read with
        :meth:`list_games`. Quota is only spent when a new store read starts;
        when it is exhausted this returns None so the caller skips the cycle.
        """

        cached = self.governor.get_cached(ALL_GAMES_KEY)
        if cached is not None:
            return cached

        if not self.governor.is_in_flight(ALL_GAMES_KEY) and not self.governor.check_rate_limit(
            "get_all_games", soft_fail=True
        ):
            return None

        try:
            return await self.governor.deduplicated_fetch(
                ALL_GAMES_KEY, self._read_all_games, cache_category="all_games"
            )
        except RateLimitedAppError:
            # Joined a list_games() read that was throttled.
            return None

    async def get_game(self, game_id: str) -> Game | None:
        async def fetch() -> Game | None:
            self.governor.check_rate_limit("get_game_by_id")
            doc = await self.store.get(GAMES, game_id)
            return Game(**doc) if doc else None

        return await self.governor.deduplicated_fetch(
            game_key(game_id), fetch, cache_category="game_by_id"
        )

    async def get_organizer_pending_requests(self, organizer_id: str) -> list[PendingRequest]:
        """Join requests waiting on any of ``organizer_id``'s games."""

        async def fetch() -> list[PendingRequest]:
            self.governor.check_rate_limit("get_organizer_pending_requests")
            docs = await self.store.query(GAMES, "organizer_id", organizer_id)
            requests: list[PendingRequest] = []
            for doc in docs:
                for user_id in doc.get("pending_requests") or []:
                    requests.append(
                        PendingRequest(
                            game_id=doc["id"],
                            user_id=user_id,
                            game_name=f"Game on {doc.get('date')} at {doc.get('time')}",
                            date=doc.get("date", ""),
                            time=doc.get("time", ""),
                            coordinates=doc.get("coordinates"),
                        )
                    )
            return requests

        return await self.governor.deduplicated_fetch(
            pending_key(organizer_id), fetch, cache_category="pending_requests"
        )

    async def get_user_active_game(self, organizer_id: str) -> Game | None:
        """The game ``organizer_id`` currently organizes, if any (uncached)."""
        docs = await self.store.query(GAMES, "organizer_id", organizer_id)
        return Game(**docs[0]) if docs else None

    # Writes

    async def create_game(self, data: GameCreate, organizer_id: str) -> Game:
        """Create a game with the organizer as its first player.

        Raises:
            RateLimitedAppError: If the creation quota is exhausted.
            ConflictAppError: If the organizer already has a game.
            ValidationAppError: If the organizer has no phone number on file.
        """
        self.governor.check_rate_limit("create_game")

        if await self.get_user_active_game(organizer_id) is not None:
            raise ConflictAppError(
                code="game_already_exists",
                message="You already organize a game. Delete it before creating a new one.",
                details={"user_id": organizer_id},
            )

        organizer = await self.store.get(USERS, organizer_id)
        if not organizer or not organizer.get("phone"):
            raise ValidationAppError(
                code="phone_required",
                message="Add a phone number to your profile before creating a game.",
                details={"hint": "PATCH /v1/profiles/me with a phone number"},
            )

        now = _now()
        doc: Document = {
            **data.model_dump(mode="json"),
            "organizer_id": organizer_id,
            "players": [organizer_id],
            "pending_requests": [],
            "current_players": 1,
            "created_at": now,
            "updated_at": now,
        }
        game_id = await self.store.add(GAMES, doc)
        self.governor.invalidate_cache(ALL_GAMES_KEY)

        logger.info(
            "game.created",
            extra={"game_id": game_id, "organizer": hash_key(organizer_id)},
        )
        return Game(id=game_id, **doc)

    async def update_game(self, game_id: str, changes: GameUpdate, organizer_id: str) -> Game:
        """Apply organizer edits to a game.

        Raises:
            NotFoundAppError: If the game does not exist.
            PermissionAppError: If the caller is not the organizer.
        """
        self.governor.check_rate_limit("update_game")
        game = await self._load_owned(game_id, organizer_id, verb="update")

        fields: dict[str, Any] = changes.model_dump(mode="json", exclude_none=True)
        if "players_needed" in fields and fields["players_needed"] < len(game["players"]):
            raise ConflictAppError(
                code="players_needed_too_low",
                message="Cannot need fewer players than have already joined.",
                details={"game_id": game_id},
            )
        fields["updated_at"] = _now()
        await self._update(game_id, fields)
        self._invalidate_game(game_id, organizer_id)
        return Game(**{**game, **fields})

    async def delete_game(self, game_id: str, organizer_id: str) -> None:
        self.governor.check_rate_limit("delete_game")
        await self._load_owned(game_id, organizer_id, verb="delete")
        await self.store.delete(GAMES, game_id)
        self._invalidate_game(game_id, organizer_id)
        logger.info("game.deleted", extra={"game_id": game_id})

    async def request_to_join(self, game_id: str, user_id: str) -> None:
        """Add ``user_id`` to the game's pending requests.

        Raises:
            ConflictAppError: If already a player, already pending, or full.
        """
        self.governor.check_rate_limit("request_to_join")
        game = await self._load(game_id)

        players = game.get("players") or []
        pending = game.get("pending_requests") or []
        if user_id in players:
            raise ConflictAppError(code="already_joined", message="You already joined this game.")
        if user_id in pending:
            raise ConflictAppError(
                code="already_requested", message="You already requested to join this game."
            )
        if len(players) >= game["players_needed"]:
            raise ConflictAppError(code="game_full", message="This game is full.")

        await self._update(
            game_id,
            {"pending_requests": [*pending, user_id], "updated_at": _now()},
        )
        self._invalidate_game(game_id, game["organizer_id"])

    async def join_game(self, game_id: str, user_id: str) -> None:
        """Add ``user_id`` to the players directly, without organizer approval.

        Raises:
            ConflictAppError: If already a player or the game is full.
        """
        self.governor.check_rate_limit("join_game")
        game = await self._load(game_id)

        players = list(game.get("players") or [])
        if user_id in players:
            raise ConflictAppError(code="already_joined", message="You already joined this game.")
        if len(players) >= game["players_needed"]:
            raise ConflictAppError(code="game_full", message="This game is full.")

        players.append(user_id)
        await self._update(
            game_id,
            {"players": players, "current_players": len(players), "updated_at": _now()},
        )
        self._invalidate_game(game_id, game["organizer_id"])

    async def approve_request(self, game_id: str, user_id: str, organizer_id: str) -> None:
        """Move ``user_id`` from pending requests to players."""
        self.governor.check_rate_limit("approve_request")
        game = await self._load_owned(game_id, organizer_id, verb="approve requests for")

        players = list(game.get("players") or [])
        if len(players) >= game["players_needed"]:
            raise ConflictAppError(code="game_full", message="This game is full.")

        pending = [uid for uid in game.get("pending_requests") or [] if uid != user_id]
        if user_id not in players:
            players.append(user_id)

        await self._update(
            game_id,
            {
                "players": players,
                "pending_requests": pending,
                "current_players": len(players),
                "updated_at": _now(),
            },
        )
        self._invalidate_game(game_id, organizer_id)

    async def reject_request(self, game_id: str, user_id: str, organizer_id: str) -> None:
        self.governor.check_rate_limit("reject_request")
        game = await self._load_owned(game_id, organizer_id, verb="reject requests for")
        pending = [uid for uid in game.get("pending_requests") or [] if uid != user_id]
        await self._update(
            game_id, {"pending_requests": pending, "updated_at": _now()}
        )
        self._invalidate_game(game_id, organizer_id)

    async def leave_game(self, game_id: str, user_id: str) -> None:
        self.governor.check_rate_limit("leave_game")
        game = await self._load(game_id)
        players = [uid for uid in game.get("players") or [] if uid != user_id]
        await self._update(
            game_id,
            {"players": players, "current_players": len(players), "updated_at": _now()},
        )
        self._invalidate_game(game_id, game["organizer_id"])

    # Helpers

    async def _read_all_games(self) -> list[Game]:
        docs = await self.store.list_all(GAMES, order_by="date")
        return [Game(**doc) for doc in docs]

    async def _load(self, game_id: str) -> Document:
        # Writes always read fresh state, never the cache.
        doc = await self.store.get(GAMES, game_id)
        if doc is None:
            raise NotFoundAppError(
                code="game_not_found",
                message="Game not found.",
                details={"game_id": game_id},
            )
        return doc

    async def _update(self, game_id: str, fields: Document) -> None:
        try:
            await self.store.update(GAMES, game_id, fields)
        except DocumentNotFoundError:
            # Deleted between the read and this write.
            self._invalidate_game(game_id, None)
            raise NotFoundAppError(
                code="game_not_found",
                message="Game not found.",
                details={"game_id": game_id},
            ) from None

    async def _load_owned(self, game_id: str, organizer_id: str, *, verb: str) -> Document:
        doc = await self._load(game_id)
        if doc.get("organizer_id") != organizer_id:
            raise PermissionAppError(
                code="not_organizer",
                message=f"Only the organizer can {verb} this game.",
                details={"game_id": game_id},
            )
        return doc

    def _invalidate_game(self, game_id: str, organizer_id: str | None) -> None:
        self.governor.invalidate_cache(game_key(game_id))
        self.governor.invalidate_cache(ALL_GAMES_KEY)
        if organizer_id:
            self.governor.invalidate_cache(pending_key(organizer_id))
