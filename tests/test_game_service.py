"""Unit tests for GameService and ProfileService over the in-memory store."""

import asyncio

import pytest

from governor.adapters.store.in_memory import InMemoryDocumentStore
from governor.core.errors import (
    ConflictAppError,
    NotFoundAppError,
    PermissionAppError,
    RateLimitedAppError,
    ValidationAppError,
)
from governor.schemas.game import Coordinates, GameCreate, GameUpdate
from governor.schemas.profile import ProfileUpdate, SignInRequest
from governor.services.game_service import GameService


def _game_payload(**overrides) -> GameCreate:
    base = {
        "date": "2026-11-01",
        "time": "18:00",
        "players_needed": 3,
        "level": 3,
        "coordinates": Coordinates(lat=32.0853, lng=34.7692),
    }
    base.update(overrides)
    return GameCreate(**base)


async def _organizer(store, uid: str = "org-1", phone: str | None = "050-1234567") -> str:
    await store.set("users", uid, {"uid": uid, "name": "Organizer", "phone": phone, "level": 3})
    return uid


class TestGameReads:

    @pytest.mark.asyncio
    async def test_list_games_is_cached_and_deduplicated(self, game_service, store) -> None:
        organizer = await _organizer(store)
        await game_service.create_game(_game_payload(), organizer)
        store.operations.clear()

        results = await asyncio.gather(*(game_service.list_games() for _ in range(5)))
        assert all(len(games) == 1 for games in results)
        assert store.operations["list_all"] == 1

        await game_service.list_games()
        assert store.operations["list_all"] == 1

    @pytest.mark.asyncio
    async def test_list_games_hard_limit(self, game_service, governor) -> None:
        for _ in range(3):
            await game_service.list_games()
            governor.invalidate_cache("games")  # force each call to reach the store

        with pytest.raises(RateLimitedAppError):
            await game_service.list_games()

    @pytest.mark.asyncio
    async def test_poll_games_skips_when_throttled(self, game_service, governor, clock) -> None:
        for _ in range(3):
            governor.check_rate_limit("get_all_games")

        assert await game_service.poll_games() is None

        clock.advance(10)
        assert await game_service.poll_games() == []

    @pytest.mark.asyncio
    async def test_poll_games_serves_cache(self, game_service, store) -> None:
        await game_service.list_games()
        store.operations.clear()

        assert await game_service.poll_games() == []
        assert store.operation_count == 0

    @pytest.mark.asyncio
    async def test_poll_joins_in_flight_listing(self, governor) -> None:
        store = InMemoryDocumentStore(latency_seconds=0.01)
        service = GameService(store=store, governor=governor)

        listing, polled = await asyncio.gather(service.list_games(), service.poll_games())

        assert polled is listing
        assert store.operations["list_all"] == 1
        # Only the listing's read was charged against the quota.
        assert [governor.check_rate_limit("get_all_games") for _ in range(2)] == [True, True]

    @pytest.mark.asyncio
    async def test_poll_joining_throttled_listing_is_skipped(self, game_service, governor) -> None:
        for _ in range(3):
            governor.check_rate_limit("get_all_games")

        listing, polled = await asyncio.gather(
            game_service.list_games(), game_service.poll_games(), return_exceptions=True
        )

        assert isinstance(listing, RateLimitedAppError)
        assert polled is None

    @pytest.mark.asyncio
    async def test_poll_settling_after_sign_out_is_not_cached(self, governor) -> None:
        store = InMemoryDocumentStore(latency_seconds=0.01)
        service = GameService(store=store, governor=governor)

        pending = asyncio.create_task(service.poll_games())
        await asyncio.sleep(0)
        governor.clear_all()

        assert await pending == []
        assert governor.get_cached("games") is None

    @pytest.mark.asyncio
    async def test_get_game_missing_returns_none(self, game_service) -> None:
        assert await game_service.get_game("nope") is None

    @pytest.mark.asyncio
    async def test_store_failure_passes_through_uncached(self, game_service, store) -> None:
        store.fail_next(ConnectionError("network"))

        with pytest.raises(ConnectionError):
            await game_service.list_games()

        assert await game_service.list_games() == []


class TestGameWrites:

    @pytest.mark.asyncio
    async def test_create_game_sets_organizer_as_player(self, game_service, store) -> None:
        organizer = await _organizer(store)

        game = await game_service.create_game(_game_payload(), organizer)

        assert game.players == [organizer]
        assert game.current_players == 1
        assert (await game_service.get_game(game.id)).organizer_id == organizer

    @pytest.mark.asyncio
    async def test_create_game_invalidates_listing(self, game_service, store) -> None:
        organizer = await _organizer(store)
        assert await game_service.list_games() == []

        await game_service.create_game(_game_payload(), organizer)

        assert len(await game_service.list_games()) == 1

    @pytest.mark.asyncio
    async def test_one_active_game_per_organizer(self, game_service, store) -> None:
        organizer = await _organizer(store)
        await game_service.create_game(_game_payload(), organizer)

        with pytest.raises(ConflictAppError) as exc_info:
            await game_service.create_game(_game_payload(), organizer)
        assert exc_info.value.code == "game_already_exists"

    @pytest.mark.asyncio
    async def test_create_requires_phone(self, game_service, store) -> None:
        organizer = await _organizer(store, phone=None)

        with pytest.raises(ValidationAppError) as exc_info:
            await game_service.create_game(_game_payload(), organizer)
        assert exc_info.value.code == "phone_required"

    @pytest.mark.asyncio
    async def test_join_approve_flow(self, game_service, store) -> None:
        organizer = await _organizer(store)
        game = await game_service.create_game(_game_payload(), organizer)

        await game_service.request_to_join(game.id, "player-1")
        pending = await game_service.get_organizer_pending_requests(organizer)
        assert [(r.game_id, r.user_id) for r in pending] == [(game.id, "player-1")]

        with pytest.raises(ConflictAppError):
            await game_service.request_to_join(game.id, "player-1")

        await game_service.approve_request(game.id, "player-1", organizer)

        refreshed = await game_service.get_game(game.id)
        assert refreshed.players == [organizer, "player-1"]
        assert refreshed.pending_requests == []
        assert await game_service.get_organizer_pending_requests(organizer) == []

        with pytest.raises(ConflictAppError) as exc_info:
            await game_service.request_to_join(game.id, "player-1")
        assert exc_info.value.code == "already_joined"

    @pytest.mark.asyncio
    async def test_full_game_rejects_requests(self, game_service, store) -> None:
        organizer = await _organizer(store)
        game = await game_service.create_game(_game_payload(players_needed=2), organizer)
        await game_service.request_to_join(game.id, "p1")
        await game_service.approve_request(game.id, "p1", organizer)

        with pytest.raises(ConflictAppError) as exc_info:
            await game_service.request_to_join(game.id, "p2")
        assert exc_info.value.code == "game_full"

    @pytest.mark.asyncio
    async def test_reject_and_leave(self, game_service, store) -> None:
        organizer = await _organizer(store)
        game = await game_service.create_game(_game_payload(), organizer)
        await game_service.request_to_join(game.id, "p1")

        await game_service.reject_request(game.id, "p1", organizer)
        assert (await game_service.get_game(game.id)).pending_requests == []

        await game_service.leave_game(game.id, organizer)
        assert (await game_service.get_game(game.id)).current_players == 0

    @pytest.mark.asyncio
    async def test_only_organizer_may_manage(self, game_service, store) -> None:
        organizer = await _organizer(store)
        game = await game_service.create_game(_game_payload(), organizer)

        with pytest.raises(PermissionAppError):
            await game_service.delete_game(game.id, "intruder")
        with pytest.raises(PermissionAppError):
            await game_service.approve_request(game.id, "p1", "intruder")

    @pytest.mark.asyncio
    async def test_update_and_delete(self, game_service, store) -> None:
        organizer = await _organizer(store)
        game = await game_service.create_game(_game_payload(), organizer)
        assert (await game_service.get_game(game.id)).notes is None

        updated = await game_service.update_game(game.id, GameUpdate(notes="Bring water"), organizer)
        assert updated.notes == "Bring water"
        assert (await game_service.get_game(game.id)).notes == "Bring water"

        await game_service.delete_game(game.id, organizer)
        assert await game_service.get_game(game.id) is None

    @pytest.mark.asyncio
    async def test_missing_game(self, game_service) -> None:
        with pytest.raises(NotFoundAppError):
            await game_service.request_to_join("ghost", "p1")

    @pytest.mark.asyncio
    async def test_direct_join(self, game_service, store) -> None:
        organizer = await _organizer(store)
        game = await game_service.create_game(_game_payload(players_needed=2), organizer)
        assert (await game_service.get_game(game.id)).players == [organizer]

        await game_service.join_game(game.id, "p1")

        refreshed = await game_service.get_game(game.id)
        assert refreshed.players == [organizer, "p1"]
        assert refreshed.current_players == 2

        with pytest.raises(ConflictAppError) as exc_info:
            await game_service.join_game(game.id, "p1")
        assert exc_info.value.code == "already_joined"

        with pytest.raises(ConflictAppError) as exc_info:
            await game_service.join_game(game.id, "p2")
        assert exc_info.value.code == "game_full"

    @pytest.mark.asyncio
    async def test_game_deleted_between_read_and_write(self, game_service, store) -> None:
        organizer = await _organizer(store)
        game = await game_service.create_game(_game_payload(), organizer)
        await game_service.get_game(game.id)
        read = store.get

        async def read_then_delete(collection, doc_id):
            doc = await read(collection, doc_id)
            if collection == "games":
                await store.delete(collection, doc_id)
            return doc

        store.get = read_then_delete

        with pytest.raises(NotFoundAppError) as exc_info:
            await game_service.request_to_join(game.id, "p1")

        assert exc_info.value.code == "game_not_found"
        assert game_service.governor.get_cached(f"game:{game.id}") is None

    @pytest.mark.asyncio
    async def test_write_quota(self, game_service, store) -> None:
        organizer = await _organizer(store)
        game = await game_service.create_game(_game_payload(players_needed=10), organizer)

        for uid in ("a", "b", "c"):
            await game_service.request_to_join(game.id, uid)

        with pytest.raises(RateLimitedAppError):
            await game_service.request_to_join(game.id, "d")


class TestProfiles:

    @pytest.mark.asyncio
    async def test_sign_in_creates_profile_once(self, profile_service, store) -> None:
        first = await profile_service.sign_in(SignInRequest(uid="u1", email="a@b.c", name="Dana"))
        second = await profile_service.sign_in(SignInRequest(uid="u1", name="Changed"))

        assert first.level == 2
        assert second.name == "Dana"
        assert store.operations["set"] == 1

    @pytest.mark.asyncio
    async def test_profile_cache_invalidated_on_update(self, profile_service, store) -> None:
        await profile_service.sign_in(SignInRequest(uid="u1"))
        assert (await profile_service.get_profile("u1")).phone is None

        await profile_service.update_profile("u1", ProfileUpdate(phone="050-7654321"))

        assert (await profile_service.get_profile("u1")).phone == "050-7654321"

    @pytest.mark.asyncio
    async def test_update_missing_profile(self, profile_service) -> None:
        with pytest.raises(NotFoundAppError):
            await profile_service.update_profile("ghost", ProfileUpdate(level=3))

    @pytest.mark.asyncio
    async def test_sign_out_clears_session_state(self, profile_service, governor, store) -> None:
        await profile_service.sign_in(SignInRequest(uid="u1"))
        await profile_service.get_profile("u1")
        store.operations.clear()

        profile_service.sign_out()

        await profile_service.get_profile("u1")
        assert store.operations["get"] == 1
        assert governor.stats()["dedup"]["generation"] == 1
