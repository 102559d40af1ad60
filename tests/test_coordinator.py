import asyncio
import random
from dataclasses import replace

from kingsir.cards import Card, Rank, Suit
from kingsir.client import GameClient, start_game
from kingsir.coordinator import TurnCoordinator, needs_autoplay
from kingsir.rules import initialize_game, round_score, set_connected
from kingsir.state import Difficulty, GameState, Phase, PlayerState
from kingsir.store import InMemoryStore
from kingsir.verbose_logger import VerboseTurnLogger

ROOM = "ROOM"


def C(rank: Rank, suit: Suit) -> Card:
    return Card(suit, rank)


class PublishOnlyStore:
    """A store without compare-and-publish; only the local token check guards it."""

    def __init__(self, inner: InMemoryStore) -> None:
        self.inner = inner

    def subscribe(self, room_code, on_change):
        return self.inner.subscribe(room_code, on_change)

    async def publish(self, room_code, state):
        await self.inner.publish(room_code, state)


def _ai_turn_state() -> GameState:
    """Bidding with an AI seat to act and three human seats watching."""
    players = [
        PlayerState(id="h0", name="Ann"),
        PlayerState(id="a1", name="Bot", is_ai=True, ai_difficulty=Difficulty.HARD),
        PlayerState(id="h2", name="Ben"),
        PlayerState(id="h3", name="Cat"),
    ]
    state = initialize_game(ROOM, "h0", players, random.Random(6))
    return replace(state, current_player_index=1, round_starter_index=1)


def _coordinators(store, client_ids, **options):
    options.setdefault("think_delay", (0.0, 0.0))
    options.setdefault("advance_delay", 60.0)
    return [
        TurnCoordinator(store, ROOM, cid, rng=random.Random(i), **options)
        for i, cid in enumerate(client_ids)
    ]


async def _spin(seconds: float = 0.0, rounds: int = 20) -> None:
    for _ in range(rounds):
        await asyncio.sleep(seconds)


def test_needs_autoplay():
    assert needs_autoplay(PlayerState(id="a", name="A", is_ai=True))
    assert needs_autoplay(PlayerState(id="h", name="H", connected=False))
    assert not needs_autoplay(PlayerState(id="h", name="H"))


def test_only_one_racing_coordinator_publishes(tmp_path):
    store = InMemoryStore()
    turn_logger = VerboseTurnLogger(tmp_path / "turns.log")

    async def scenario():
        await store.publish(ROOM, _ai_turn_state())
        coords = _coordinators(store, ["h0", "h2", "h3"], turn_logger=turn_logger)
        for c in coords:
            c.start()
        await _spin()
        for c in coords:
            c.stop()
        return coords

    coords = asyncio.run(scenario())

    assert store.room(ROOM).revision == 2
    assert sum(c.published for c in coords) == 1
    assert sum(c.races_lost for c in coords) == 2
    final = store.read(ROOM)
    assert final.players[1].has_bid
    assert final.current_player_index == 2

    assert turn_logger.stale_count == 2
    turn_logger.flush()
    lines = (tmp_path / "turns.log").read_text(encoding="utf-8").splitlines()
    assert len(lines) == 3
    assert sum(line.endswith("-> published") for line in lines) == 1
    assert "Round: 1 | Trick: 0 | Phase: bidding | Seat: 1" in lines[0]


def test_local_token_check_guards_publish_only_store():
    inner = InMemoryStore()
    store = PublishOnlyStore(inner)

    async def scenario():
        await inner.publish(ROOM, _ai_turn_state())
        coords = _coordinators(store, ["h0", "h2"])
        for c in coords:
            c.start()
        await _spin()
        for c in coords:
            c.stop()
        return coords

    coords = asyncio.run(scenario())

    assert inner.room(ROOM).revision == 2
    assert sum(c.published for c in coords) == 1
    assert sum(c.races_lost for c in coords) == 1


def test_store_check_catches_writes_in_flight():
    # With write latency both local checks pass; the store admits one write.
    store = InMemoryStore(latency=0.01)

    async def scenario():
        await store.publish(ROOM, _ai_turn_state())
        coords = _coordinators(store, ["h0", "h2"])
        for c in coords:
            c.start()
        await _spin(0.01, rounds=10)
        for c in coords:
            c.stop()
        return coords

    coords = asyncio.run(scenario())

    assert store.room(ROOM).revision == 2
    assert sum(c.published for c in coords) == 1
    assert sum(c.races_lost for c in coords) == 1


def test_coordinator_waits_for_human_turns():
    store = InMemoryStore()
    state = replace(_ai_turn_state(), current_player_index=0)

    async def scenario():
        await store.publish(ROOM, state)
        coords = _coordinators(store, ["h0", "h2"])
        for c in coords:
            c.start()
        await _spin()
        busy = [c.busy for c in coords]
        for c in coords:
            c.stop()
        return busy

    assert asyncio.run(scenario()) == [False, False]
    assert store.room(ROOM).revision == 1


def test_disconnected_seat_is_autopiloted():
    store = InMemoryStore()
    players = [
        PlayerState(id="h0", name="Ann"),
        PlayerState(id="h1", name="Ben", connected=False),
        PlayerState(id="a2", name="Bot", is_ai=True, ai_difficulty=Difficulty.EASY),
    ]
    state = initialize_game(ROOM, "h0", players, random.Random(2))
    state = replace(state, current_player_index=1, round_starter_index=1)

    async def scenario():
        await store.publish(ROOM, state)
        # h1's own coordinator sits out while its seat is disconnected.
        coords = _coordinators(store, ["h0", "h1"], autopilot=Difficulty.HARD)
        for c in coords:
            c.start()
        await _spin()
        for c in coords:
            c.stop()
        return coords

    coords = asyncio.run(scenario())

    final = store.read(ROOM)
    assert final.players[1].has_bid
    assert final.players[2].has_bid
    assert not final.players[0].has_bid
    assert final.current_player_index == 0
    assert coords[0].published == 2
    assert coords[1].published == 0
    # The disconnected seat stays a human seat.
    assert not final.players[1].is_ai


def test_seat_leaving_while_ai_thinks_is_kept():
    store = InMemoryStore()

    async def scenario():
        await store.publish(ROOM, _ai_turn_state())
        coordinator = _coordinators(store, ["h0"], think_delay=(0.05, 0.05))[0]
        coordinator.start()
        await asyncio.sleep(0.01)
        # Ben's client drops before the bot has bid.
        await store.publish(ROOM, set_connected(store.read(ROOM), "h2", False))
        await _spin(0.01, rounds=30)
        coordinator.stop()
        return coordinator

    coordinator = asyncio.run(scenario())

    final = store.read(ROOM)
    assert final.players[1].has_bid
    assert final.players[2].connected is False
    # Ben's seat is now on autopilot and has bid too.
    assert final.players[2].has_bid
    assert not final.players[3].has_bid
    assert final.current_player_index == 3
    assert coordinator.races_lost == 0


def test_seat_returning_while_ai_thinks_is_kept():
    store = InMemoryStore()
    state = set_connected(_ai_turn_state(), "h2", False)

    async def scenario():
        await store.publish(ROOM, state)
        coordinator = _coordinators(store, ["h0"], think_delay=(0.05, 0.05))[0]
        coordinator.start()
        await asyncio.sleep(0.01)
        await store.publish(ROOM, set_connected(store.read(ROOM), "h2", True))
        await _spin(0.01, rounds=30)
        coordinator.stop()
        return coordinator

    coordinator = asyncio.run(scenario())

    final = store.read(ROOM)
    assert final.players[1].has_bid
    assert final.players[2].connected is True
    # Ben is back in time to make his own bid.
    assert not final.players[2].has_bid
    assert final.current_player_index == 2
    assert coordinator.published == 1


def _two_card_state() -> GameState:
    """Last two tricks of round 16; Ann holds the best heart and leads."""
    players = (
        PlayerState(id="h0", name="Ann", hand=(C(Rank.ACE, Suit.HEARTS), C(Rank.NINE, Suit.SPADES))),
        PlayerState(
            id="a1", name="Bot", is_ai=True, ai_difficulty=Difficulty.HARD, bid=0,
            hand=(C(Rank.TWO, Suit.HEARTS), C(Rank.THREE, Suit.CLUBS)),
        ),
        PlayerState(
            id="a2", name="Bot 2", is_ai=True, ai_difficulty=Difficulty.MEDIUM, bid=0,
            hand=(C(Rank.FIVE, Suit.HEARTS), C(Rank.FOUR, Suit.DIAMONDS)),
        ),
    )
    players = (replace(players[0], bid=1),) + players[1:]
    return GameState(
        room_code=ROOM,
        host_id="h0",
        phase=Phase.PLAYING,
        players=players,
        current_round=16,
        cards_per_player=2,
        current_player_index=0,
        trump_suit=Suit.CLUBS,
        highest_bidder_id="h0",
    )


def test_acknowledged_trick_cancels_timed_advance():
    store = InMemoryStore()

    async def scenario():
        await store.publish(ROOM, _two_card_state())
        client = GameClient(
            store, ROOM, "h0", rng=random.Random(1), think_delay=(0.0, 0.0), advance_delay=0.05
        )
        await client.connect()
        await client.play_card(C(Rank.ACE, Suit.HEARTS))
        result = await client.wait_for(
            lambda s: s is not None and s.phase == Phase.TRICK_RESULT, timeout=2
        )
        assert result.trick_winner_id == "h0"
        await client.acknowledge_result()
        await asyncio.sleep(0.15)
        client.close()
        return client.coordinator

    coordinator = asyncio.run(scenario())

    final = store.read(ROOM)
    assert final.phase == Phase.PLAYING
    assert final.trick_number == 1
    assert final.current_player_index == 0
    # initial, human card, two AI cards, acknowledgement
    assert store.room(ROOM).revision == 5
    assert coordinator.published == 2
    # The timer was dropped when the trick was acknowledged, not when it fired.
    assert coordinator.races_lost == 0
    assert not coordinator.busy


def test_next_trick_result_gets_its_own_timer():
    store = InMemoryStore()

    async def scenario():
        await store.publish(ROOM, _two_card_state())
        client = GameClient(
            store, ROOM, "h0", rng=random.Random(1), think_delay=(0.0, 0.0), advance_delay=0.3
        )
        await client.connect()
        await client.play_card(C(Rank.ACE, Suit.HEARTS))
        await client.wait_for(
            lambda s: s is not None and s.phase == Phase.TRICK_RESULT, timeout=2
        )
        await client.acknowledge_result()
        await client.play_card(C(Rank.NINE, Suit.SPADES))
        second = await client.wait_for(
            lambda s: s is not None and s.phase == Phase.TRICK_RESULT, timeout=2
        )
        loop = asyncio.get_running_loop()
        shown = loop.time()
        final = await client.wait_for(
            lambda s: s is not None and s.phase == Phase.ROUND_END, timeout=2
        )
        elapsed = loop.time() - shown
        client.close()
        return second, final, elapsed, client.coordinator

    second, final, elapsed, coordinator = asyncio.run(scenario())

    # Clubs are trump and Bot ruffs the spade lead.
    assert second.trick_number == 1
    assert second.trick_winner_id == "a1"
    assert final.players[1].tricks_won == 1
    # One advance delay, not the remainder of the first trick's timer plus another.
    assert 0.25 <= elapsed < 0.5
    assert coordinator.races_lost == 0


def test_spectators_play_a_whole_game_without_double_writes():
    store = InMemoryStore(collapse_empty=True)
    lobby = [
        {"id": f"ai-{i}", "name": f"Bot {i}", "isAI": True, "aiDifficulty": d}
        for i, d in enumerate(["easy", "medium", "hard", "hard"])
    ]
    round_ends = []

    def record(state):
        if state is not None and state.phase == Phase.ROUND_END:
            round_ends.append(state)

    async def scenario():
        await start_game(store, ROOM, "host", lobby, rng=random.Random(3), start_round=12)
        store.subscribe(ROOM, record)
        coords = _coordinators(
            store,
            ["driver-0", "driver-1"],
            advance_delay=0.0,
            next_round_delay=0.0,
            spectator=True,
        )
        for c in coords:
            c.start()

        async def finished():
            while store.read(ROOM).phase != Phase.GAME_OVER:
                await asyncio.sleep(0.01)

        await asyncio.wait_for(finished(), timeout=10)
        for c in coords:
            c.stop()
        return coords

    coords = asyncio.run(scenario())

    # start; round 12: 4 bids, trump, 2 x (4 cards + advance);
    # next round; round 13: 4 bids, trump, 4 cards, advance; game over
    assert store.room(ROOM).revision == 28
    assert sum(c.published for c in coords) == 27

    assert [s.current_round for s in round_ends] == [12, 13]
    last = round_ends[-1]
    for before, after in zip(round_ends[0].players, last.players):
        assert after.score == before.score + round_score(after.bid, after.tricks_won)
    assert sum(p.tricks_won for p in last.players) == 1


def test_deleted_room_stops_coordination():
    store = InMemoryStore()

    async def scenario():
        await store.publish(ROOM, replace(_ai_turn_state(), current_player_index=0))
        coordinator = _coordinators(store, ["h0"])[0]
        coordinator.start()
        store.delete_room(ROOM)
        await _spin()
        coordinator.stop()
        return coordinator

    coordinator = asyncio.run(scenario())
    assert coordinator.room_closed
    assert coordinator.state is None


def test_room_without_document_is_not_closed():
    store = InMemoryStore()

    async def scenario():
        coordinator = _coordinators(store, ["h0"])[0]
        coordinator.start()
        await _spin()
        closed = coordinator.room_closed
        await store.publish(ROOM, _ai_turn_state())
        await _spin()
        coordinator.stop()
        return closed, coordinator

    closed, coordinator = asyncio.run(scenario())
    assert not closed
    assert coordinator.published == 1
