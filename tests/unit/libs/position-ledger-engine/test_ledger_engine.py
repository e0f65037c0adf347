# tests/unit/libs/position-ledger-engine/test_ledger_engine.py
from decimal import Decimal

import pytest

from portfolio_common.event_store import InMemoryEventStore
from portfolio_common.exceptions import InsufficientQuantityError
from position_ledger_engine.ledger_engine import LedgerEngine
from position_ledger_engine.models import PositionStatus

pytestmark = pytest.mark.asyncio


def _figures(position):
    return (position.quantity, position.average_price, position.cost_basis, position.realized_gain)


@pytest.fixture
def engine(event_store) -> LedgerEngine:
    return LedgerEngine(event_store)


async def _append_all(store, events):
    return [await store.append(event) for event in events]


# --- Scenarios ---

async def test_buy_and_sell_everything_at_cost(event_store, engine, operation):
    await _append_all(event_store, [
        operation("purchase", 500, 10, day=0),
        operation("sale", 500, 10, day=1),
    ])

    position = await engine.compute_position("P1", "PETR4")

    assert position.quantity == 0
    assert position.cost_basis == 0
    assert position.realized_gain == 0
    assert position.average_price == Decimal("10")
    assert not position.is_open


async def test_two_for_one_split(event_store, engine, operation, split):
    await _append_all(event_store, [operation("purchase", 500, 4, day=0), split(2, day=1)])

    position = await engine.compute_position("P1", "PETR4")

    assert _figures(position) == (Decimal("1000"), Decimal("2"), Decimal("2000"), Decimal("0"))


async def test_mixed_trades_average_cost(event_store, engine, operation):
    """
    GIVEN buy 100 @ 10, sell 50 @ 12, buy 50 @ 4, buy 50 @ 10
    WHEN the position is computed
    THEN the cost basis is 1200 over 150 units and 100 was realized on the sale
    """
    await _append_all(event_store, [
        operation("purchase", 100, 10, day=0),
        operation("sale", 50, 12, day=1),
        operation("purchase", 50, 4, day=2),
        operation("purchase", 50, 10, day=3),
    ])

    position = await engine.compute_position("P1", "PETR4")

    assert _figures(position) == (Decimal("150"), Decimal("8"), Decimal("1200"), Decimal("100"))
    assert position.event_count == 4
    assert len(position.sales) == 1


async def test_insufficient_quantity_flags_scope(event_store, engine, operation):
    """
    GIVEN 100 units bought and a sale of 200
    WHEN the position is computed
    THEN it keeps 100 units, is flagged inconsistent and names the sale
    """
    _, sale_id = await _append_all(event_store, [
        operation("purchase", 100, 10, day=0),
        operation("sale", 200, 10, day=1),
    ])

    position = await engine.compute_position("P1", "PETR4")

    assert position.quantity == Decimal("100")
    assert position.status == PositionStatus.INCONSISTENT
    assert [e.event_id for e in position.errors] == [sale_id]
    with pytest.raises(InsufficientQuantityError):
        position.raise_for_errors()


async def test_replay_stops_at_first_invalid_sale(event_store, engine, operation):
    await _append_all(event_store, [
        operation("purchase", 100, 10, day=0),
        operation("sale", 200, 10, day=1),
        operation("purchase", 100, 10, day=2),
    ])

    position = await engine.compute_position("P1", "PETR4")

    assert position.quantity == Decimal("100")
    assert position.event_count == 1


async def test_removing_invalid_sale_restores_consistency(event_store, engine, operation):
    _, sale_id, _ = await _append_all(event_store, [
        operation("purchase", 100, 10, day=0),
        operation("sale", 200, 10, day=1),
        operation("purchase", 100, 10, day=2),
    ])
    assert not (await engine.compute_position("P1", "PETR4")).is_consistent

    await event_store.remove(sale_id)
    position = await engine.compute_position("P1", "PETR4")

    assert position.is_consistent
    assert position.quantity == Decimal("200")


async def test_invalid_scope_does_not_affect_others(event_store, engine, operation):
    await _append_all(event_store, [
        operation("purchase", 100, 10, day=0, portfolios=["P1", "P2"]),
        operation("sale", 150, 10, day=1, portfolios=["P1"]),
        operation("purchase", 10, 20, day=1, symbol="VALE3", portfolios=["P1"]),
    ])

    positions = await engine.compute_positions_for_portfolio("P1")
    other = await engine.compute_position("P2", "PETR4")

    assert not positions["PETR4"].is_consistent
    assert positions["VALE3"].is_consistent
    assert positions["VALE3"].quantity == Decimal("10")
    assert other.is_consistent
    assert other.quantity == Decimal("100")


async def test_fan_out_applies_event_to_each_portfolio(event_store, engine, operation, split):
    await _append_all(event_store, [
        operation("purchase", 100, 10, day=0, portfolios=["P1", "P2"]),
        split(2, day=1, portfolios=["P1", "P2"]),
    ])

    p1 = await engine.compute_position("P1", "PETR4")
    p2 = await engine.compute_position("P2", "PETR4")

    assert _figures(p1) == _figures(p2) == (Decimal("200"), Decimal("5"), Decimal("1000"), Decimal("0"))


async def test_as_of_returns_historical_position(event_store, engine, operation, at):
    await _append_all(event_store, [
        operation("purchase", 100, 10, day=0),
        operation("purchase", 100, 20, day=2),
    ])

    before = await engine.compute_position("P1", "PETR4", as_of=at(1))
    latest = await engine.compute_position("P1", "PETR4")
    before_any = await engine.compute_position("P1", "PETR4", as_of=at(-1))

    assert before.quantity == Decimal("100")
    assert latest.quantity == Decimal("200")
    assert before_any.quantity == 0
    assert before_any.event_count == 0


async def test_unknown_scope_is_empty_position(engine):
    position = await engine.compute_position("P1", "NOPE3")
    assert position.quantity == 0
    assert position.is_consistent


# --- Properties ---

async def test_replay_is_deterministic(event_store, operation, split):
    await _append_all(event_store, [
        operation("purchase", 33, "10.01", day=0, fees="0.7"),
        operation("purchase", 17, "9.99", day=1),
        split(3, day=2),
        operation("sale", 41, "4.5", day=3, fees="1"),
        split(3, day=4, kind="reverse-split"),
    ])

    first = await LedgerEngine(event_store).compute_position("P1", "PETR4")
    second = await LedgerEngine(event_store).compute_position("P1", "PETR4")

    assert first == second


async def test_checkpointed_replay_matches_full_replay(event_store, engine, operation, split):
    """
    GIVEN a cached replay of a scope
    WHEN events are appended after and before the cached ones, and one is edited
    THEN every recomputation equals a replay from scratch
    """
    await _append_all(event_store, [operation("purchase", 100, 10, day=0), operation("sale", 20, 11, day=2)])
    await engine.compute_position("P1", "PETR4")

    await event_store.append(operation("purchase", 40, 12, day=5))
    assert await engine.compute_position("P1", "PETR4") == await LedgerEngine(event_store).compute_position("P1", "PETR4")

    backdated = await event_store.append(split(2, day=1))
    assert await engine.compute_position("P1", "PETR4") == await LedgerEngine(event_store).compute_position("P1", "PETR4")

    await event_store.update(backdated, {"factor": "4"})
    position = await engine.compute_position("P1", "PETR4")
    assert position == await LedgerEngine(event_store).compute_position("P1", "PETR4")
    assert position.quantity == Decimal("420")


async def test_split_preserves_value(event_store, engine, operation, split):
    await _append_all(event_store, [operation("purchase", 300, "12.5", day=0), split(5, day=1)])
    before, after = await engine.position_history("P1", "PETR4")

    assert after.cost_basis == before.cost_basis
    # Value at the pre-split price equals value at the adjusted price.
    assert before.quantity * Decimal("20") == after.quantity * (Decimal("20") / 5)


async def test_realized_gain_changes_only_on_sales(event_store, engine, operation, split):
    await _append_all(event_store, [
        operation("purchase", 100, 10, day=0),
        operation("sale", 10, 15, day=1),
        split(2, day=2),
        operation("purchase", 10, 1, day=3),
        operation("sale", 30, 3, day=4),
    ])

    history = await engine.position_history("P1", "PETR4")
    kinds = ["purchase", "sale", "split", "purchase", "sale"]

    for previous, current, kind in zip(history, history[1:], kinds[1:]):
        if kind != "sale":
            assert current.realized_gain == previous.realized_gain
    assert history[1].realized_gain == Decimal("50")


async def test_disjoint_scopes_are_order_independent(operation):
    events = [
        operation("purchase", 100, 10, day=0, portfolios=["P1"]),
        operation("purchase", 50, 20, day=0, portfolios=["P2"]),
        operation("sale", 30, 12, day=1, portfolios=["P1"]),
        operation("sale", 10, 25, day=1, portfolios=["P2"]),
    ]
    forward, backward = InMemoryEventStore(), InMemoryEventStore()
    await _append_all(forward, events)
    await _append_all(backward, [events[1], events[3], events[0], events[2]])

    for portfolio_id in ("P1", "P2"):
        a = await LedgerEngine(forward).compute_position(portfolio_id, "PETR4")
        b = await LedgerEngine(backward).compute_position(portfolio_id, "PETR4")
        assert _figures(a) == _figures(b)


# --- Checkpoints ---

async def test_position_history_has_one_snapshot_per_event(event_store, engine, operation):
    await _append_all(event_store, [operation("purchase", 1, 10, day=d) for d in range(4)])

    history = await engine.position_history("P1", "PETR4")

    assert [p.quantity for p in history] == [1, 2, 3, 4]


async def test_invalidate_from_drops_later_checkpoints_of_scope_only(event_store, engine, operation, at):
    await _append_all(event_store, [
        operation("purchase", 1, 10, day=d, portfolios=["P1", "P2"]) for d in range(4)
    ])
    await engine.compute_position("P1", "PETR4")
    await engine.compute_position("P2", "PETR4")

    assert engine.invalidate_from("P1", "PETR4", at(2)) == 2
    assert engine.invalidate_from("P1", "PETR4", at(2)) == 0
    assert engine.invalidate_from("P2", "PETR4", at(3)) == 1
    assert engine.invalidate_from("P9", "PETR4", at(0)) == 0
    assert (await engine.compute_position("P1", "PETR4")).quantity == Decimal("4")


async def test_checkpoints_share_one_sales_list(event_store, engine, operation, at):
    """
    GIVEN a scope with three sales among its events
    WHEN positions are computed, partly invalidated and recomputed
    THEN each position carries the sales up to it while checkpoints store none
    """
    await _append_all(event_store, [
        operation("purchase", 100, 10, day=0),
        operation("sale", 10, 11, day=1),
        operation("sale", 10, 12, day=2),
        operation("purchase", 5, 9, day=3),
        operation("sale", 10, 13, day=4),
    ])

    history = await engine.position_history("P1", "PETR4")
    assert [len(p.sales) for p in history] == [0, 1, 2, 2, 3]
    assert [s.sell_price for s in history[-1].sales] == [Decimal("11"), Decimal("12"), Decimal("13")]
    assert all(not snapshot.sales for snapshot in engine._histories[("P1", "PETR4")].snapshots)

    engine.invalidate_from("P1", "PETR4", at(2))
    position = await engine.compute_position("P1", "PETR4")

    assert position == await LedgerEngine(event_store).compute_position("P1", "PETR4")
    assert len(position.sales) == 3
    assert (await engine.compute_position("P1", "PETR4", as_of=at(1))).sales == history[1].sales


async def test_scope_emptied_by_removals_drops_its_checkpoints(event_store, engine, operation):
    ids = await _append_all(event_store, [operation("purchase", 10, 10, day=d) for d in range(3)])
    await engine.compute_position("P1", "PETR4")

    for event_id in ids:
        await event_store.remove(event_id)
    position = await engine.compute_position("P1", "PETR4")

    assert position.quantity == 0
    assert ("P1", "PETR4") not in engine._histories
