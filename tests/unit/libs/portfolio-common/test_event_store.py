# tests/unit/libs/portfolio-common/test_event_store.py
import pytest

from portfolio_common.event_store import EventScope
from portfolio_common.exceptions import EventValidationError, NotFoundError

pytestmark = pytest.mark.asyncio


async def test_append_assigns_identity(event_store, operation):
    # Arrange
    event = operation("purchase", 100, 10)

    # Act
    event_id = await event_store.append(event)
    stored = await event_store.get(event_id)

    # Assert
    assert stored.event_id == event_id
    assert stored.sequence == 1
    assert stored.revision == 1
    assert stored.quantity == event.quantity


async def test_list_ordered_sorts_by_time_then_sequence(event_store, operation):
    """
    GIVEN events appended out of time order, two of them at the same time
    WHEN the scope is listed
    THEN they come back by time, and same-time events in insertion order
    """
    late = await event_store.append(operation("purchase", 1, 10, day=5))
    tie_first = await event_store.append(operation("purchase", 2, 10, day=1))
    tie_second = await event_store.append(operation("sale", 1, 10, day=1))
    early = await event_store.append(operation("purchase", 3, 10, day=0))

    events = await event_store.list_ordered(EventScope(symbol="PETR4", portfolio_id="P1"))

    assert [e.event_id for e in events] == [early, tie_first, tie_second, late]


async def test_list_ordered_filters_portfolio_symbol_and_time(event_store, operation, at):
    await event_store.append(operation("purchase", 1, 10, day=0, portfolios=["P1", "P2"]))
    await event_store.append(operation("purchase", 1, 10, day=1, portfolios=["P2"]))
    await event_store.append(operation("purchase", 1, 10, day=2, symbol="VALE3"))
    await event_store.append(operation("purchase", 1, 10, day=3))

    p1 = await event_store.list_ordered(EventScope(symbol="PETR4", portfolio_id="P1"))
    p2 = await event_store.list_ordered(EventScope(symbol="PETR4", portfolio_id="P2"))
    all_petr = await event_store.list_ordered(EventScope(symbol="PETR4"))
    until = await event_store.list_ordered(EventScope(symbol="PETR4", portfolio_id="P1"), until=at(2))

    assert len(p1) == 2
    assert len(p2) == 2
    assert len(all_petr) == 3
    assert len(until) == 1


async def test_update_keeps_id_and_sequence_and_bumps_revision(event_store, operation, at):
    event_id = await event_store.append(operation("purchase", 100, 10, day=3))

    before, after = await event_store.update(event_id, {"time": at(0).isoformat(), "quantity": "50"})

    assert before.revision == 1
    assert after.revision == 2
    assert after.event_id == before.event_id
    assert after.sequence == before.sequence
    assert after.time == at(0)
    assert (await event_store.get(event_id)).quantity == 50


async def test_update_moves_event_in_order(event_store, operation, at):
    moved = await event_store.append(operation("purchase", 1, 10, day=5))
    other = await event_store.append(operation("purchase", 1, 10, day=2))

    await event_store.update(moved, {"time": at(1).isoformat()})
    events = await event_store.list_ordered(EventScope(symbol="PETR4"))

    assert [e.event_id for e in events] == [moved, other]


async def test_update_rejects_invalid_patch(event_store, operation):
    event_id = await event_store.append(operation("purchase", 1, 10))

    with pytest.raises(EventValidationError):
        await event_store.update(event_id, {"quantity": "0"})

    assert (await event_store.get(event_id)).revision == 1


async def test_remove_returns_event(event_store, operation):
    event_id = await event_store.append(operation("purchase", 1, 10))

    removed = await event_store.remove(event_id)

    assert removed.event_id == event_id
    assert len(event_store) == 0
    assert await event_store.list_ordered(EventScope(symbol="PETR4")) == []


@pytest.mark.parametrize("method", ["get", "remove"])
async def test_unknown_event_raises_not_found(event_store, method):
    with pytest.raises(NotFoundError):
        await getattr(event_store, method)("missing")


async def test_update_unknown_event_raises_not_found(event_store):
    with pytest.raises(NotFoundError):
        await event_store.update("missing", {"quantity": "1"})


async def test_distinct_scopes_and_symbols(event_store, operation):
    await event_store.append(operation("purchase", 1, 10, portfolios=["P1", "P2"]))
    await event_store.append(operation("purchase", 1, 10, symbol="VALE3", portfolios=["P2"]))

    assert await event_store.distinct_scopes() == [("P1", "PETR4"), ("P2", "PETR4"), ("P2", "VALE3")]
    assert await event_store.distinct_scopes("P1") == [("P1", "PETR4")]
    assert await event_store.distinct_symbols() == ["PETR4", "VALE3"]
    assert await event_store.distinct_symbols("P1") == ["PETR4"]
