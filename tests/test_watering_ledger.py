import asyncio
import random
from datetime import datetime, timedelta, timezone

import pytest

from plantcare.core.exceptions import BadRequestException, ConsistencyViolation, NotFoundException
from plantcare.watering.models import WateringStatus
from plantcare.watering.status_engine import classify_plant


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


async def _new_plant(repo, frequency=7):
    """A plant with no history yet, as stored before its first watering."""
    return await repo.insert_plant({
        "nickname": "Fern",
        "watering_frequency_days": frequency,
        "needs_initial_watering": True,
        "created_at": _utc(2024, 1, 1),
    })


def _assert_schedule_invariant(plant):
    if not plant.needs_initial_watering:
        assert plant.next_water_date == plant.last_watered + timedelta(days=plant.watering_frequency_days)


def test_record_sets_schedule(repo, ledger, clock):
    async def scenario():
        plant = await _new_plant(repo, frequency=7)
        event = await ledger.record(plant.id, notes="  morning  ")
        return event, await repo.get_plant(plant.id)

    event, plant = asyncio.run(scenario())

    assert event.watered_at == clock.now
    assert event.recorded_at == clock.now
    assert event.notes == "morning"
    assert plant.last_watered == clock.now
    assert plant.next_water_date == clock.now + timedelta(days=7)
    assert plant.needs_initial_watering is False


def test_record_unknown_plant_is_not_found(ledger):
    with pytest.raises(NotFoundException):
        asyncio.run(ledger.record("65f0c0ffee0000000000beef"))


def test_backdated_record_does_not_move_last_watered(repo, ledger):
    async def scenario():
        plant = await _new_plant(repo)
        await ledger.record(plant.id, watered_at=_utc(2024, 3, 5))
        await ledger.record(plant.id, watered_at=_utc(2024, 3, 1))
        return await repo.get_plant(plant.id)

    plant = asyncio.run(scenario())

    assert plant.last_watered == _utc(2024, 3, 5)
    assert plant.next_water_date == _utc(2024, 3, 12)


def test_history_orders_same_day_events_by_recording_time(repo, ledger, clock):
    async def scenario():
        plant = await _new_plant(repo)
        await ledger.record(plant.id, watered_at="2024-01-01", notes="t1")
        clock.advance(minutes=5)
        await ledger.record(plant.id, watered_at="2024-01-01", notes="t2")
        clock.advance(minutes=5)
        await ledger.record(plant.id, watered_at="2024-01-03", notes="t3")
        return await ledger.history(plant.id)

    history = asyncio.run(scenario())

    assert [e.notes for e in history] == ["t3", "t2", "t1"]
    assert [e.watered_at.date().isoformat() for e in history] == ["2024-01-03", "2024-01-01", "2024-01-01"]


def test_history_is_repeatable_without_mutation(repo, ledger, clock):
    async def scenario():
        plant = await _new_plant(repo)
        for day in (3, 1, 2):
            clock.advance(seconds=1)
            await ledger.record(plant.id, watered_at=_utc(2024, 2, day))
        return await ledger.history(plant.id), await ledger.history(plant.id)

    first, second = asyncio.run(scenario())

    assert first == second
    assert list(first) == list(first)  # re-iterable


def test_history_of_plant_without_events_is_empty(repo, ledger):
    async def scenario():
        plant = await _new_plant(repo)
        return await ledger.history(plant.id)

    assert asyncio.run(scenario()) == ()


def test_history_unknown_plant_is_not_found(ledger):
    with pytest.raises(NotFoundException):
        asyncio.run(ledger.history("does-not-exist"))


def test_deleting_only_event_makes_plant_unknown(repo, ledger, clock):
    async def scenario():
        plant = await _new_plant(repo, frequency=7)
        event = await ledger.record(plant.id, watered_at=clock.now - timedelta(days=1))
        assert await ledger.delete(event.id) is True
        return await repo.get_plant(plant.id)

    plant = asyncio.run(scenario())

    assert plant.needs_initial_watering is True
    assert plant.last_watered <= clock.now - timedelta(days=8)
    assert plant.next_water_date <= clock.now - timedelta(days=8)
    assert classify_plant(plant, clock.now.date()).status == WateringStatus.UNKNOWN


def test_deleting_latest_event_falls_back_to_previous(repo, ledger, clock):
    async def scenario():
        plant = await _new_plant(repo, frequency=5)
        await ledger.record(plant.id, watered_at=_utc(2024, 3, 1))
        clock.advance(seconds=1)
        latest = await ledger.record(plant.id, watered_at=_utc(2024, 3, 6))
        await ledger.delete(latest.id)
        return await repo.get_plant(plant.id)

    plant = asyncio.run(scenario())

    assert plant.needs_initial_watering is False
    assert plant.last_watered == _utc(2024, 3, 1)
    assert plant.next_water_date == _utc(2024, 3, 6)


def test_editing_older_event_past_latest_promotes_it(repo, ledger, clock):
    async def scenario():
        plant = await _new_plant(repo, frequency=7)
        older = await ledger.record(plant.id, watered_at=_utc(2024, 3, 1))
        clock.advance(seconds=1)
        await ledger.record(plant.id, watered_at=_utc(2024, 3, 5))
        await ledger.edit(older.id, watered_at=_utc(2024, 3, 8))
        return await repo.get_plant(plant.id)

    plant = asyncio.run(scenario())

    assert plant.last_watered == _utc(2024, 3, 8)
    assert plant.next_water_date == _utc(2024, 3, 15)


def test_editing_latest_event_backwards_demotes_it(repo, ledger, clock):
    async def scenario():
        plant = await _new_plant(repo, frequency=7)
        await ledger.record(plant.id, watered_at=_utc(2024, 3, 4))
        clock.advance(seconds=1)
        latest = await ledger.record(plant.id, watered_at=_utc(2024, 3, 6))
        await ledger.edit(latest.id, watered_at=_utc(2024, 2, 20))
        return await repo.get_plant(plant.id)

    plant = asyncio.run(scenario())

    assert plant.last_watered == _utc(2024, 3, 4)


def test_edit_keeps_unset_fields(repo, ledger):
    async def scenario():
        plant = await _new_plant(repo)
        event = await ledger.record(plant.id, watered_at=_utc(2024, 3, 4), notes="first")
        return await ledger.edit(event.id, notes="  fertilized too ")

    edited = asyncio.run(scenario())

    assert edited.watered_at == _utc(2024, 3, 4)
    assert edited.notes == "fertilized too"


def test_edit_rejects_unparseable_date(repo, ledger):
    async def scenario():
        plant = await _new_plant(repo)
        event = await ledger.record(plant.id)
        await ledger.edit(event.id, watered_at="last tuesday")

    with pytest.raises(BadRequestException):
        asyncio.run(scenario())


def test_edit_and_delete_unknown_event_are_not_found(ledger):
    with pytest.raises(NotFoundException):
        asyncio.run(ledger.edit("65f0c0ffee0000000000beef", notes="x"))
    with pytest.raises(NotFoundException):
        asyncio.run(ledger.delete("65f0c0ffee0000000000beef"))


def test_change_frequency_moves_next_water_date(repo, ledger):
    async def scenario():
        plant = await _new_plant(repo, frequency=7)
        await ledger.record(plant.id, watered_at=_utc(2024, 3, 1))
        return await ledger.change_frequency(plant.id, "every 3 days")

    plant = asyncio.run(scenario())

    assert plant.watering_frequency_days == 3
    assert plant.next_water_date == _utc(2024, 3, 4)


def test_change_frequency_clamps_to_one_day(repo, ledger):
    async def scenario():
        plant = await _new_plant(repo, frequency=7)
        await ledger.record(plant.id, watered_at=_utc(2024, 3, 1))
        return await ledger.change_frequency(plant.id, 0)

    plant = asyncio.run(scenario())

    assert plant.watering_frequency_days == 1
    assert plant.next_water_date == _utc(2024, 3, 2)


def test_verify_cache_detects_writes_that_bypass_the_ledger(repo, ledger):
    async def scenario():
        plant = await _new_plant(repo)
        await ledger.record(plant.id, watered_at=_utc(2024, 3, 1))
        await ledger.verify_cache(plant.id)
        await repo.update_plant(plant.id, {"last_watered": _utc(2024, 2, 1)})
        await ledger.verify_cache(plant.id)

    with pytest.raises(ConsistencyViolation):
        asyncio.run(scenario())


def test_verify_cache_detects_missing_needs_initial_flag(repo, ledger):
    async def scenario():
        plant = await _new_plant(repo)
        await repo.update_plant(plant.id, {"needs_initial_watering": False})
        await ledger.verify_cache(plant.id)

    with pytest.raises(ConsistencyViolation):
        asyncio.run(scenario())


def test_recompute_cache_repairs_tampered_plant(repo, ledger):
    async def scenario():
        plant = await _new_plant(repo, frequency=4)
        await ledger.record(plant.id, watered_at=_utc(2024, 3, 1))
        await repo.update_plant(plant.id, {"next_water_date": _utc(2030, 1, 1)})
        await ledger.recompute_cache(plant.id)
        return await ledger.verify_cache(plant.id)

    plant = asyncio.run(scenario())

    assert plant.next_water_date == _utc(2024, 3, 5)


def test_concurrent_edit_and_delete_leave_consistent_cache(repo, ledger, clock):
    async def scenario():
        plant = await _new_plant(repo)
        first = await ledger.record(plant.id, watered_at=_utc(2024, 3, 1))
        clock.advance(seconds=1)
        second = await ledger.record(plant.id, watered_at=_utc(2024, 3, 3))
        await asyncio.gather(
            ledger.edit(first.id, watered_at=_utc(2024, 3, 7)),
            ledger.delete(second.id),
        )
        return await ledger.verify_cache(plant.id)

    plant = asyncio.run(scenario())

    assert plant.last_watered == _utc(2024, 3, 7)


def test_schedule_invariant_holds_across_random_mutations(repo, ledger, clock):
    rng = random.Random(1234)

    async def scenario():
        plant = await _new_plant(repo, frequency=rng.randint(1, 14))
        for _ in range(60):
            clock.advance(minutes=1)
            events = await ledger.history(plant.id)
            op = rng.choice(["record", "edit", "delete"]) if events else "record"
            if op == "record":
                await ledger.record(plant.id, watered_at=_utc(2024, 1, 1) + timedelta(days=rng.randint(0, 30)))
            elif op == "edit":
                target = rng.choice(events)
                await ledger.edit(target.id, watered_at=_utc(2024, 1, 1) + timedelta(days=rng.randint(0, 30)))
            else:
                await ledger.delete(rng.choice(events).id)

            current = await ledger.verify_cache(plant.id)
            _assert_schedule_invariant(current)
            history = await ledger.history(plant.id)
            if history:
                assert current.last_watered == history[0].watered_at
            else:
                assert current.needs_initial_watering is True

    asyncio.run(scenario())


def test_remove_returns_recomputed_plant(repo, ledger, clock):
    async def scenario():
        plant = await _new_plant(repo, frequency=3)
        await ledger.record(plant.id, watered_at=_utc(2024, 3, 2))
        clock.advance(seconds=1)
        latest = await ledger.record(plant.id, watered_at=_utc(2024, 3, 8))
        return await ledger.remove(latest.id)

    plant = asyncio.run(scenario())

    assert plant.last_watered == _utc(2024, 3, 2)
    assert plant.next_water_date == _utc(2024, 3, 5)


def test_plant_locks_are_released(repo, ledger, plant_service):
    async def scenario():
        plant = await _new_plant(repo)
        event = await ledger.record(plant.id)
        await ledger.edit(event.id, notes="checked")
        assert len(repo._locks) == 0

        await plant_service.delete_plant(plant.id)
        assert len(repo._locks) == 0

        for n in range(20):
            with pytest.raises(NotFoundException):
                await ledger.record(f"65f0c0ffee0000000000{n:04d}")
        assert len(repo._locks) == 0

    asyncio.run(scenario())


def test_concurrent_records_share_one_lock(repo, ledger):
    async def scenario():
        plant = await _new_plant(repo)
        await asyncio.gather(*(ledger.record(plant.id) for _ in range(5)))
        assert len(repo._locks) == 0
        return await ledger.history(plant.id)

    assert len(asyncio.run(scenario())) == 5
