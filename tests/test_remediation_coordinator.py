import asyncio

import pytest
from conftest import raw_report

from app.models.outcome import ErrorKind, OutcomeStatus


def _status(coordinator, record_id):
    return coordinator.context.snapshot.get(record_id).status


# mark_status

@pytest.mark.asyncio
async def test_mark_status_updates_store_and_snapshot(coordinator, store, sink):
    outcome = await coordinator.mark_status("r1", "cleaned")

    assert outcome.status == OutcomeStatus.SUCCESS
    assert outcome.succeeded_ids == ["r1"]
    assert store.get("r1")["status"] == "cleaned"
    assert _status(coordinator, "r1") == "cleaned"
    assert sink.outcomes == [outcome]


@pytest.mark.asyncio
async def test_reapplying_same_status_succeeds(coordinator, store):
    first = await coordinator.mark_status("r1", "resolved")
    second = await coordinator.mark_status("r1", "resolved")

    assert first.ok and second.ok
    assert store.get("r1")["status"] == "resolved"
    assert store.update_calls == [("r1", "resolved"), ("r1", "resolved")]


@pytest.mark.asyncio
@pytest.mark.parametrize("target", ["new", "bogus", ""])
async def test_unknown_or_non_remediation_target_is_rejected(coordinator, store, target):
    outcome = await coordinator.mark_status("r1", target)

    assert outcome.status == OutcomeStatus.FAILURE
    assert outcome.error_kind == ErrorKind.VALIDATION_FAILURE
    assert store.update_calls == []


@pytest.mark.asyncio
async def test_terminal_report_cannot_change_status(coordinator, store):
    outcome = await coordinator.mark_status("r4", "resolved")

    assert outcome.error_kind == ErrorKind.VALIDATION_FAILURE
    assert "cleaned → resolved" in outcome.reason
    assert store.update_calls == []
    assert not coordinator.context.busy_records.is_busy("r4")


@pytest.mark.asyncio
async def test_missing_record_id_is_rejected(coordinator):
    outcome = await coordinator.mark_status("  ", "cleaned")
    assert outcome.error_kind == ErrorKind.VALIDATION_FAILURE


@pytest.mark.asyncio
async def test_failed_write_reverts_optimistic_status(coordinator, store):
    store.fail_ids.add("r1")

    outcome = await coordinator.mark_status("r1", "cleaned")

    assert outcome.status == OutcomeStatus.FAILURE
    assert outcome.error_kind == ErrorKind.MUTATION_FAILURE
    assert outcome.failed_ids == ["r1"]
    assert _status(coordinator, "r1") == "new"
    assert store.get("r1")["status"] == "new"
    assert not coordinator.context.busy_records.is_busy("r1")


@pytest.mark.asyncio
async def test_unknown_record_is_a_mutation_failure(coordinator):
    outcome = await coordinator.mark_status("does-not-exist", "cleaned")

    assert outcome.error_kind == ErrorKind.MUTATION_FAILURE


@pytest.mark.asyncio
async def test_concurrent_change_on_same_record_is_busy(gated_coordinator, gated_store):
    first = asyncio.create_task(gated_coordinator.mark_status("r1", "cleaned"))
    await asyncio.sleep(0)

    # Optimistic status is visible while the write is in flight
    assert _status(gated_coordinator, "r1") == "cleaned"

    second = await gated_coordinator.mark_status("r1", "resolved")
    assert second.status == OutcomeStatus.BUSY
    assert gated_store.waiting == 1

    gated_store.gate.set()
    assert (await first).ok
    assert gated_store.get("r1")["status"] == "cleaned"
    assert gated_store.update_calls == [("r1", "cleaned")]
    assert gated_coordinator.context.busy_records.busy_keys == frozenset()


@pytest.mark.asyncio
async def test_different_records_proceed_concurrently(gated_coordinator, gated_store):
    tasks = [
        asyncio.create_task(gated_coordinator.mark_status("r1", "cleaned")),
        asyncio.create_task(gated_coordinator.mark_status("r2", "cleaned")),
    ]
    await asyncio.sleep(0)

    assert gated_store.waiting == 2
    gated_store.gate.set()
    outcomes = await asyncio.gather(*tasks)
    assert all(outcome.ok for outcome in outcomes)


@pytest.mark.asyncio
async def test_cancelled_write_releases_key_and_reverts(gated_coordinator):
    task = asyncio.create_task(gated_coordinator.mark_status("r1", "cleaned"))
    await asyncio.sleep(0)
    assert gated_coordinator.context.busy_records.is_busy("r1")

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert not gated_coordinator.context.busy_records.is_busy("r1")
    assert _status(gated_coordinator, "r1") == "new"


# cleanup_location

@pytest.mark.asyncio
async def test_cleanup_marks_every_report_at_location(coordinator, store, sink):
    outcome = await coordinator.cleanup_location("Lagos")

    assert outcome.ok
    assert outcome.location == "Lagos"
    assert sorted(outcome.succeeded_ids) == ["r1", "r2", "r3"]
    for record_id in ("r1", "r2", "r3"):
        assert store.get(record_id)["status"] == "cleaned"
        assert _status(coordinator, record_id) == "cleaned"
    assert store.get("r4")["status"] == "cleaned"
    assert store.get("r5")["status"] == "new"
    assert len(sink.outcomes) == 1


@pytest.mark.asyncio
async def test_cleanup_location_is_trimmed_before_matching(coordinator):
    outcome = await coordinator.cleanup_location("  Lagos\t")

    assert outcome.ok
    assert len(outcome.succeeded_ids) == 3


@pytest.mark.asyncio
async def test_partial_cleanup_failure_keeps_completed_updates(coordinator, store):
    # Processed newest first: r3, r2, r1
    store.fail_ids.add("r2")

    outcome = await coordinator.cleanup_location("Lagos")

    assert outcome.status == OutcomeStatus.FAILURE
    assert outcome.error_kind == ErrorKind.MUTATION_FAILURE
    assert outcome.succeeded_ids == ["r3", "r1"]
    assert outcome.failed_ids == ["r2"]
    assert outcome.reason.startswith("1 of 3 reports at 'Lagos'")
    assert [record_id for record_id, _ in store.update_calls] == ["r3", "r2", "r1"]
    assert _status(coordinator, "r1") == "cleaned"
    assert _status(coordinator, "r2") == "new"
    assert _status(coordinator, "r3") == "cleaned"


@pytest.mark.asyncio
async def test_cleanup_skips_resolved_reports(coordinator, store):
    store.put(raw_report("r6", "noise", "Lagos", 6, status="resolved"))

    outcome = await coordinator.cleanup_location("Lagos")

    assert outcome.ok
    assert outcome.skipped_ids == ["r6"]
    assert store.get("r6")["status"] == "resolved"


@pytest.mark.asyncio
async def test_cleanup_with_no_reports_is_validation_failure(coordinator, store):
    outcome = await coordinator.cleanup_location("Atlantis")

    assert outcome.error_kind == ErrorKind.VALIDATION_FAILURE
    assert store.update_calls == []


@pytest.mark.asyncio
async def test_cleanup_of_busy_location_is_rejected(gated_coordinator, gated_store):
    first = asyncio.create_task(gated_coordinator.cleanup_location("Lagos"))
    await asyncio.sleep(0)

    second = await gated_coordinator.cleanup_location(" Lagos ")
    single = await gated_coordinator.mark_status("r3", "resolved")
    other = asyncio.create_task(gated_coordinator.cleanup_location("Ikeja"))
    await asyncio.sleep(0)

    assert second.status == OutcomeStatus.BUSY
    assert single.status == OutcomeStatus.BUSY
    assert gated_coordinator.context.busy_locations.busy_keys == frozenset({"Lagos", "Ikeja"})

    gated_store.gate.set()
    assert (await first).ok
    assert (await other).ok
    assert gated_coordinator.context.busy_locations.busy_keys == frozenset()
    assert gated_coordinator.context.busy_records.busy_keys == frozenset()


# submit_report

@pytest.mark.asyncio
async def test_submit_report_is_visible_before_confirmation(coordinator, store):
    seen = []
    coordinator.context.snapshot.add_listener(seen.append)

    outcome = await coordinator.submit_report("citizen-9", "Noise", "Drums all night", " Surulere ")

    assert outcome.ok
    assert any(r.is_optimistic for snapshot in seen for r in snapshot.reports)
    reports = coordinator.context.snapshot.current().reports
    assert not any(r.id.startswith("temp-") for r in reports)
    created = coordinator.context.snapshot.get(outcome.record_id)
    assert created.category == "noise"
    assert created.location == "Surulere"
    assert created.is_optimistic is False
    assert store.get(outcome.record_id)["uid"] == "citizen-9"


@pytest.mark.asyncio
async def test_failed_submission_retires_optimistic_report(coordinator, store):
    store.fail_create = True
    before = {r.id for r in coordinator.context.snapshot.current().reports}

    outcome = await coordinator.submit_report("citizen-9", "traffic")

    assert outcome.error_kind == ErrorKind.MUTATION_FAILURE
    assert {r.id for r in coordinator.context.snapshot.current().reports} == before


@pytest.mark.asyncio
async def test_submit_rejects_unknown_category(coordinator):
    outcome = await coordinator.submit_report("citizen-9", "earthquake")

    assert outcome.error_kind == ErrorKind.VALIDATION_FAILURE
    assert "earthquake" in outcome.reason


@pytest.mark.asyncio
async def test_cleanup_skips_unconfirmed_submissions(create_gated_coordinator, create_gated_store):
    submission = asyncio.create_task(
        create_gated_coordinator.submit_report("citizen-9", "noise", "Horns at dawn", "Lagos")
    )
    await asyncio.sleep(0)
    pending = [r for r in create_gated_coordinator.context.snapshot.current().reports if r.is_optimistic]
    assert len(pending) == 1

    outcome = await create_gated_coordinator.cleanup_location("Lagos")

    assert outcome.ok
    assert sorted(outcome.succeeded_ids) == ["r1", "r2", "r3"]
    assert outcome.skipped_ids == [pending[0].id]
    assert [record_id for record_id, _ in create_gated_store.update_calls] == ["r3", "r2", "r1"]

    create_gated_store.create_gate.set()
    created = await submission
    assert created.ok
    assert create_gated_store.get(created.record_id)["status"] == "new"


@pytest.mark.asyncio
async def test_cleanup_of_only_unconfirmed_submissions_is_validation_failure(
    create_gated_coordinator, create_gated_store
):
    submission = asyncio.create_task(create_gated_coordinator.submit_report("citizen-9", "crowd", None, "Yaba"))
    await asyncio.sleep(0)

    outcome = await create_gated_coordinator.cleanup_location("Yaba")

    assert outcome.error_kind == ErrorKind.VALIDATION_FAILURE
    assert create_gated_store.update_calls == []

    create_gated_store.create_gate.set()
    assert (await submission).ok
