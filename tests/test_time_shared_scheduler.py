from __future__ import annotations

import math
import random

import pytest

from vm_sim.events import EventBus, EventType, SimEvent
from vm_sim.model import Task, TaskStatus
from vm_sim.schedulers import (
    NO_NEXT_EVENT,
    ITaskScheduler,
    SchedulerConfigError,
    TimeSharedScheduler,
    create_task_scheduler,
    registry,
)
from vm_sim.utilization import ConstantUtilization, StepUtilization


TWO_PES = [1000.0, 1000.0]


def _list_ids(scheduler: TimeSharedScheduler) -> tuple[list[int], list[int], list[int]]:
    return (
        [task.task_id for task in scheduler.running],
        [task.task_id for task in scheduler.paused],
        [task.task_id for task in scheduler.finished],
    )


def test_two_tasks_on_two_pes_finish_at_their_own_pace() -> None:
    scheduler = TimeSharedScheduler(capacity_share=TWO_PES)
    first = Task(task_id=1, length=2000)
    second = Task(task_id=2, length=4000)

    assert scheduler.submit(first) == pytest.approx(2.0)
    assert scheduler.submit(second) == pytest.approx(4.0)

    next_event = scheduler.advance(2.0, TWO_PES)

    assert _list_ids(scheduler) == ([2], [], [1])
    assert first.status == TaskStatus.SUCCESS
    assert first.finish_time == pytest.approx(2.0)
    assert scheduler.remaining_length(1) == 0.0
    assert scheduler.remaining_length(2) == pytest.approx(2000.0)
    assert next_event == pytest.approx(4.0)


def test_oversubscribed_vm_slows_every_task() -> None:
    scheduler = TimeSharedScheduler(capacity_share=TWO_PES)
    for task_id, length in ((1, 1000), (2, 2000), (3, 3000)):
        scheduler.submit(Task(task_id=task_id, length=length))

    assert scheduler.total_current_available_mips_for_task(1) == pytest.approx(2000.0 / 3)
    assert scheduler.advance(0.0, TWO_PES) == pytest.approx(1000 / (2000.0 / 3))
    assert scheduler.current_pes == 2

    next_event = scheduler.advance(2.0, TWO_PES)

    assert _list_ids(scheduler) == ([2, 3], [], [1])
    assert scheduler.remaining_length(2) == pytest.approx(2000 - 2 * 2000.0 / 3)
    assert scheduler.remaining_length(3) == pytest.approx(3000 - 2 * 2000.0 / 3)
    # Two tasks left on two PEs, so each gets a full PE again.
    assert next_event == pytest.approx(2.0 + (2000 - 2 * 2000.0 / 3) / 1000.0)


def test_task_completes_exactly_at_its_projected_time() -> None:
    share = [333.0, 333.0, 333.0]
    scheduler = TimeSharedScheduler(capacity_share=share)
    task = Task(task_id=1, length=1000)
    scheduler.submit(task)

    projected = scheduler.advance(0.0, share)
    assert projected == pytest.approx(1000 / 333.0)

    assert math.isinf(scheduler.advance(projected, share))
    assert _list_ids(scheduler) == ([], [], [1])
    assert task.finish_time == projected
    assert task.finished_length == task.length
    assert scheduler.remaining_length(1) == 0.0


def test_oversubscribed_tasks_complete_at_each_projected_time() -> None:
    scheduler = TimeSharedScheduler(capacity_share=TWO_PES)
    tasks = [Task(task_id=task_id, length=length) for task_id, length in ((1, 1000), (2, 2000), (3, 3000))]
    for task in tasks:
        scheduler.submit(task)

    first = scheduler.advance(0.0, TWO_PES)
    assert first == pytest.approx(1.5)
    second = scheduler.advance(first, TWO_PES)
    assert _list_ids(scheduler) == ([2, 3], [], [1])
    assert tasks[0].finish_time == first

    assert second == pytest.approx(2.5)
    scheduler.advance(second, TWO_PES)
    assert _list_ids(scheduler) == ([3], [], [1, 2])
    assert tasks[1].finish_time == second
    assert scheduler.remaining_length(3) == pytest.approx(1000.0)


def test_sub_instruction_residue_counts_as_finished() -> None:
    scheduler = TimeSharedScheduler({"unit_conversion_factor": 1.0}, capacity_share=[1000.0])
    task = Task(task_id=1, length=10)
    scheduler.submit(task)

    scheduler.advance(0.0085, [1000.0])
    assert scheduler.running_count() == 1
    assert scheduler.remaining_length(1) == pytest.approx(1.5)

    scheduler.advance(0.0095, [1000.0])
    assert _list_ids(scheduler) == ([], [], [1])
    assert task.finish_time == 0.0095
    assert task.finished_length == 10.0


def test_progress_never_exceeds_vm_capacity() -> None:
    scheduler = TimeSharedScheduler(capacity_share=TWO_PES)
    for task_id in range(1, 4):
        scheduler.submit(Task(task_id=task_id, length=5000))

    before = sum(scheduler.remaining_length(task_id) for task_id in range(1, 4))
    scheduler.advance(0.5, TWO_PES)
    after = sum(scheduler.remaining_length(task_id) for task_id in range(1, 4))

    done_instructions = (before - after) * scheduler.unit_conversion_factor
    assert done_instructions <= sum(TWO_PES) * 0.5 * scheduler.unit_conversion_factor + 1e-3


def test_multi_pe_task_uses_all_its_slots() -> None:
    scheduler = TimeSharedScheduler(capacity_share=[500.0, 500.0, 500.0, 500.0])
    scheduler.submit(Task(task_id=7, length=3000, pe_count=2))

    assert scheduler.advance(0.0, [500.0] * 4) == pytest.approx(3.0)
    scheduler.advance(1.0, [500.0] * 4)
    assert scheduler.remaining_length(7) == pytest.approx(2000.0)


def test_tiny_remaining_work_is_clamped_to_min_resolution() -> None:
    scheduler = TimeSharedScheduler({"min_time_between_events": 0.25}, capacity_share=[1000.0])
    scheduler.submit(Task(task_id=1, length=1))

    assert scheduler.advance(0.0, [1000.0]) == pytest.approx(0.25)


def test_advance_with_nothing_running_returns_sentinel() -> None:
    scheduler = TimeSharedScheduler()

    assert scheduler.advance(5.0, TWO_PES) == NO_NEXT_EVENT
    assert scheduler.previous_time == 5.0
    assert scheduler.current_capacity_share == (1000.0, 1000.0)


def test_advance_reports_no_finite_event_once_everything_completes() -> None:
    scheduler = TimeSharedScheduler(capacity_share=[1000.0])
    scheduler.submit(Task(task_id=1, length=1000))

    assert math.isinf(scheduler.advance(1.0, [1000.0]))
    assert scheduler.running_count() == 0
    assert scheduler.has_finished()


def test_zero_capacity_yields_infinite_estimates() -> None:
    scheduler = TimeSharedScheduler(capacity_share=[0.0, 0.0])

    assert math.isinf(scheduler.submit(Task(task_id=1, length=100)))
    assert math.isinf(scheduler.advance(1.0, [0.0, 0.0]))
    assert scheduler.remaining_length(1) == pytest.approx(100.0)


def test_transfer_time_is_folded_into_length() -> None:
    scheduler = TimeSharedScheduler(capacity_share=[1000.0])
    task = Task(task_id=1, length=1000)

    assert scheduler.submit(task, transfer_time=0.5) == pytest.approx(1.5)
    assert task.length == pytest.approx(1500.0)


def test_submit_assigns_pe_slots_and_exec_status() -> None:
    scheduler = TimeSharedScheduler(capacity_share=TWO_PES)
    task = Task(task_id=1, length=10, pe_count=2)
    scheduler.submit(task, now=0.0)

    assert task.status == TaskStatus.IN_EXEC
    assert scheduler.status(1) == TaskStatus.IN_EXEC
    assert scheduler._lists.running[0].pe_slots == [0, 1]


def test_pause_and_resume_keep_partial_progress() -> None:
    scheduler = TimeSharedScheduler(capacity_share=[1000.0])
    task = Task(task_id=1, length=3000)
    assert scheduler.submit(task) == pytest.approx(3.0)
    assert scheduler.advance(1.0, [1000.0]) == pytest.approx(3.0)

    assert scheduler.pause(1, now=1.0) is True
    assert scheduler.status(1) == TaskStatus.PAUSED
    assert scheduler.running_count() == 0
    assert scheduler.advance(2.0, [1000.0]) == NO_NEXT_EVENT
    assert scheduler.remaining_length(1) == pytest.approx(2000.0)

    assert scheduler.resume(1, now=2.0) == pytest.approx(4.0)
    assert scheduler.status(1) == TaskStatus.IN_EXEC

    scheduler.advance(4.0, [1000.0])
    assert scheduler.next_finished() is task
    assert task.finished_length == pytest.approx(3000.0)
    assert task.actual_cpu_time == pytest.approx(3.0)


def test_pause_of_already_completed_task_finishes_it() -> None:
    scheduler = TimeSharedScheduler(capacity_share=[1000.0])
    task = Task(task_id=5, length=0)
    scheduler.submit(task)

    assert scheduler.pause(5) is True
    assert task.status == TaskStatus.SUCCESS
    assert _list_ids(scheduler) == ([], [], [5])
    assert scheduler.status(5) is None


def test_cancel_of_already_completed_task_finishes_it() -> None:
    scheduler = TimeSharedScheduler(capacity_share=[1000.0])
    task = Task(task_id=5, length=0)
    scheduler.submit(task)

    assert scheduler.cancel(5) is task
    assert task.status == TaskStatus.SUCCESS
    assert _list_ids(scheduler) == ([], [], [5])


def test_cancel_searches_finished_then_running_then_paused() -> None:
    scheduler = TimeSharedScheduler(capacity_share=TWO_PES)
    done = Task(task_id=1, length=1000)
    running = Task(task_id=2, length=9000)
    paused = Task(task_id=3, length=9000)
    for task in (done, running, paused):
        scheduler.submit(task)
    scheduler.pause(3)
    scheduler.advance(2.0, TWO_PES)
    assert _list_ids(scheduler) == ([2], [3], [1])

    assert scheduler.cancel(1) is done
    assert done.status == TaskStatus.SUCCESS
    assert scheduler.cancel(2) is running
    assert running.status == TaskStatus.CANCELED
    assert scheduler.cancel(3) is paused
    assert paused.status == TaskStatus.CANCELED
    assert _list_ids(scheduler) == ([], [], [])


def test_cancel_unknown_task_leaves_lists_untouched() -> None:
    scheduler = TimeSharedScheduler(capacity_share=TWO_PES)
    scheduler.submit(Task(task_id=1, length=1000))
    scheduler.submit(Task(task_id=2, length=9000))
    scheduler.pause(2)
    before = (_list_ids(scheduler), [task.status for task in scheduler.running + scheduler.paused])

    assert scheduler.cancel(999) is None
    assert (_list_ids(scheduler), [task.status for task in scheduler.running + scheduler.paused]) == before


def test_not_found_operations_return_sentinels() -> None:
    scheduler = TimeSharedScheduler(capacity_share=[1000.0])
    scheduler.submit(Task(task_id=1, length=1000))

    assert scheduler.pause(42) is False
    assert scheduler.resume(42) == 0.0
    assert scheduler.resume(1) == 0.0
    assert scheduler.status(42) is None
    assert scheduler.remaining_length(42) is None
    assert scheduler.next_finished() is None


def test_status_is_stable_without_mutation() -> None:
    scheduler = TimeSharedScheduler(capacity_share=[1000.0])
    scheduler.submit(Task(task_id=1, length=1000))

    assert [scheduler.status(1) for _ in range(3)] == [TaskStatus.IN_EXEC] * 3


def test_finished_tasks_are_dequeued_in_completion_order() -> None:
    scheduler = TimeSharedScheduler(capacity_share=TWO_PES)
    scheduler.submit(Task(task_id=1, length=3000))
    scheduler.submit(Task(task_id=2, length=1000))
    scheduler.advance(1.0, TWO_PES)
    scheduler.advance(3.0, TWO_PES)

    assert [scheduler.next_finished().task_id, scheduler.next_finished().task_id] == [2, 1]
    assert not scheduler.has_finished()


def test_migrate_hands_over_head_task_without_terminal_status() -> None:
    source = TimeSharedScheduler({"vm_id": "vm0"}, capacity_share=[1000.0])
    task = Task(task_id=1, length=2000)
    source.submit(task)
    source.advance(1.0, [1000.0])

    assert source.migrate(now=1.0) is task
    assert source.running_count() == 0
    assert task.status == TaskStatus.IN_EXEC
    assert task.finished_length == pytest.approx(1000.0)

    target = TimeSharedScheduler({"vm_id": "vm1"}, capacity_share=[500.0])
    target.advance(1.0, [500.0])
    assert target.submit(task, now=1.0) == pytest.approx(2.0)
    target.advance(3.0, [500.0])
    assert target.next_finished() is task
    assert task.submission_time == 0.0
    assert task.finish_time == pytest.approx(3.0)


def test_migrate_on_empty_vm_returns_none() -> None:
    assert TimeSharedScheduler().migrate() is None


def test_utilization_queries_take_explicit_time() -> None:
    scheduler = TimeSharedScheduler(capacity_share=TWO_PES)
    scheduler.submit(Task(task_id=1, length=1000, utilization_cpu=ConstantUtilization({"value": 0.5})))
    scheduler.submit(
        Task(
            task_id=2,
            length=1000,
            utilization_ram=StepUtilization({"default": 0.2, "points": [[10.0, 0.6]]}),
            utilization_bw=ConstantUtilization({"value": 0.0}),
        )
    )

    assert scheduler.total_cpu_utilization(0.0) == pytest.approx(1.5)
    assert scheduler.total_ram_utilization(0.0) == pytest.approx(1.2)
    assert scheduler.total_ram_utilization(10.0) == pytest.approx(1.6)
    assert scheduler.total_bw_utilization(0.0) == pytest.approx(1.0)


def test_placeholder_demand_queries_are_not_implemented() -> None:
    scheduler = TimeSharedScheduler()
    with pytest.raises(NotImplementedError):
        scheduler.current_requested_mips()
    with pytest.raises(NotImplementedError):
        scheduler.total_current_allocated_mips_for_task(1, 0.0)
    with pytest.raises(NotImplementedError):
        scheduler.total_current_requested_mips_for_task(1, 0.0)


@pytest.mark.parametrize(
    "params",
    [{"min_time_between_events": 0}, {"unit_conversion_factor": -1}, {"unknown": 1}],
)
def test_invalid_params_fail_fast(params: dict) -> None:
    with pytest.raises(SchedulerConfigError):
        TimeSharedScheduler(params)


def test_malformed_scenarios_raise_config_errors() -> None:
    scheduler = TimeSharedScheduler(capacity_share=TWO_PES)
    with pytest.raises(SchedulerConfigError, match="pe_count"):
        scheduler.submit(Task(task_id=1, length=10, pe_count=0))
    with pytest.raises(SchedulerConfigError):
        scheduler.advance(1.0, [1000.0, -5.0])
    with pytest.raises(SchedulerConfigError):
        TimeSharedScheduler(capacity_share=[-1.0])

    scheduler.submit(Task(task_id=2, length=10, pe_count=3))
    with pytest.raises(SchedulerConfigError, match="capacity share has 2 entries"):
        scheduler.advance(1.0, TWO_PES)
    with pytest.raises(SchedulerConfigError, match="already scheduled"):
        scheduler.submit(Task(task_id=2, length=10))


def test_advance_rejects_time_going_backwards() -> None:
    scheduler = TimeSharedScheduler()
    scheduler.advance(2.0, TWO_PES)
    with pytest.raises(SchedulerConfigError, match="precedes"):
        scheduler.advance(1.0, TWO_PES)


def test_lifecycle_transitions_are_published() -> None:
    bus = EventBus()
    seen: list[SimEvent] = []
    bus.subscribe(seen.append)
    scheduler = TimeSharedScheduler({"vm_id": "vmA"}, event_bus=bus, capacity_share=[1000.0])

    scheduler.submit(Task(task_id=1, length=1000))
    scheduler.submit(Task(task_id=2, length=5000))
    scheduler.pause(2)
    scheduler.resume(2)
    scheduler.advance(2.0, [1000.0])
    scheduler.cancel(2, now=2.0)

    assert [event.type for event in seen] == [
        EventType.TASK_SUBMITTED,
        EventType.TASK_SUBMITTED,
        EventType.TASK_PAUSED,
        EventType.TASK_RESUMED,
        EventType.TASK_FINISHED,
        EventType.TASK_CANCELED,
    ]
    assert all(event.vm_id == "vmA" for event in seen)
    assert seen[-1].time == 2.0
    assert [event.seq for event in seen] == list(range(6))


def test_registry_builds_time_shared_scheduler() -> None:
    scheduler = create_task_scheduler("Time_Shared", {"vm_id": "vm9"})
    assert isinstance(scheduler, ITaskScheduler)
    assert isinstance(scheduler, TimeSharedScheduler)
    assert scheduler.vm_id == "vm9"
    with pytest.raises(ValueError, match="unknown task scheduler"):
        create_task_scheduler("space_shared")


def test_registry_passes_event_bus_to_built_scheduler() -> None:
    bus = EventBus()
    seen: list[SimEvent] = []
    bus.subscribe(seen.append)

    scheduler = create_task_scheduler("time_shared", {"vm_id": "vm3"}, event_bus=bus)
    scheduler.submit(Task(task_id=1, length=100))

    assert [(event.type, event.vm_id) for event in seen] == [(EventType.TASK_SUBMITTED, "vm3")]


def test_registry_does_not_swallow_factory_type_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict] = []

    def broken_factory(params: dict, event_bus: EventBus | None = None) -> ITaskScheduler:
        calls.append(params)
        raise TypeError("bad scheduler argument")

    monkeypatch.setitem(registry._REGISTRY, "broken", broken_factory)

    with pytest.raises(TypeError, match="bad scheduler argument"):
        create_task_scheduler("broken", {"vm_id": "vm0"}, event_bus=EventBus())
    assert calls == [{"vm_id": "vm0"}]


def test_task_ids_never_appear_in_two_lists() -> None:
    rng = random.Random(1234)
    scheduler = TimeSharedScheduler(capacity_share=TWO_PES)
    now = 0.0
    next_id = 0

    for _ in range(400):
        op = rng.choice(["submit", "pause", "resume", "cancel", "advance", "migrate", "collect"])
        known = [task.task_id for task in scheduler.running + scheduler.paused + scheduler.finished]
        target = rng.choice(known) if known else -1
        if op == "submit":
            next_id += 1
            scheduler.submit(Task(task_id=next_id, length=rng.choice([0, 100, 500, 2000])), now=now)
        elif op == "pause":
            scheduler.pause(target, now=now)
        elif op == "resume":
            scheduler.resume(target, now=now)
        elif op == "cancel":
            scheduler.cancel(target, now=now)
        elif op == "advance":
            now += rng.uniform(0.0, 0.5)
            scheduler.advance(now, TWO_PES)
        elif op == "migrate":
            scheduler.migrate(now=now)
        else:
            scheduler.next_finished()

        running, paused, finished = _list_ids(scheduler)
        every_id = running + paused + finished
        assert len(every_id) == len(set(every_id))
        assert all(task.status == TaskStatus.PAUSED for task in scheduler.paused)
        assert all(task.status == TaskStatus.SUCCESS for task in scheduler.finished)
