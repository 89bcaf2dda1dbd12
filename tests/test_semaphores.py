import pytest

from bmkernel.scheduler import ProcessState, Scheduler
from bmkernel.semaphores import MAX_SEMAPHORES, SemaphoreError, SemaphoreTable


def _run(scheduler, name="worker"):
    pid = scheduler.add_process(name)
    scheduler.schedule()
    return pid


def _process(scheduler, pid):
    current = scheduler.current_process()
    if current is not None and current.pid == pid:
        return current
    return next(p for p in scheduler._queue if p.pid == pid)


@pytest.fixture
def scheduler():
    return Scheduler()


@pytest.fixture
def table(scheduler):
    return SemaphoreTable(scheduler)


def test_open_same_name_shares_index(table):
    first = table.open("lock", 1)
    second = table.open("lock", 5)
    other = table.open("other", 0)
    assert first == second
    assert other != first


def test_first_semaphore_takes_slot_zero(table):
    assert table.open("lock", 1) == 0


def test_open_without_name_raises(table):
    with pytest.raises(SemaphoreError):
        table.open(None, 1)


def test_initial_count_out_of_range(table):
    with pytest.raises(ValueError):
        table.open("big", -1)


def test_table_full(table):
    for number in range(MAX_SEMAPHORES):
        table.open(f"s{number}", 0)
    with pytest.raises(SemaphoreError):
        table.open("one-too-many", 0)


def test_wait_consumes_initial_count_then_blocks(scheduler, table):
    pid = _run(scheduler)
    index = table.open("lock", 2)
    assert table.wait(index) is True
    assert table.wait(index) is True
    assert table.wait(index) is False
    assert scheduler.current_pid() != pid
    assert _process(scheduler, pid).state is ProcessState.BLOCKED


def test_post_wakes_blocked_process_and_hands_over_unit(scheduler, table):
    pid = _run(scheduler)
    index = table.open("lock", 0)
    assert table.wait(index) is False
    table.post(index)
    assert _process(scheduler, pid).state is ProcessState.READY
    scheduler.yield_cpu()
    assert scheduler.current_pid() == pid
    assert table.wait(index) is True
    assert table.wait(index) is False


def test_post_without_waiters_increments(table):
    index = table.open("lock", 0)
    table.post(index)
    assert table.wait(index) is True


def test_wait_with_no_running_process_raises(table):
    index = table.open("lock", 0)
    with pytest.raises(SemaphoreError):
        table.wait(index)


def test_close_counts_attachments(table):
    index = table.open("lock", 1)
    table.open("lock", 1)
    assert table.close(index) is False
    assert table.close(index) is True
    with pytest.raises(SemaphoreError):
        table.wait(index)


def test_closed_slot_is_reused(table):
    index = table.open("lock", 1)
    table.close(index)
    assert table.open("fresh", 0) == index


def test_close_with_blocked_process_raises(scheduler, table):
    _run(scheduler)
    index = table.open("lock", 0)
    table.wait(index)
    with pytest.raises(SemaphoreError):
        table.close(index)


@pytest.mark.parametrize("index", [-1, MAX_SEMAPHORES, 3])
def test_invalid_index_raises(table, index):
    with pytest.raises(SemaphoreError):
        table.post(index)


def test_dump_lists_semaphores_and_waiters(scheduler, table):
    pid = _run(scheduler)
    index = table.open("mutex", 0)
    table.wait(index)
    text = table.dump()
    assert text.startswith("Active semaphores:")
    assert f"Sem index: {index}" in text
    assert "Name: mutex" in text
    assert f"PID: {pid}" in table.dump_semaphore(index)