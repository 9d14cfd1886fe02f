import pytest

from app.domain.common.errors import InvalidNumber, QueueFull
from app.domain.roulette.queue import PendingQueue


def test_enqueue_returns_position():
    q = PendingQueue()
    assert q.enqueue(5) == 1
    assert q.enqueue(17) == 2
    assert q.snapshot() == [5, 17]


def test_enqueue_validates_number():
    q = PendingQueue()
    with pytest.raises(InvalidNumber):
        q.enqueue(37)
    with pytest.raises(InvalidNumber):
        q.enqueue(True)
    assert len(q) == 0


def test_queue_full():
    q = PendingQueue(max_size=2)
    q.enqueue(1)
    q.enqueue(2)
    assert q.is_full()
    with pytest.raises(QueueFull) as exc:
        q.enqueue(3)
    assert (exc.value.size, exc.value.limit) == (2, 2)
    with pytest.raises(QueueFull):
        q.push_front(3)


def test_remove_value_removes_every_occurrence():
    q = PendingQueue()
    for n in (3, 3, 7, 3):
        q.enqueue(n)
    assert q.remove_value(3) == 3
    assert q.snapshot() == [7]
    assert q.remove_value(3) == 0


def test_push_front_and_restore_front():
    q = PendingQueue(max_size=3)
    q.enqueue(4)
    q.push_front(9)
    assert q.snapshot() == [9, 4]

    batch = q.drain()
    assert batch == [9, 4]
    assert len(q) == 0

    q.enqueue(1)
    q.enqueue(2)
    q.enqueue(3)
    q.restore_front(batch)
    assert q.snapshot() == [9, 4, 1, 2, 3]


def test_clear_returns_removed():
    q = PendingQueue()
    q.enqueue(8)
    assert q.clear() == [8]
    assert q.clear() == []
