from utils.traversal import BoundedWalk, INVALID_INDEX


def test_closed_cycle():
    walk = BoundedWalk(0, lambda i: (i + 1) % 5)
    assert walk.to_list() == [0, 1, 2, 3, 4]
    assert walk.closed
    assert not walk.truncated


def test_stops_at_invalid():
    walk = BoundedWalk(0, lambda i: i + 1 if i < 3 else INVALID_INDEX)
    assert walk.to_list() == [0, 1, 2, 3]
    assert not walk.closed
    assert walk.last() == 3


def test_cycle_not_through_start_is_truncated():
    links = {0: 1, 1: 2, 2: 1}
    walk = BoundedWalk(0, links.get)
    assert walk.to_list() == [0, 1, 2]
    assert walk.truncated


def test_step_cap():
    walk = BoundedWalk(0, lambda i: i + 1, max_steps=10)
    assert len(walk.to_list()) == 10
    assert walk.truncated


def test_invalid_start_is_empty():
    walk = BoundedWalk(INVALID_INDEX, lambda i: i + 1)
    assert walk.to_list() == []
    assert walk.last() == INVALID_INDEX


def test_reiterable():
    walk = BoundedWalk(2, lambda i: (i + 1) % 4)
    assert list(walk) == list(walk) == [2, 3, 0, 1]
