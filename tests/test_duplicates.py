import logging

import numpy as np

from tag_pipeline.duplicates import remove_duplicates
from tag_pipeline.tag_types import RawDetection


def _det(tag_id, offset=0.0):
    corners = np.array([[0, 0], [10, 0], [10, 10], [0, 10]], dtype=np.float64) + offset
    return RawDetection(tag_id, corners, corners.mean(axis=0), np.eye(3))


def _ids(dets):
    return [d.tag_id for d in dets]


def test_distinct_ids_are_all_kept():
    dets = [_det(7), _det(2), _det(5)]
    out = remove_duplicates(dets)
    assert sorted(_ids(out)) == [2, 5, 7]
    assert set(map(id, out)) == set(map(id, dets))


def test_all_copies_of_a_repeated_id_are_dropped(caplog):
    dets = [_det(4), _det(9, 1.0), _det(1), _det(9, 2.0), _det(9, 3.0), _det(3)]
    with caplog.at_level(logging.WARNING):
        out = remove_duplicates(dets)
    assert _ids(out) == [1, 3, 4]
    pruned = [r for r in caplog.records if "Pruning tag ID 9" in r.getMessage()]
    assert len(pruned) == 1


def test_duplicate_run_at_end_of_sorted_order():
    out = remove_duplicates([_det(100), _det(0), _det(100)])
    assert _ids(out) == [0]


def test_duplicate_run_at_start_and_only_duplicates():
    assert _ids(remove_duplicates([_det(0), _det(0), _det(1)])) == [1]
    assert remove_duplicates([_det(3), _det(3)]) == []


def test_negative_ids_are_not_confused_with_end_of_list():
    out = remove_duplicates([_det(-1), _det(-1), _det(2)])
    assert _ids(out) == [2]


def test_idempotent():
    dets = [_det(2), _det(2), _det(5), _det(8), _det(5), _det(11)]
    once = remove_duplicates(dets)
    twice = remove_duplicates(once)
    assert _ids(once) == _ids(twice) == [8, 11]


def test_one_warning_per_id(caplog):
    dets = [_det(1), _det(1), _det(2), _det(2), _det(2)]
    with caplog.at_level(logging.WARNING):
        assert remove_duplicates(dets) == []
    messages = [r.getMessage() for r in caplog.records]
    assert len(messages) == 2
    assert any("ID 1 " in m for m in messages)
    assert any("ID 2 " in m for m in messages)


def test_input_list_not_mutated():
    dets = [_det(3), _det(1), _det(3)]
    remove_duplicates(dets)
    assert _ids(dets) == [3, 1, 3]
