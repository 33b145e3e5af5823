import pytest

from glmpipelinetoolbox.workflow.scheduling.chunking import chunk_units
from glmpipelinetoolbox.workflow.scheduling.chunking import compute_batch_count


def test_batch_count():
    assert compute_batch_count(33, 8, 2) == 3
    assert compute_batch_count(32, 8, 2) == 2
    assert compute_batch_count(1, 8, 2) == 1
    assert compute_batch_count(0, 8, 2) == 0
    with pytest.raises(ValueError):
        compute_batch_count(10, 0, 2)


def test_block_assignment():
    batches = chunk_units(list(range(33)), 8, 2)
    assert [len(batch) for batch in batches] == [16, 16, 1]
    assert batches[0] == list(range(16))
    assert batches[2] == [32]
    assert chunk_units([], 8, 2) == []
