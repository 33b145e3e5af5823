"""Assignment of artifacts to batch jobs."""
from math import ceil
from typing import Sequence
from typing import TypeVar

Item = TypeVar('Item')


def compute_batch_count(n_items: int, cpus_per_job: int, jobs_per_cpu: int) -> int:
    if cpus_per_job < 1 or jobs_per_cpu < 1:
        raise ValueError('cpus_per_job and jobs_per_cpu must be positive.')
    return ceil(n_items / (cpus_per_job * jobs_per_cpu))


def chunk_units(items: Sequence[Item], cpus_per_job: int, jobs_per_cpu: int) -> list[list[Item]]:
    """Consecutive blocks of ``cpus_per_job * jobs_per_cpu`` items; the last block may be smaller."""
    batch_count = compute_batch_count(len(items), cpus_per_job, jobs_per_cpu)
    size = cpus_per_job * jobs_per_cpu
    return [list(items[i * size:(i + 1) * size]) for i in range(batch_count)]
