"""
Worker pool for grading many submissions at once.

Workers claim jobs from a shared queue and post results to a completion
queue as they finish. The calling thread holds finished results in a
reorder buffer and emits them strictly in submission order.
"""

import os
import queue
import threading
from typing import Callable

from .local_runner import LocalRunner
from .models import JobResult, SubmissionJob
from .utils import colorize


def resolve_workers(workers: int | None) -> int:
    """
    Number of workers to start.

    Args:
        workers: Requested count, or None for the host's CPU count.

    Returns:
        Worker count, at least 1.

    Raises:
        ValueError: If workers is not an integer.
    """
    if workers is None:
        return max(1, os.cpu_count() or 1)
    if isinstance(workers, bool) or not isinstance(workers, int):
        raise ValueError(f"Invalid worker count: {workers!r}")
    return max(1, workers)


def grade_job(runner: LocalRunner, job: SubmissionJob) -> JobResult:
    """
    Grade one job, turning any unexpected failure into a result for it.
    """
    try:
        return runner.run_submission(job)
    except Exception as e:
        msg = f"Internal error grading {job.label}: {e}"
        return JobResult(
            label=job.label,
            comment=msg,
            student=job.student,
            build_err=msg,
            report=[colorize(msg, "red")],
        )


def _worker(
    runner: LocalRunner,
    claims: "queue.Queue[tuple[int, SubmissionJob]]",
    completions: "queue.Queue[tuple[int, str, JobResult]]",
) -> None:
    while True:
        try:
            position, job = claims.get_nowait()
        except queue.Empty:
            return
        completions.put((position, job.label, grade_job(runner, job)))


def run_jobs(
    jobs: list[SubmissionJob],
    runner: LocalRunner,
    workers: int | None = None,
    on_result: Callable[[JobResult], None] | None = None,
) -> list[JobResult]:
    """
    Grade all jobs and return their results in job order.

    With one worker, jobs run one after another on the calling thread.
    Otherwise up to `workers` threads run jobs concurrently, and results are
    released in order as soon as every earlier job has finished.

    Args:
        jobs: Jobs in roster order.
        runner: Runner that grades a single job.
        workers: Worker count, None for the host's CPU count.
        on_result: Called with each result, in job order, as it is emitted.

    Returns:
        One JobResult per job, in the same order as jobs.
    """
    count = resolve_workers(workers)
    results: list[JobResult] = []

    def emit(result: JobResult) -> None:
        results.append(result)
        if on_result is not None:
            on_result(result)

    if count == 1 or len(jobs) <= 1:
        for job in jobs:
            emit(grade_job(runner, job))
        return results

    claims: queue.Queue[tuple[int, SubmissionJob]] = queue.Queue()
    for position, job in enumerate(jobs):
        claims.put((position, job))
    completions: queue.Queue[tuple[int, str, JobResult]] = queue.Queue()

    threads = [
        threading.Thread(
            target=_worker,
            args=(runner, claims, completions),
            name=f"grader-worker-{n}",
            daemon=True,
        )
        for n in range(min(count, len(jobs)))
    ]
    for thread in threads:
        thread.start()

    # Reorder buffer: finished results wait here until their turn
    pending: dict[int, JobResult] = {}
    next_position = 0
    while next_position < len(jobs):
        position, _label, result = completions.get()
        pending[position] = result
        while next_position in pending:
            emit(pending.pop(next_position))
            next_position += 1

    for thread in threads:
        thread.join()
    return results
