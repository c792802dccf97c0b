"""Per-job state machine and the worker pool that runs jobs side by side.

    Pending -> Building -> Packaging -> Merging -> Publishing -> Published
       |          |           |           |            |
       v          +-----------+-----+-----+------------+
    Blocked                         v
                            Failed(stage, reason)

A job only ever moves one step forward or into a terminal state. Nothing is
retried inside a run.
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum, auto

from nightly.core.errors import ErrorCode
from nightly.core.result import Err
from nightly.output.console import ConsoleProtocol, Style
from nightly.output.errors import describe_job_error, job_error_exit_code
from nightly.services.builder import build, run_prep, version_report
from nightly.services.errors import Cancelled, InternalError, JobError
from nightly.services.merger import merge
from nightly.services.model import BuildJob, BuiltArtifact, RunContext
from nightly.services.packager import package
from nightly.services.publisher import PublishResult, publish
from nightly.services.store import ReleaseStore


class JobState(Enum):
    PENDING = auto()
    BUILDING = auto()
    PACKAGING = auto()
    MERGING = auto()
    PUBLISHING = auto()
    PUBLISHED = auto()
    FAILED = auto()
    BLOCKED = auto()

    def __str__(self) -> str:
        return self.name.lower()

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.PUBLISHED, JobState.FAILED, JobState.BLOCKED)


_NEXT: dict[JobState, JobState] = {
    JobState.PENDING: JobState.BUILDING,
    JobState.BUILDING: JobState.PACKAGING,
    JobState.PACKAGING: JobState.MERGING,
    JobState.MERGING: JobState.PUBLISHING,
    JobState.PUBLISHING: JobState.PUBLISHED,
}


class IllegalTransition(RuntimeError):
    pass


def _initial_history() -> list[JobState]:
    return [JobState.PENDING]


@dataclass
class JobTracker:
    """Mutable state of one job while it runs. Owned by a single worker."""

    job_id: str
    state: JobState = JobState.PENDING
    history: list[JobState] = field(default_factory=_initial_history)
    failed_stage: JobState | None = None
    error: JobError | None = None
    published: PublishResult | None = None

    def advance(self, to: JobState) -> None:
        if _NEXT.get(self.state) != to:
            raise IllegalTransition(f"{self.job_id}: {self.state} -> {to}")
        self.state = to
        self.history.append(to)

    def fail(self, error: JobError) -> None:
        if self.state.is_terminal:
            raise IllegalTransition(f"{self.job_id}: {self.state} is terminal")
        self.failed_stage = self.state
        self.error = error
        self.state = JobState.FAILED
        self.history.append(JobState.FAILED)

    def block(self, error: JobError) -> None:
        if self.state != JobState.PENDING:
            raise IllegalTransition(f"{self.job_id}: only pending jobs can be blocked")
        self.error = error
        self.state = JobState.BLOCKED
        self.history.append(JobState.BLOCKED)

    def outcome(self) -> JobOutcome:
        return JobOutcome(
            job_id=self.job_id,
            state=self.state,
            failed_stage=self.failed_stage,
            error=self.error,
            published=self.published,
            history=tuple(self.history),
        )


@dataclass(frozen=True, slots=True)
class JobOutcome:
    job_id: str
    state: JobState
    failed_stage: JobState | None = None
    error: JobError | None = None
    published: PublishResult | None = None
    history: tuple[JobState, ...] = ()

    @property
    def ok(self) -> bool:
        return self.state == JobState.PUBLISHED


@dataclass(frozen=True, slots=True)
class RunReport:
    tag: str
    outcomes: tuple[JobOutcome, ...]

    @property
    def published(self) -> list[JobOutcome]:
        return [o for o in self.outcomes if o.state == JobState.PUBLISHED]

    @property
    def unpublished(self) -> list[JobOutcome]:
        return [o for o in self.outcomes if o.state != JobState.PUBLISHED]

    @property
    def ok(self) -> bool:
        return not self.unpublished

    @property
    def exit_code(self) -> ErrorCode:
        """OK only if every job published; build failures outrank network and I/O ones."""
        codes = [job_error_exit_code(o.error) for o in self.unpublished if o.error is not None]
        if not self.ok and not codes:
            return ErrorCode.BUILD_ERROR
        return min(codes, default=ErrorCode.OK)


def run_job(
    ctx: RunContext,
    job: BuildJob,
    store: ReleaseStore,
    console: ConsoleProtocol,
    cancel: threading.Event,
) -> JobOutcome:
    """Run one job through every stage, stopping at the first failure."""
    tracker = JobTracker(job_id=job.job_id)

    def stop(error: JobError) -> JobOutcome:
        tracker.fail(error)
        console.job(
            job.job_id,
            f"failed while {tracker.failed_stage}: {describe_job_error(error)}",
            Style.ERROR,
        )
        return tracker.outcome()

    if cancel.is_set():
        return stop(Cancelled(job.job_id))

    console.job(job.job_id, f"prep: {job.toolchain} for {job.target}", Style.DIM)
    prep = run_prep(ctx, job)
    if isinstance(prep, Err):
        tracker.block(prep.error)
        console.job(job.job_id, f"blocked: {describe_job_error(prep.error)}", Style.WARNING)
        return tracker.outcome()

    tracker.advance(JobState.BUILDING)
    artifacts: list[BuiltArtifact] = []
    for binary in job.binaries:
        if cancel.is_set():
            return stop(Cancelled(job.job_id))
        console.job(job.job_id, f"building {binary.name} ({','.join(binary.features)})")
        built = build(ctx, job, binary)
        if isinstance(built, Err):
            return stop(built.error)
        artifacts.append(built.value)

    report = version_report(ctx, job)
    if isinstance(report, Err):
        return stop(report.error)

    if cancel.is_set():
        return stop(Cancelled(job.job_id))
    tracker.advance(JobState.PACKAGING)
    bundle = package(ctx, job, artifacts, report.value)
    if isinstance(bundle, Err):
        return stop(bundle.error)
    console.job(job.job_id, f"packaged {', '.join(bundle.value.names)}", Style.DIM)

    if cancel.is_set():
        return stop(Cancelled(job.job_id))
    tracker.advance(JobState.MERGING)
    archive = merge(ctx, job, bundle.value, store)
    if isinstance(archive, Err):
        return stop(archive.error)

    if cancel.is_set():
        return stop(Cancelled(job.job_id))
    tracker.advance(JobState.PUBLISHING)
    published = publish(ctx, job, archive.value, store)
    if isinstance(published, Err):
        return stop(published.error)

    tracker.published = published.value
    tracker.advance(JobState.PUBLISHED)
    console.job(job.job_id, f"published {published.value.asset} to {ctx.tag}", Style.SUCCESS)
    return tracker.outcome()


def _cancelled_outcome(job: BuildJob) -> JobOutcome:
    return JobOutcome(
        job_id=job.job_id,
        state=JobState.FAILED,
        failed_stage=JobState.PENDING,
        error=Cancelled(job.job_id),
        history=(JobState.PENDING, JobState.FAILED),
    )


def _collect(future: Future[JobOutcome], job: BuildJob) -> JobOutcome:
    try:
        return future.result()
    except CancelledError:
        return _cancelled_outcome(job)
    except Exception as e:
        # A bug in one job must not take the report for its siblings with it.
        return JobOutcome(
            job_id=job.job_id,
            state=JobState.FAILED,
            error=InternalError(job.job_id, f"{type(e).__name__}: {e}"),
            history=(JobState.PENDING, JobState.FAILED),
        )


def run_jobs(
    ctx: RunContext,
    jobs: Sequence[BuildJob],
    store: ReleaseStore,
    console: ConsoleProtocol,
    *,
    workers: int | None = None,
    cancel: threading.Event | None = None,
) -> RunReport:
    """Fan jobs out to a thread pool and gather one outcome per job.

    On KeyboardInterrupt, jobs that have not started are reported as
    cancelled and running jobs stop at their next stage boundary.
    """
    cancel = cancel or threading.Event()
    outcomes: dict[str, JobOutcome] = {}

    pool = ThreadPoolExecutor(
        max_workers=workers or len(jobs) or 1, thread_name_prefix="nightly-job"
    )
    futures = {pool.submit(run_job, ctx, job, store, console, cancel): job for job in jobs}
    try:
        for future in as_completed(futures):
            job = futures[future]
            outcomes[job.job_id] = _collect(future, job)
    except KeyboardInterrupt:
        cancel.set()
        console.warning("cancelled: waiting for running jobs to reach a stage boundary")
        pool.shutdown(wait=True, cancel_futures=True)
        for future, job in futures.items():
            if job.job_id not in outcomes:
                outcomes[job.job_id] = _collect(future, job)
    finally:
        pool.shutdown(wait=True)

    return RunReport(tag=ctx.tag, outcomes=tuple(outcomes[j.job_id] for j in jobs))
