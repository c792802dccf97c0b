from __future__ import annotations

from pathlib import Path

import pytest

from nightly.core.config import Config, JobConfig
from nightly.core.result import Err, Ok, Result
from nightly.git import repository as repo_mod
from nightly.output.console import MockConsole
from nightly.platform.process import ProcessError
from nightly.services import pipeline as pipeline_mod
from nightly.services.errors import MatrixError, SourceError
from nightly.services.run import RunOptions, dry_run, execute, plan_run
from nightly.services.store import MemoryReleaseStore

from ._support import LINUX, MUSL

HEAD = "c" * 40


class FakeGit:
    def __init__(self, tag_lines: str, *, fail_worktree: bool = False) -> None:
        self.tag_lines = tag_lines
        self.fail_worktree = fail_worktree
        self.calls: list[list[str]] = []

    def __call__(
        self, cmd: list[str], *, cwd: Path, timeout: float | None = None
    ) -> Result[str, ProcessError]:
        del cwd, timeout
        self.calls.append(cmd)
        sub = cmd[3]
        if sub == "for-each-ref":
            return Ok(self.tag_lines)
        if sub == "rev-parse":
            return Ok(HEAD)
        if sub == "worktree" and self.fail_worktree:
            return Err(ProcessError(tuple(cmd), 128, "", "fatal: invalid reference"))
        return Ok("")


def _options(tmp_path: Path, **kwargs: object) -> RunOptions:
    return RunOptions(repo_path=tmp_path, config=Config(), **kwargs)  # type: ignore[arg-type]


def test_no_tags_aborts_before_any_job(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    fake = FakeGit("")
    monkeypatch.setattr(repo_mod, "run_process", fake)

    def never(*args: object, **kwargs: object) -> None:
        raise AssertionError("no job may start")

    monkeypatch.setattr(pipeline_mod, "run_job", never)

    result = plan_run(_options(tmp_path))
    assert isinstance(result, Err)
    assert result.error.kind == "no_tags"  # type: ignore[union-attr]
    assert not any(c[3] == "worktree" for c in fake.calls)


def test_matrix_error_aborts_before_git(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    fake = FakeGit("")
    monkeypatch.setattr(repo_mod, "run_process", fake)
    options = RunOptions(repo_path=tmp_path, config=Config(jobs=(JobConfig("x", "beos"),)))

    result = plan_run(options)
    assert isinstance(result, Err)
    assert isinstance(result.error, MatrixError)
    assert fake.calls == []


def test_plan_checks_out_resolved_tag(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    fake = FakeGit(f"0.91.0\t{'a' * 40}\t\t100\n")
    monkeypatch.setattr(repo_mod, "run_process", fake)

    result = plan_run(_options(tmp_path, only=(MUSL,)))
    assert isinstance(result, Ok)
    plan = result.value
    assert plan.ctx.tag == "0.91.0"
    assert plan.ctx.source_dir == tmp_path / "target" / "nightly" / "src-0.91.0"
    assert [j.target for j in plan.jobs] == [MUSL]
    assert any(c[3:5] == ["worktree", "add"] for c in fake.calls)


def test_checkout_failure_is_source_error(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setattr(
        repo_mod, "run_process", FakeGit(f"0.91.0\t{'a' * 40}\t\t100\n", fail_worktree=True)
    )
    result = plan_run(_options(tmp_path))
    assert isinstance(result, Err)
    assert isinstance(result.error, SourceError)
    assert result.error.ref == "0.91.0"


def test_source_override_skips_checkout(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    fake = FakeGit(f"0.91.0\t{'a' * 40}\t\t100\n")
    monkeypatch.setattr(repo_mod, "run_process", fake)
    source = tmp_path / "qsv"

    result = plan_run(_options(tmp_path, source=source, workers=3))
    assert isinstance(result, Ok)
    assert result.value.ctx.source_dir == source
    assert result.value.workers == 3
    assert not any(c[3] == "worktree" for c in fake.calls)


def test_dry_run_lists_commands(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    fake = FakeGit(f"0.91.0\t{'a' * 40}\t\t100\n")
    monkeypatch.setattr(repo_mod, "run_process", fake)

    planned = plan_run(_options(tmp_path, only=(LINUX,)), checkout=False)
    assert isinstance(planned, Ok)
    assert not any(c[3] == "worktree" for c in fake.calls)

    ((job, commands),) = dry_run(planned.value)
    assert job.target == LINUX
    assert len(commands) == 5
    assert commands[0] == (
        "rustup toolchain install nightly-2023-02-15 --profile minimal"
        f" --component rust-src --target {LINUX}"
    )
    assert commands[1].startswith("QSV_KIND=prebuilt-nightly RUSTFLAGS=--emit=asm cargo")
    assert commands[-1] == "RUSTUP_TOOLCHAIN=nightly-2023-02-15 rustup show"


def test_execute_reports_every_job(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(
        repo_mod, "run_process", FakeGit(f"0.91.0\t{'a' * 40}\t\t100\n")
    )
    planned = plan_run(_options(tmp_path, source=tmp_path))
    assert isinstance(planned, Ok)

    def cancelled_job(ctx, job, store, console, cancel):  # type: ignore[no-untyped-def]
        del ctx, store, console, cancel
        return pipeline_mod._cancelled_outcome(job)  # pyright: ignore[reportPrivateUsage]

    monkeypatch.setattr(pipeline_mod, "run_job", cancelled_job)
    console = MockConsole()
    report = execute(planned.value, MemoryReleaseStore(), console)
    assert len(report.outcomes) == 5
    assert console.messages[0] == "nightly 0.91.0: 5 job(s)"
