"""Variant matrix: static configuration -> ordered build jobs.

Pure. No filesystem, no subprocess.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from nightly.core.config import Config, JobConfig
from nightly.core.result import Err, Ok, Result
from nightly.services.errors import MatrixError
from nightly.services.model import BinaryVariant, BuildJob, Platform

# Cargo features that select which binary is built. Two in one build is a
# contradiction cargo only reports after minutes of compiling.
BINARY_SELECTORS = frozenset({"full", "lite", "datapusher_plus"})


def _dedupe(items: Iterable[str]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for item in items:
        seen.setdefault(item, None)
    return tuple(seen)


def _check_features(
    target: str, binary: str, features: tuple[str, ...], defaults: bool
) -> str | None:
    selectors = sorted(BINARY_SELECTORS.intersection(features))
    if len(selectors) > 1:
        return f"{target}/{binary}: mutually exclusive features {', '.join(selectors)}"
    if not defaults and "default" in features:
        return f"{target}/{binary}: 'default' feature requested with default_features = false"
    return None


def _job_from_config(config: Config, job: JobConfig) -> Result[BuildJob, MatrixError]:
    platform = Platform.parse(job.os)
    if platform is None:
        return Err(MatrixError(f"unknown os {job.os!r} (linux, macos, windows)", target=job.target))

    known = {b.name for b in config.binaries}
    unknown = sorted(name for name, _ in job.features if name not in known)
    if unknown:
        return Err(
            MatrixError(f"features for unknown binaries: {', '.join(unknown)}", target=job.target)
        )

    binaries: list[BinaryVariant] = []
    for binary in config.binaries:
        features = _dedupe((*binary.features, *job.features_for(binary.name)))
        problem = _check_features(job.target, binary.name, features, job.default_features)
        if problem is not None:
            return Err(MatrixError(problem, target=job.target))
        binaries.append(BinaryVariant(name=binary.name, features=features))

    return Ok(
        BuildJob(
            target=job.target,
            platform=platform,
            arch=job.target.split("-", 1)[0],
            binaries=tuple(binaries),
            default_features=job.default_features,
            prep=job.prep,
            toolchain=config.toolchain.channel,
        )
    )


def build_matrix(
    config: Config, *, only: Sequence[str] = ()
) -> Result[tuple[BuildJob, ...], MatrixError]:
    """Enumerate build jobs in configuration order.

    Args:
        config: Loaded configuration.
        only: Restrict to these targets; an unknown target is an error.
    """
    targets = [j.target for j in config.jobs]
    duplicates = sorted({t for t in targets if targets.count(t) > 1})
    if duplicates:
        return Err(MatrixError(f"duplicate targets: {', '.join(duplicates)}"))

    missing = [t for t in only if t not in targets]
    if missing:
        return Err(
            MatrixError(f"unknown target(s): {', '.join(missing)}", target=missing[0])
        )

    jobs: list[BuildJob] = []
    for job_config in config.jobs:
        if only and job_config.target not in only:
            continue
        result = _job_from_config(config, job_config)
        if isinstance(result, Err):
            return result
        jobs.append(result.value)

    if not jobs:
        return Err(MatrixError("the build matrix is empty"))
    return Ok(tuple(jobs))
