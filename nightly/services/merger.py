"""Artifact merger: layer a job's bundle onto the published platform zip.

Nightly binaries are added next to the stable ones; nothing already in the
zip is removed. The remote asset is never touched here, only read.
"""

from __future__ import annotations

from nightly.core.result import Err, Ok, Result
from nightly.services.archive import (
    ReleaseArchive,
    bundle_entries,
    empty_archive,
    merge_entries,
    read_archive,
)
from nightly.services.errors import MergeError
from nightly.services.model import Bundle, BuildJob, RunContext
from nightly.services.store import ReleaseStore


def merge(
    ctx: RunContext, job: BuildJob, bundle: Bundle, store: ReleaseStore
) -> Result[ReleaseArchive, MergeError]:
    """Fetch the existing archive (or start empty) and add the bundle to it."""
    asset = ctx.asset_name(job.platform_id)

    fetched = store.read(asset)
    if isinstance(fetched, Err):
        return Err(
            MergeError(
                job_id=job.job_id,
                asset=asset,
                kind="download_failed",
                message=f"{fetched.error.kind}: {fetched.error.message}",
            )
        )

    if fetched.value is None:
        base = empty_archive(asset)
    else:
        decoded = read_archive(asset, fetched.value)
        if isinstance(decoded, Err):
            return Err(
                MergeError(
                    job_id=job.job_id,
                    asset=asset,
                    kind="corrupt_archive",
                    message=decoded.error.message,
                )
            )
        base = decoded.value

    entries = bundle_entries(bundle)
    if isinstance(entries, Err):
        return Err(
            MergeError(
                job_id=job.job_id,
                asset=asset,
                kind="bundle_unreadable",
                message=str(entries.error),
            )
        )

    return Ok(merge_entries(base, entries.value))
