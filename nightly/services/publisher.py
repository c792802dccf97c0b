"""Publisher: upload a merged archive as a release asset."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

from nightly.core.result import Err, Ok, Result
from nightly.services.archive import ReleaseArchive, write_archive
from nightly.services.errors import PublishError
from nightly.services.model import BuildJob, RunContext
from nightly.services.store import ReleaseStore


@dataclass(frozen=True, slots=True)
class PublishResult:
    asset: str
    tag: str
    size: int
    sha256: str
    entries: int


def publish(
    ctx: RunContext, job: BuildJob, archive: ReleaseArchive, store: ReleaseStore
) -> Result[PublishResult, PublishError]:
    """Serialize the archive and replace the asset of the same name on ctx.tag."""
    data = write_archive(archive, compression_level=ctx.compression_level)

    result = store.write(archive.name, data)
    if isinstance(result, Err):
        return Err(
            PublishError(
                job_id=job.job_id,
                asset=archive.name,
                kind=result.error.kind,
                message=result.error.message,
            )
        )

    return Ok(
        PublishResult(
            asset=archive.name,
            tag=ctx.tag,
            size=len(data),
            sha256=hashlib.sha256(data).hexdigest(),
            entries=len(archive.entries),
        )
    )
