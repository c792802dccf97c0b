"""Exit codes for the nightly CLI.

A run that publishes every job exits 0. Anything else maps to one of the
codes below so callers (cron, CI) can tell a bad config from a broken
toolchain or a flaky release store.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Process exit codes. Values are stable.

    - 0: every job published
    - 1: user error (bad config, unknown target, bad --tag)
    - 2: environment error (no tags, git/cargo/gh missing, checkout failed)
    - 3: build error (a job failed during prep, build or packaging)
    - 4: network error (merge download or publish upload failed)
    - 5: I/O error (work directory not writable while staging)
    """

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    BUILD_ERROR = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
