from enum import Enum


class StageStatus(str, Enum):
    """Outcome of a pipeline stage"""

    SUCCESS = "success"
    DEGRADED = "degraded"  # finished with partial data
    FATAL = "fatal"  # run cannot continue
    SKIPPED = "skipped"
