"""
Run counters shared by the pipeline stages.
"""

from dataclasses import asdict, dataclass


@dataclass
class PipelineStats:
    """
    Progress counters for one stage run.

    Every observed item ends up in exactly one of processed, skipped_existing,
    skipped_filtered, failed or abandoned once the stage has returned.
    """

    observed: int = 0
    processed: int = 0
    skipped_existing: int = 0
    skipped_filtered: int = 0
    failed: int = 0
    abandoned: int = 0
    batches_committed: int = 0
    batches_failed: int = 0
    cancelled: bool = False

    @property
    def skipped(self) -> int:
        return self.skipped_existing + self.skipped_filtered

    @property
    def accounted(self) -> int:
        return self.processed + self.skipped + self.failed + self.abandoned

    def is_balanced(self) -> bool:
        return self.accounted == self.observed

    def progress_line(self) -> str:
        return (
            f"Processed {self.processed} | Skipped {self.skipped_existing} existing, "
            f"{self.skipped_filtered} filtered | Failed {self.failed}"
        )

    def summary_line(self) -> str:
        status = "cancelled" if self.cancelled else "completed"
        return (
            f"Pipeline {status}. Observed {self.observed} | {self.progress_line()} | "
            f"Abandoned {self.abandoned}"
        )

    def to_dict(self) -> dict:
        return asdict(self)
