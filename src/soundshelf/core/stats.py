"""Statistics tracking dataclasses for scan operations.

This module provides a type-safe dataclass for tracking the outcome of one
library scan, replacing primitive dict usage with a structured type.
"""

from dataclasses import dataclass


@dataclass
class ScanStats:
    """Statistics for one reconciliation pass.

    Attributes:
        observed: Files returned by the walk and classified.
        new: Files with no catalog entry.
        modified: Files whose modified time differs from the catalog.
        unchanged: Files whose modified time matches the catalog.
        skipped: New/modified files whose metadata could not be extracted.
        written: Records committed by the upsert writer.
        batches_committed: Upsert transactions committed.
        deleted: Catalog entries removed by the sweep.
        walk_errors: Directories or entries the walk could not read. Any
            walk error leaves the sweep skipped for this scan.

    Example:
        >>> stats = ScanStats()
        >>> stats.new += 1
        >>> stats.to_dict()["new"]
        1
    """

    observed: int = 0
    new: int = 0
    modified: int = 0
    unchanged: int = 0
    skipped: int = 0
    written: int = 0
    batches_committed: int = 0
    deleted: int = 0
    walk_errors: int = 0

    def to_dict(self) -> dict:
        """Convert stats to dictionary for API responses.

        Returns:
            Dictionary with all stat fields.
        """
        return {
            "observed": self.observed,
            "new": self.new,
            "modified": self.modified,
            "unchanged": self.unchanged,
            "skipped": self.skipped,
            "written": self.written,
            "batches_committed": self.batches_committed,
            "deleted": self.deleted,
            "walk_errors": self.walk_errors,
        }

    def __str__(self) -> str:
        return (
            f"ScanStats(observed={self.observed}, new={self.new}, "
            f"modified={self.modified}, unchanged={self.unchanged}, "
            f"skipped={self.skipped}, written={self.written}, deleted={self.deleted}, "
            f"walk_errors={self.walk_errors})"
        )
