"""Configuration for a single library scan."""

from dataclasses import dataclass
from typing import Optional

from soundshelf.core.config import Settings, settings as default_settings


@dataclass(frozen=True)
class ScanConfig:
    """Parameters for one scan invocation.

    The config is frozen: the coordinator hands the same instance to every
    pipeline stage and nothing may change it while the scan runs.

    Attributes:
        root_path: Directory tree to index.
        batch_size: Records per upsert transaction (default: 100)
        path_batch_size: Walked files classified per snapshot query (default: 1000)
        optimized_mode: Use per-group snapshot queries. False loads the whole
            catalog's (path, mtime) set once instead (legacy mode).
        show_progress: Pre-count the tree and render a progress bar.
        max_write_retries: Extra attempts for a failed write batch (default: 3)
        retry_backoff_seconds: Base delay between write attempts, doubled per retry.
        max_concurrent_extractions: Metadata reads in flight at once (default: 8)

    Example:
        >>> config = ScanConfig(root_path="/music", path_batch_size=500)
        >>> await coordinator.run(config)
    """

    root_path: str
    batch_size: int = 100
    path_batch_size: int = 1000
    optimized_mode: bool = True
    show_progress: bool = True
    max_write_retries: int = 3
    retry_backoff_seconds: float = 0.5
    max_concurrent_extractions: int = 8

    def __post_init__(self):
        """Validate configuration values.

        Raises:
            ValueError: If any configuration value is invalid.
        """
        if not self.root_path:
            raise ValueError("root_path is required")
        if self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if self.path_batch_size < 1:
            raise ValueError("path_batch_size must be >= 1")
        if self.max_write_retries < 0:
            raise ValueError("max_write_retries must be >= 0")
        if self.retry_backoff_seconds < 0:
            raise ValueError("retry_backoff_seconds must be >= 0")
        if self.max_concurrent_extractions < 1:
            raise ValueError("max_concurrent_extractions must be >= 1")

    @classmethod
    def from_settings(
        cls,
        root_path: Optional[str] = None,
        app_settings: Optional[Settings] = None,
        **overrides,
    ) -> "ScanConfig":
        """Build a config from application settings, applying explicit overrides.

        Overrides whose value is None are ignored so API/CLI callers can pass
        optional fields straight through.
        """
        s = app_settings or default_settings
        values = {
            "root_path": root_path or s.MUSIC_PATH,
            "batch_size": s.SCAN_BATCH_SIZE,
            "path_batch_size": s.SCAN_PATH_BATCH_SIZE,
            "optimized_mode": s.SCAN_OPTIMIZED,
            "show_progress": s.SCAN_SHOW_PROGRESS,
            "max_write_retries": s.SCAN_WRITE_RETRIES,
            "retry_backoff_seconds": s.SCAN_RETRY_BACKOFF,
            "max_concurrent_extractions": s.SCAN_MAX_CONCURRENT_EXTRACTIONS,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
