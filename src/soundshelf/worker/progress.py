"""Console progress bar for scans started with ``show_progress``."""

from typing import Optional

from tqdm import tqdm


class ProgressReporter:
    """Renders walked-file progress on stderr. A no-op when disabled."""

    def __init__(self, enabled: bool):
        self.enabled = enabled
        self._bar: Optional[tqdm] = None

    def start(self, total: Optional[int]) -> None:
        if self.enabled:
            self._bar = tqdm(total=total, desc="Scanning", unit="file", unit_scale=True)

    def advance(self, observed: int, processed_total: int) -> None:
        if self._bar is not None:
            self._bar.update(observed)
            self._bar.set_postfix(written=processed_total, refresh=False)

    def close(self) -> None:
        if self._bar is not None:
            self._bar.close()
            self._bar = None
