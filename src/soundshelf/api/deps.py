from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from soundshelf.core.db import AsyncSessionLocal
from soundshelf.core.scan_state import get_scan_state_store
from soundshelf.worker.coordinator import ScanCoordinator

# One coordinator per process: it owns the single-flight scan lifecycle
scan_coordinator = ScanCoordinator(
    AsyncSessionLocal, state_store=get_scan_state_store()
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async DB session."""
    async with AsyncSessionLocal() as session:
        yield session


def get_coordinator() -> ScanCoordinator:
    """Dependency returning the process-wide scan coordinator."""
    return scan_coordinator
