# catalog/core/health.py
import logging
import time
from dataclasses import dataclass
from typing import Callable

from catalog.core.errors import UnavailableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DependencyStatus:
    """
    Result of the startup connectivity probes.

    Built once in the application lifespan and handed to the product
    service; it never changes while the process runs.
    """

    database: bool = False
    storage: bool = False

    @property
    def ready(self) -> bool:
        return self.database and self.storage

    def require_database(self) -> None:
        if not self.database:
            raise UnavailableError("Database is not connected")

    def require_storage(self) -> None:
        if not self.storage:
            raise UnavailableError("Image storage is not connected")

    def as_dict(self) -> dict[str, str]:
        return {
            "database": "connected" if self.database else "unavailable",
            "storage": "connected" if self.storage else "unavailable",
        }


def probe_dependency(
    name: str,
    check: Callable[[], None],
    attempts: int = 5,
    delay_seconds: float = 2.0,
) -> bool:
    """
    Call `check` up to `attempts` times, sleeping `delay_seconds` between
    failures.

    Returns:
        True as soon as one call succeeds, False when every attempt failed.
    """
    for attempt in range(1, attempts + 1):
        try:
            check()
        except Exception as e:
            logger.warning(
                "Startup: %s probe failed (attempt %d/%d): %s",
                name,
                attempt,
                attempts,
                e,
            )
            if attempt < attempts:
                time.sleep(delay_seconds)
            continue
        logger.info("Startup: %s connection OK.", name)
        return True

    logger.error("Startup: %s unavailable after %d attempts.", name, attempts)
    return False
