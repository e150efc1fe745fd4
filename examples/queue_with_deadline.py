"""
Example pushing simulated downloads through a bounded queue with a deadline.
"""

import asyncio
import logging

from batcave import TimeoutExpiredError, new_queue, run, wrap_with_timeout

# Configure logging
logging.basicConfig(level=logging.DEBUG)
logger = logging.getLogger(__name__)


async def download(name: str, duration: float) -> str:
    """
    Example async task that simulates an I/O operation.

    Args:
        name: Label of the fake download.
        duration: How long to sleep in seconds.

    Returns:
        str: A message indicating the download completed.
    """
    logger.info(f"Downloading {name}, will take {duration} seconds")
    await asyncio.sleep(duration)
    return f"{name} downloaded after {duration} seconds"


async def main() -> None:
    queue = new_queue(concurrency_limit=2)
    bounded_download = wrap_with_timeout(download, timeout_ms=1500)

    jobs = {"a.txt": 0.5, "b.txt": 1.0, "c.txt": 2.0, "d.txt": 0.2}
    handles = {
        name: queue.push(lambda name=name, duration=duration: bounded_download(name, duration))
        for name, duration in jobs.items()
    }

    for name, handle in handles.items():
        try:
            logger.info(await handle)
        except TimeoutExpiredError as e:
            logger.warning(f"{name}: {e}")


if __name__ == "__main__":
    run(main())
