"""
Task Utilities for Celery

Splits large lists (health samples from a bulk sync) into chunks and
dispatches one task per chunk so the work spreads across workers.

CHUNK_SIZE determines memory usage per worker: smaller chunks distribute
better, larger chunks have less overhead but risk hitting the time limit.
"""

from typing import List, Any, Dict

from fitquest.services.logger import logger

# 100 samples per chunk balances memory vs overhead
DEFAULT_CHUNK_SIZE = 100


def chunk_list(
    items: List[Any], chunk_size: int = DEFAULT_CHUNK_SIZE
) -> List[List[Any]]:
    """
    Split a list into chunks of specified size.

    Args:
        items: List to split
        chunk_size: Size of each chunk

    Returns:
        List of chunks
    """
    if chunk_size < 1:
        raise ValueError("chunk_size must be at least 1")
    return [items[i : i + chunk_size] for i in range(0, len(items), chunk_size)]


def dispatch_chunked_tasks(
    task: Any,
    items: List[Any],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    **kwargs,
) -> Dict[str, Any]:
    """
    Dispatch a Celery task for each chunk of items (fire-and-forget).

    Usage:
        dispatch_chunked_tasks(process_health_samples_chunk_task, samples)
        # Returns: {"dispatched": 3, "total_items": 247, "chunk_size": 100}
    """
    if not items:
        return {"dispatched": 0, "total_items": 0}

    chunks = chunk_list(items, chunk_size)

    for chunk in chunks:
        task.delay(chunk, **kwargs)

    logger.info(
        f"Dispatched {len(chunks)} chunk tasks for {len(items)} items",
        {
            "chunk_size": chunk_size,
            "task": str(task.name) if hasattr(task, "name") else str(task),
        },
    )

    return {
        "dispatched": len(chunks),
        "total_items": len(items),
        "chunk_size": chunk_size,
    }
