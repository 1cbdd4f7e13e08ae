"""
Shared utilities for Celery tasks.

Common imports and the engine accessor used across all task modules.
"""

from typing import Dict, Any, Optional
from fitquest.core.celery_app import celery_app
from fitquest.services.challenge_engine import get_engine
from fitquest.services.logger import logger


def task_result(success: bool = True, **fields: Any) -> Dict[str, Any]:
    """Uniform {"success": bool, ...} payload returned by every task."""
    return {"success": success, **fields}


# Re-export common imports for use in task modules
__all__ = [
    "celery_app",
    "get_engine",
    "logger",
    "task_result",
    "Dict",
    "Any",
    "Optional",
]
