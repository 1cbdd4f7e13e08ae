"""
Celery Signal Handlers

Hooks for Celery lifecycle events:
- worker startup queues a maintenance pass so rankings and reward retries do
  not wait for the first beat interval
- soft failures (tasks returning {"success": False, "error": ...}) are logged
"""

from celery.signals import task_success, worker_ready

from fitquest.services.logger import logger


def _is_soft_failure(result) -> bool:
    """Tasks that return {success: False, error: "..."} instead of raising."""
    if not isinstance(result, dict):
        return False
    return result.get("success") is False and "error" in result


@worker_ready.connect
def on_worker_ready(sender, **kwargs):
    from fitquest.services.tasks import run_scheduled_maintenance_task

    print("🚀 Celery worker ready! Queueing initial challenge maintenance...")

    run_scheduled_maintenance_task.apply_async(countdown=0)

    print("✅ Initial challenge maintenance task queued")


@task_success.connect
def on_task_success(sender=None, result=None, **kwargs):
    if not _is_soft_failure(result):
        return
    task_name = sender.name if sender else None
    logger.warning(
        f"Task {task_name} finished without success: {result.get('error')}",
        {"task_name": task_name},
    )
