"""
Failure reasons for services that are not settling.

Stopped tasks are listed page by page, user-initiated stops are discarded, and
the remaining ones are summarized into a single TaskFailureError.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from ecs_fleet.aws.tasks import STOPPED, describe_tasks
from ecs_fleet.aws.utils import get_ecs_client
from ecs_fleet.exceptions import TaskFailureError
from ecs_fleet.models import Instance

logger = logging.getLogger(__name__)

USER_INITIATED = "UserInitiated"

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def list_stopped_tasks(instance: Instance, ecs_client=None) -> List[Dict[str, Any]]:
    """Describe every stopped task of the instance's service, page by page."""
    ecs_client = ecs_client or get_ecs_client()

    paginator = ecs_client.get_paginator('list_tasks')
    pages = paginator.paginate(
        cluster=instance.cluster,
        serviceName=instance.service,
        desiredStatus=STOPPED,
    )

    tasks = []
    for page in pages:
        tasks.extend(describe_tasks(instance, page.get('taskArns', []), ecs_client))
    return tasks


def _stopped_at(task: Dict[str, Any]) -> datetime:
    stopped_at = task.get('stoppedAt')
    if stopped_at is None:
        return _EPOCH
    if stopped_at.tzinfo is None:
        return stopped_at.replace(tzinfo=timezone.utc)
    return stopped_at


def count_task_failures(tasks: List[Dict[str, Any]]) -> Tuple[int, Optional[str]]:
    """Count abnormally stopped tasks and pick the most recent reason.

    Tasks are ordered by stoppedAt rather than taken in listing order, so the
    reason reported is the latest failure even when ListTasks returns tasks
    out of order. The sort is stable; tasks without a timestamp keep listing
    order. The last failing task's reason is kept.
    """
    count = 0
    reason = None

    for task in sorted(tasks, key=_stopped_at):
        stop_code = task.get('stopCode')
        stopped_reason = task.get('stoppedReason')
        if not stop_code or not stopped_reason:
            continue
        if stop_code == USER_INITIATED:
            continue

        count += 1
        reason = stopped_reason

    return count, reason


def resolve_failure(instance: Instance, ecs_client=None) -> Optional[Exception]:
    """Return the failure to record on a pending instance, or None.

    Remote errors are returned rather than raised so they land in the
    instance state like any other failure.
    """
    try:
        tasks = list_stopped_tasks(instance, ecs_client)
    except (ClientError, BotoCoreError) as e:
        logger.error(f"Failed to list stopped tasks for {instance.name}: {e}")
        return e

    count, reason = count_task_failures(tasks)
    if count > 0:
        logger.info(f"{instance.name}: {count} failed task(s), last reason: {reason}")
        return TaskFailureError(count, reason)

    return None
