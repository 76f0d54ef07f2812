"""Task listing and description for an instance's ECS service."""
import logging
from typing import Any, Dict, List, Optional

from ecs_fleet.aws.utils import get_ecs_client, chunked
from ecs_fleet.models import Instance, TaskInfo

logger = logging.getLogger(__name__)

RUNNING = "RUNNING"
STOPPED = "STOPPED"

# DescribeTasks accepts at most 100 task ARNs per call
DESCRIBE_TASKS_LIMIT = 100


def list_tasks(instance: Instance, desired_status: Optional[str] = None,
               ecs_client=None) -> List[str]:
    """List task ARNs of the instance's service.

    Only the first page is read; live task sets fit in one page.
    """
    ecs_client = ecs_client or get_ecs_client()

    params = {
        'cluster': instance.cluster,
        'serviceName': instance.service,
    }
    if desired_status:
        params['desiredStatus'] = desired_status

    response = ecs_client.list_tasks(**params)
    task_arns = response.get('taskArns', [])

    logger.debug(f"Listed {len(task_arns)} {desired_status or 'any'} task(s) "
                 f"for {instance.cluster}/{instance.service}")
    return task_arns


def describe_tasks(instance: Instance, task_arns: List[str],
                   ecs_client=None) -> List[Dict[str, Any]]:
    """Describe tasks of the instance's cluster."""
    if not task_arns:
        return []

    ecs_client = ecs_client or get_ecs_client()

    tasks = []
    for batch in chunked(task_arns, DESCRIBE_TASKS_LIMIT):
        response = ecs_client.describe_tasks(cluster=instance.cluster, tasks=batch)
        tasks.extend(response.get('tasks', []))
    return tasks


def get_tasks_info(instance: Instance, ecs_client=None) -> List[TaskInfo]:
    """Describe the running tasks of an instance."""
    ecs_client = ecs_client or get_ecs_client()

    task_arns = list_tasks(instance, RUNNING, ecs_client)
    tasks = describe_tasks(instance, task_arns, ecs_client)

    return [TaskInfo.from_task(t, instance.task.image_tag_ex) for t in tasks]
