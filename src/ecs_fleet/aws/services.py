"""Service lookup and health classification."""
import logging
from typing import Any, Dict, Tuple

from ecs_fleet.aws.utils import get_ecs_client
from ecs_fleet.exceptions import ServiceNotFoundError, AmbiguousServiceError
from ecs_fleet.models import Instance

logger = logging.getLogger(__name__)


def inspect_service(instance: Instance, ecs_client=None) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Fetch the service descriptor and its current task definition.

    Returns:
        (task_definition, service)

    Raises:
        ServiceNotFoundError: no service matched the instance's service name
        AmbiguousServiceError: more than one service matched
    """
    ecs_client = ecs_client or get_ecs_client()

    response = ecs_client.describe_services(
        cluster=instance.cluster,
        services=[instance.service]
    )
    services = response.get('services', [])

    if not services:
        raise ServiceNotFoundError(instance.service)

    if len(services) > 1:
        raise AmbiguousServiceError(instance.service, len(services))

    service = services[0]

    td_response = ecs_client.describe_task_definition(
        taskDefinition=service['taskDefinition']
    )

    return td_response['taskDefinition'], service


def is_pending(service: Dict[str, Any]) -> bool:
    """A rollout is in progress, tasks are starting, or counts disagree."""
    desired = service.get('desiredCount', 0)
    running = service.get('runningCount', 0)
    pending = service.get('pendingCount', 0)
    deployments = service.get('deployments', [])

    return (len(deployments) > 1 and desired > 0) or pending > 0 or desired != running


def is_running(service: Dict[str, Any]) -> bool:
    """Enough tasks are running to meet the desired count."""
    desired = service.get('desiredCount', 0)
    running = service.get('runningCount', 0)

    return running > 0 and running >= desired
