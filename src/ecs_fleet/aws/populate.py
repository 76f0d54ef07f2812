"""
Concurrent reconciliation of instance state.

Each instance is inspected on its own worker thread. A failure for one instance
is recorded on that instance's state and never affects the others.
"""
import logging
import re
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, List, Optional

from ecs_fleet.aws.failures import resolve_failure
from ecs_fleet.aws.services import inspect_service, is_pending, is_running
from ecs_fleet.aws.tasks import get_tasks_info
from ecs_fleet.aws.utils import get_ecs_client, get_application_autoscaling_client, chunked
from ecs_fleet.models import Definition, Instance, Link, State
from ecs_fleet.settings import get_settings

logger = logging.getLogger(__name__)

SERVICE_NAMESPACE = "ecs"
SCALABLE_DIMENSION = "ecs:service:DesiredCount"

# DescribeScalableTargets accepts at most 50 resource ids per call
SCALABLE_TARGETS_LIMIT = 50

REGION_PATTERN = re.compile(r"([a-z]{2}-[a-z]+-[0-9])")


def get_region(arn: str) -> Optional[str]:
    """Pull a region token such as us-east-1 out of an ARN."""
    match = REGION_PATTERN.search(arn or "")
    if match is None:
        return None
    return match.group(1)


def fetch_scalable_targets(resource_ids: List[str], autoscaling_client=None) -> Dict[str, int]:
    """Map resource id to MinCapacity for every registered ECS service target."""
    if not resource_ids:
        return {}

    autoscaling_client = autoscaling_client or get_application_autoscaling_client()

    paginator = autoscaling_client.get_paginator('describe_scalable_targets')
    capacities = {}
    for batch in chunked(resource_ids, SCALABLE_TARGETS_LIMIT):
        pages = paginator.paginate(
            ServiceNamespace=SERVICE_NAMESPACE,
            ResourceIds=batch,
            ScalableDimension=SCALABLE_DIMENSION,
        )
        for page in pages:
            for target in page.get('ScalableTargets', []):
                capacities[target['ResourceId']] = target['MinCapacity']

    logger.debug(f"Fetched {len(capacities)} scalable target(s) for {len(resource_ids)} resource(s)")
    return capacities


def populate_instance(instance: Instance, capacities: Dict[str, int],
                      include_task_details: bool = False, ecs_client=None) -> Instance:
    """Reconcile one instance in place and return it."""
    ecs_client = ecs_client or get_ecs_client()
    state = State()

    try:
        task_definition, service = inspect_service(instance, ecs_client)
    except Exception as e:
        logger.warning(f"Failed to inspect {instance.cluster}/{instance.service}: {e}")
        state.error = e
        instance.set_generated_links([])
        instance.set_state(state)
        return instance

    instance.task.definition = Definition.from_task_definition(
        task_definition, instance.task.image_tag_ex
    )

    state.is_pending = is_pending(service)
    state.is_running = is_running(service)
    state.version = instance.format_version()
    state.error = None

    if state.is_pending:
        state.error = resolve_failure(instance, ecs_client)

    state.desired_count = capacities.get(instance.resource_id, 0)

    if include_task_details:
        try:
            instance.task.tasks_info = get_tasks_info(instance, ecs_client)
        except Exception as e:
            logger.warning(f"Failed to fetch task details for {instance.name}: {e}")
            state.error = e

    generated = []
    region = get_region(task_definition.get('taskDefinitionArn', ""))
    if region:
        generated.append(Link(
            generated=True,
            description="AWS Console Service Logs",
            name="logs",
            url=get_settings().console_logs_url(region, instance.cluster, instance.service),
        ))
    instance.set_generated_links(generated)

    instance.set_state(state)
    return instance


def _populate_unit(instance: Instance, capacities: Dict[str, int],
                   include_task_details: bool, ecs_client) -> Instance:
    try:
        return populate_instance(instance, capacities, include_task_details, ecs_client)
    except Exception as e:
        logger.exception(f"Unexpected error reconciling {instance.name}")
        instance.set_generated_links([])
        instance.set_state(State(error=e))
        return instance


def populate(instances: Dict[str, Instance], include_task_details: bool = False,
             ecs_client=None, autoscaling_client=None) -> Dict[str, Instance]:
    """Reconcile every instance concurrently.

    The returned mapping holds exactly one updated copy per input name. Inputs
    are not modified.

    Raises:
        ClientError: the shared scalable target lookup failed
    """
    if not instances:
        return {}

    ecs_client = ecs_client or get_ecs_client()
    autoscaling_client = autoscaling_client or get_application_autoscaling_client()

    resource_ids = sorted({i.resource_id for i in instances.values()})
    capacities = fetch_scalable_targets(resource_ids, autoscaling_client)

    max_workers = len(instances)
    cap = get_settings().populate_max_workers
    if cap:
        max_workers = min(max_workers, cap)

    logger.info(f"Populating {len(instances)} instance(s) with {max_workers} worker(s)")

    results = {}
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_to_name = {
            executor.submit(
                _populate_unit,
                instance.clone(),
                capacities,
                include_task_details,
                ecs_client,
            ): name
            for name, instance in instances.items()
        }

        for future in as_completed(future_to_name):
            results[future_to_name[future]] = future.result()

    return results
