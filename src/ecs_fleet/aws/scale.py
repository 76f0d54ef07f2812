"""
Desired-count scaling through an instance's event rule.

The rule's single target holds the run parameters (task definition, launch
type, group, network configuration). Targets are read on every call.

    desired_count == 0          stop all running tasks
    desired_count > 0           run desired_count tasks
    desired_count > 0, restart  stop all running tasks, then run
"""
import logging
from typing import Any, Dict, List

from botocore.exceptions import BotoCoreError, ClientError

from ecs_fleet.aws.tasks import RUNNING, list_tasks
from ecs_fleet.aws.utils import get_ecs_client, get_events_client
from ecs_fleet.exceptions import EventTargetNotFoundError, AmbiguousTargetError
from ecs_fleet.models import Instance, RequestContext

logger = logging.getLogger(__name__)


def resolve_event_target(instance: Instance, events_client=None) -> Dict[str, Any]:
    """Return the ECS target bound to the instance's event rule."""
    events_client = events_client or get_events_client()

    response = events_client.list_targets_by_rule(Rule=instance.event_rule)
    targets = response.get('Targets', [])

    if not targets:
        raise EventTargetNotFoundError(instance.event_rule)

    if len(targets) > 1:
        raise AmbiguousTargetError(instance.event_rule, len(targets))

    target = targets[0]
    if not target.get('EcsParameters', {}).get('TaskDefinitionArn'):
        raise EventTargetNotFoundError(
            instance.event_rule, f"target {target.get('Id')} has no ECS task definition"
        )

    return target


def build_run_task_request(instance: Instance, target: Dict[str, Any],
                           count: int, started_by: str) -> Dict[str, Any]:
    """Translate an event target's ECS parameters into RunTask arguments."""
    ecs_parameters = target.get('EcsParameters', {})

    request = {
        'cluster': instance.cluster,
        'count': count,
        'taskDefinition': ecs_parameters['TaskDefinitionArn'],
        'startedBy': started_by,
    }

    if ecs_parameters.get('LaunchType'):
        request['launchType'] = ecs_parameters['LaunchType']
    if ecs_parameters.get('Group'):
        request['group'] = ecs_parameters['Group']

    vpc = ecs_parameters.get('NetworkConfiguration', {}).get('awsvpcConfiguration')
    if vpc:
        awsvpc = {'subnets': vpc.get('Subnets', [])}
        if vpc.get('SecurityGroups'):
            awsvpc['securityGroups'] = vpc['SecurityGroups']
        if vpc.get('AssignPublicIp'):
            awsvpc['assignPublicIp'] = vpc['AssignPublicIp']
        request['networkConfiguration'] = {'awsvpcConfiguration': awsvpc}

    return request


def stop_tasks(ctx: RequestContext, instance: Instance, ecs_client=None) -> List[str]:
    """Stop every running task of the instance.

    Individual stop failures are logged and skipped. Returns the ARNs a stop
    was requested for.
    """
    user = ctx.require_user()
    ecs_client = ecs_client or get_ecs_client()

    task_arns = list_tasks(instance, RUNNING, ecs_client)

    reason = f"Stopped by {user.email}"
    for task_arn in task_arns:
        try:
            ecs_client.stop_task(cluster=instance.cluster, task=task_arn, reason=reason)
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"Failed to stop task {task_arn}: {e}")

    logger.info(f"Requested stop of {len(task_arns)} task(s) for {instance.name} ({reason})")
    return task_arns


def run_tasks(ctx: RequestContext, instance: Instance, target: Dict[str, Any],
              count: int, ecs_client=None) -> Dict[str, Any]:
    """Start count tasks from the target's parameters."""
    user = ctx.require_user()
    ecs_client = ecs_client or get_ecs_client()

    request = build_run_task_request(instance, target, count, user.email)
    try:
        response = ecs_client.run_task(**request)
    except ClientError as e:
        logger.error(f"Failed to run {count} task(s) for {instance.name}: {e}")
        raise

    for failure in response.get('failures', []):
        logger.warning(f"RunTask failure for {instance.name}: "
                       f"{failure.get('reason')} ({failure.get('arn', 'n/a')})")

    logger.info(f"Started {len(response.get('tasks', []))} of {count} task(s) "
                f"for {instance.name} as {user.email}")
    return response


def scale(ctx: RequestContext, instance: Instance, desired_count: int,
          restart: bool = False, ecs_client=None, events_client=None) -> None:
    """Move an instance to desired_count running tasks.

    Raises:
        MissingIdentityError: ctx carries no user
        ValueError: desired_count is negative
        EventTargetNotFoundError: the rule has no ECS target
        AmbiguousTargetError: the rule has more than one target
        ClientError: listing targets or tasks, or running tasks, failed
    """
    ctx.require_user()
    if desired_count < 0:
        raise ValueError(f"desired_count must not be negative, got {desired_count}")

    ecs_client = ecs_client or get_ecs_client()

    target = resolve_event_target(instance, events_client)

    if desired_count == 0:
        stop_tasks(ctx, instance, ecs_client)
        return

    if restart:
        stop_tasks(ctx, instance, ecs_client)

    run_tasks(ctx, instance, target, desired_count, ecs_client)
