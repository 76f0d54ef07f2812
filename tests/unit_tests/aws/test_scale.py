import pytest
from unittest.mock import MagicMock

from ecs_fleet.aws.scale import build_run_task_request, scale
from ecs_fleet.exceptions import AmbiguousTargetError, EventTargetNotFoundError, MissingIdentityError
from ecs_fleet.models import RequestContext
from tests.consts import (
    TEST_CLUSTER,
    TEST_RULE,
    TEST_SECURITY_GROUPS,
    TEST_SUBNETS,
    TEST_TASK_DEFINITION_ARN,
    TEST_USER_EMAIL,
)
from tests.fixtures.ecs_fixtures import client_error, make_target

RUNNING_TASKS = ['arn:task/1', 'arn:task/2']


@pytest.fixture
def running_ecs_client(ecs_client):
    ecs_client.list_tasks.return_value = {'taskArns': RUNNING_TASKS}
    return ecs_client


def test_scale_to_zero_only_stops(ctx, instance, running_ecs_client, events_client):
    scale(ctx, instance, 0, ecs_client=running_ecs_client, events_client=events_client)

    assert running_ecs_client.stop_task.call_count == len(RUNNING_TASKS)
    running_ecs_client.run_task.assert_not_called()
    events_client.list_targets_by_rule.assert_called_once_with(Rule=TEST_RULE)


def test_scale_to_zero_with_restart_never_runs(ctx, instance, running_ecs_client, events_client):
    scale(ctx, instance, 0, restart=True, ecs_client=running_ecs_client, events_client=events_client)

    assert running_ecs_client.stop_task.call_count == len(RUNNING_TASKS)
    assert running_ecs_client.list_tasks.call_count == 1
    running_ecs_client.run_task.assert_not_called()


def test_scale_up_runs_without_stopping(ctx, instance, running_ecs_client, events_client):
    scale(ctx, instance, 3, ecs_client=running_ecs_client, events_client=events_client)

    running_ecs_client.stop_task.assert_not_called()
    running_ecs_client.run_task.assert_called_once_with(
        cluster=TEST_CLUSTER,
        count=3,
        launchType='FARGATE',
        group='web',
        networkConfiguration={'awsvpcConfiguration': {
            'subnets': TEST_SUBNETS,
            'securityGroups': TEST_SECURITY_GROUPS,
            'assignPublicIp': 'DISABLED',
        }},
        taskDefinition=TEST_TASK_DEFINITION_ARN,
        startedBy=TEST_USER_EMAIL,
    )


def test_restart_stops_then_runs(ctx, instance, running_ecs_client, events_client):
    calls = MagicMock()

    def run_task(**kwargs):
        calls.run(kwargs['count'])
        return {'tasks': [], 'failures': []}

    running_ecs_client.stop_task.side_effect = lambda **kwargs: calls.stop(kwargs['task'])
    running_ecs_client.run_task.side_effect = run_task

    scale(ctx, instance, 2, restart=True, ecs_client=running_ecs_client, events_client=events_client)

    assert [c[0] for c in calls.mock_calls] == ['stop', 'stop', 'run']
    assert calls.run.call_args.args == (2,)
    assert running_ecs_client.list_tasks.call_count == 1


def test_stop_reason_names_user(ctx, instance, running_ecs_client, events_client):
    scale(ctx, instance, 0, ecs_client=running_ecs_client, events_client=events_client)

    for call, task_arn in zip(running_ecs_client.stop_task.call_args_list, RUNNING_TASKS):
        assert call.kwargs == {
            'cluster': TEST_CLUSTER,
            'task': task_arn,
            'reason': f"Stopped by {TEST_USER_EMAIL}",
        }


def test_stop_failures_are_ignored(ctx, instance, running_ecs_client, events_client):
    running_ecs_client.stop_task.side_effect = client_error(operation="StopTask")

    scale(ctx, instance, 1, restart=True, ecs_client=running_ecs_client, events_client=events_client)

    assert running_ecs_client.stop_task.call_count == len(RUNNING_TASKS)
    running_ecs_client.run_task.assert_called_once()


def test_no_targets_fails_before_any_task_call(ctx, instance, running_ecs_client, events_client):
    events_client.list_targets_by_rule.return_value = {'Targets': []}

    with pytest.raises(EventTargetNotFoundError):
        scale(ctx, instance, 2, restart=True, ecs_client=running_ecs_client, events_client=events_client)

    running_ecs_client.list_tasks.assert_not_called()
    running_ecs_client.stop_task.assert_not_called()
    running_ecs_client.run_task.assert_not_called()


def test_multiple_targets_rejected(ctx, instance, running_ecs_client, events_client):
    events_client.list_targets_by_rule.return_value = {'Targets': [make_target(), make_target()]}

    with pytest.raises(AmbiguousTargetError):
        scale(ctx, instance, 0, ecs_client=running_ecs_client, events_client=events_client)

    running_ecs_client.stop_task.assert_not_called()


def test_missing_identity_is_a_contract_violation(instance, running_ecs_client, events_client):
    with pytest.raises(MissingIdentityError):
        scale(RequestContext(), instance, 1, ecs_client=running_ecs_client, events_client=events_client)

    events_client.list_targets_by_rule.assert_not_called()


def test_negative_count_rejected(ctx, instance, running_ecs_client, events_client):
    with pytest.raises(ValueError):
        scale(ctx, instance, -1, ecs_client=running_ecs_client, events_client=events_client)


def test_run_failure_propagates(ctx, instance, running_ecs_client, events_client):
    error = client_error(operation="RunTask")
    running_ecs_client.run_task.side_effect = error

    with pytest.raises(type(error)):
        scale(ctx, instance, 1, ecs_client=running_ecs_client, events_client=events_client)


def test_list_failure_aborts_restart(ctx, instance, running_ecs_client, events_client):
    running_ecs_client.list_tasks.side_effect = client_error(operation="ListTasks")

    with pytest.raises(Exception):
        scale(ctx, instance, 1, restart=True, ecs_client=running_ecs_client, events_client=events_client)

    running_ecs_client.run_task.assert_not_called()


def test_run_request_omits_absent_parameters(instance):
    target = {'EcsParameters': {'TaskDefinitionArn': TEST_TASK_DEFINITION_ARN}}

    request = build_run_task_request(instance, target, 1, TEST_USER_EMAIL)

    assert request == {
        'cluster': TEST_CLUSTER,
        'count': 1,
        'taskDefinition': TEST_TASK_DEFINITION_ARN,
        'startedBy': TEST_USER_EMAIL,
    }


def test_non_ecs_target_fails_before_stopping(ctx, instance, running_ecs_client, events_client):
    events_client.list_targets_by_rule.return_value = {'Targets': [
        {'Id': 'notify', 'Arn': 'arn:aws:lambda:us-east-1:123456789012:function:notify'}
    ]}

    with pytest.raises(EventTargetNotFoundError) as excinfo:
        scale(ctx, instance, 1, restart=True, ecs_client=running_ecs_client, events_client=events_client)

    assert "notify" in str(excinfo.value)
    running_ecs_client.list_tasks.assert_not_called()
    running_ecs_client.stop_task.assert_not_called()
    running_ecs_client.run_task.assert_not_called()
