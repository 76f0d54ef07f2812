# cli.py
import json
import logging
from typing import Optional

import click

from ecs_fleet.aws import populate, scale
from ecs_fleet.models import Instance, InstanceTask, RequestContext, User
from ecs_fleet.settings import get_settings

logger = logging.getLogger(__name__)


def _parse_instance(value: str, image_tag_ex: Optional[str] = None, event_rule: str = "") -> Instance:
    """Parse NAME=CLUSTER/SERVICE (or CLUSTER/SERVICE) into an Instance."""
    name, _, target = value.rpartition('=')
    cluster, sep, service = target.partition('/')
    if not sep or not cluster or not service:
        raise click.BadParameter(f"expected [NAME=]CLUSTER/SERVICE, got {value}")
    return Instance(
        name=name or service,
        cluster=cluster,
        service=service,
        event_rule=event_rule,
        task=InstanceTask(image_tag_ex=image_tag_ex),
    )


@click.group()
def cli():
    """CLI commands for ECS instance state and scaling"""
    logging.basicConfig(level=get_settings().log_level.upper())


@cli.command()
def show_config():
    """Show current configuration"""
    settings = get_settings()

    print("Current Configuration:")
    print(f"  Deployment Mode: {settings.deployment_mode}")
    print(f"  AWS Region: {settings.aws_region}")
    print(f"  AWS Endpoint: {settings.aws_endpoint_url}")
    print(f"  Console Host: {settings.console_host}")
    print(f"  Populate Max Workers: {settings.populate_max_workers or 'one per instance'}")


@cli.command()
@click.argument("instances", nargs=-1, required=True)
@click.option("--image-tag-ex", default=None, help="Regex extracting the version from image tags")
@click.option("--details/--no-details", default=False, help="Include running task details")
def status(instances, image_tag_ex, details):
    """Show reconciled state of [NAME=]CLUSTER/SERVICE instances"""
    parsed = {}
    for value in instances:
        instance = _parse_instance(value, image_tag_ex)
        if instance.name in parsed:
            raise click.BadParameter(f"duplicate instance name {instance.name}", param_hint="INSTANCES")
        parsed[instance.name] = instance

    results = populate(parsed, include_task_details=details)

    click.echo(json.dumps(
        {name: results[name].to_dict() for name in sorted(results)},
        indent=2,
        default=str,
    ))


@cli.command(name="scale")
@click.argument("instance")
@click.option("--rule", required=True, help="Event rule whose target holds the run parameters")
@click.option("--count", type=click.IntRange(min=0), required=True, help="Desired task count")
@click.option("--restart", is_flag=True, default=False, help="Stop running tasks before starting new ones")
@click.option("--user-email", required=True, envvar="ECS_FLEET_USER_EMAIL", help="Acting user")
def scale_command(instance, rule, count, restart, user_email):
    """Scale a [NAME=]CLUSTER/SERVICE instance to COUNT tasks"""
    target = _parse_instance(instance, event_rule=rule)
    ctx = RequestContext(user=User(email=user_email))

    scale(ctx, target, count, restart=restart)
    click.echo(f"Scaled {target.cluster}/{target.service} to {count} task(s)"
               f"{' (restarted)' if restart else ''}")


if __name__ == "__main__":
    cli()
