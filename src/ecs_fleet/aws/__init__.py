"""AWS-backed reconciliation and scaling of ECS instances."""
from ecs_fleet.aws.populate import populate
from ecs_fleet.aws.scale import scale

__all__ = ["populate", "scale"]
