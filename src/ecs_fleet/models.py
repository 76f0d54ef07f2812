"""
Instance model for reconciled ECS services.

An Instance maps one logical deployable unit onto a cluster/service pair and an
event rule used to start tasks on demand. Its State is rebuilt on every
reconciliation pass.
"""
import copy
import re
from dataclasses import dataclass, field, asdict, replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from ecs_fleet.exceptions import MissingIdentityError


def split_image(image: str) -> Tuple[str, str]:
    """Split a container image reference into (repository, tag)."""
    image = image.split('@', 1)[0]
    last_slash = image.rfind('/')
    colon = image.rfind(':')
    if colon > last_slash:
        return image[:colon], image[colon + 1:]
    return image, "latest"


def parse_version(tag: str, image_tag_ex: Optional[str]) -> Tuple[str, str]:
    """Extract (version, build) from an image tag.

    Named groups ``version`` and ``build`` are used when the expression has
    them, otherwise the first group is the version. Without an expression or a
    match the whole tag is the version.
    """
    if not image_tag_ex:
        return tag, ""

    match = re.search(image_tag_ex, tag)
    if match is None:
        return tag, ""

    groups = match.groupdict()
    if groups:
        return groups.get('version') or tag, groups.get('build') or ""

    if match.groups():
        return match.group(1) or tag, ""

    return match.group(0), ""


@dataclass
class Definition:
    """Task definition currently deployed for an instance."""
    arn: str = ""
    family: str = ""
    revision: int = 0
    image: str = ""
    registry: str = ""
    tag: str = ""
    version: str = ""
    build: str = ""

    @classmethod
    def from_task_definition(cls, task_definition: Dict[str, Any],
                             image_tag_ex: Optional[str] = None) -> "Definition":
        containers = task_definition.get('containerDefinitions') or []
        image = containers[0].get('image', "") if containers else ""
        registry, tag = split_image(image) if image else ("", "")
        version, build = parse_version(tag, image_tag_ex) if tag else ("", "")

        return cls(
            arn=task_definition.get('taskDefinitionArn', ""),
            family=task_definition.get('family', ""),
            revision=task_definition.get('revision', 0),
            image=image,
            registry=registry,
            tag=tag,
            version=version,
            build=build,
        )

    def format_version(self) -> str:
        if self.build:
            return f"{self.version}.{self.build}"
        return self.version

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TaskInfo:
    """Details of one running task."""
    arn: str
    task_id: str
    last_status: str = ""
    desired_status: str = ""
    health_status: str = ""
    started_at: Optional[datetime] = None
    version: str = ""

    @classmethod
    def from_task(cls, task: Dict[str, Any], image_tag_ex: Optional[str] = None) -> "TaskInfo":
        arn = task.get('taskArn', "")
        containers = task.get('containers') or []
        version = ""
        if containers and containers[0].get('image'):
            _, tag = split_image(containers[0]['image'])
            version, build = parse_version(tag, image_tag_ex)
            if build:
                version = f"{version}.{build}"

        return cls(
            arn=arn,
            task_id=arn.rsplit('/', 1)[-1],
            last_status=task.get('lastStatus', ""),
            desired_status=task.get('desiredStatus', ""),
            health_status=task.get('healthStatus', ""),
            started_at=task.get('startedAt'),
            version=version,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            **asdict(self),
            'started_at': self.started_at.isoformat() if self.started_at else None
        }


@dataclass
class Link:
    """A link shown next to an instance. Generated links are rebuilt on every pass."""
    name: str
    url: str
    description: str = ""
    generated: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class State:
    """Reconciled state of an instance.

    Both flags False with an error set means the state is unknown.
    """
    is_pending: bool = False
    is_running: bool = False
    desired_count: int = 0
    version: str = ""
    error: Optional[Exception] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'is_pending': self.is_pending,
            'is_running': self.is_running,
            'desired_count': self.desired_count,
            'version': self.version,
            'error': str(self.error) if self.error else None
        }


@dataclass
class InstanceTask:
    image_tag_ex: Optional[str] = None
    definition: Definition = field(default_factory=Definition)
    tasks_info: List[TaskInfo] = field(default_factory=list)


@dataclass
class Instance:
    """One deployable unit backed by an ECS cluster/service pair."""
    name: str
    cluster: str
    service: str
    event_rule: str = ""
    task: InstanceTask = field(default_factory=InstanceTask)
    links: List[Link] = field(default_factory=list)
    state: State = field(default_factory=State)

    @property
    def resource_id(self) -> str:
        """Application Auto Scaling resource id of the service."""
        return f"service/{self.cluster}/{self.service}"

    def format_version(self) -> str:
        return self.task.definition.format_version()

    def set_state(self, state: State) -> None:
        self.state = state

    def clone(self) -> "Instance":
        """Copy for reconciliation; the state is left to be rebuilt."""
        return replace(
            self,
            task=copy.deepcopy(self.task),
            links=[replace(link) for link in self.links],
            state=State(),
        )

    def set_generated_links(self, links: List[Link]) -> None:
        """Replace previously generated links, keeping user-provided ones."""
        self.links = [link for link in self.links if not link.generated] + links

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'cluster': self.cluster,
            'service': self.service,
            'event_rule': self.event_rule,
            'definition': self.task.definition.to_dict(),
            'tasks': [t.to_dict() for t in self.task.tasks_info],
            'links': [link.to_dict() for link in self.links],
            'state': self.state.to_dict()
        }


@dataclass(frozen=True)
class User:
    email: str


@dataclass(frozen=True)
class RequestContext:
    """Request-scoped values passed explicitly to mutating operations."""
    user: Optional[User] = None

    def require_user(self) -> User:
        if self.user is None or not self.user.email:
            raise MissingIdentityError("operation requires an authenticated user")
        return self.user
