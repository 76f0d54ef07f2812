from tests.fixtures.ecs_fixtures import (  # noqa: F401
    fresh_settings,
    instance,
    ctx,
    ecs_client,
    autoscaling_client,
    events_client,
    mocked_aws,
)
