"""AWS utility functions and client management."""
import boto3
import logging
from typing import Any
from ecs_fleet.settings import get_settings

logger = logging.getLogger(__name__)

class AWSClientManager:
    """Singleton manager for AWS service clients."""
    _instance = None
    _clients = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(AWSClientManager, cls).__new__(cls)
            cls._instance._initialize()
        return cls._instance

    def _initialize(self):
        """Initialize the client manager with settings."""
        self.settings = get_settings()

        self.region = self.settings.aws_region
        self.endpoint_url = self.settings.aws_endpoint_url
        self.mode = self.settings.deployment_mode

        logger.info("Initializing AWSClientManager")
        logger.info(f"  Mode: {self.mode}")
        logger.info(f"  Region: {self.region}")
        logger.info(f"  Endpoint: {self.endpoint_url}")

    def get_client(self, service_name: str) -> Any:
        """Get or create an AWS service client."""
        if service_name in self._clients:
            return self._clients[service_name]

        client_kwargs = {
            'region_name': self.region
        }

        if self.settings.aws_access_key_id:
            client_kwargs['aws_access_key_id'] = self.settings.aws_access_key_id
        if self.settings.aws_secret_access_key:
            client_kwargs['aws_secret_access_key'] = self.settings.aws_secret_access_key

        # Endpoint override only applies to local/mock modes
        if self.settings.uses_local_endpoint:
            client_kwargs['endpoint_url'] = self.endpoint_url

        try:
            client = boto3.client(service_name, **client_kwargs)
            self._clients[service_name] = client
            logger.debug(f"Created {service_name} client")
            return client
        except Exception as e:
            logger.error(f"Error creating {service_name} client: {str(e)}")
            raise

    @classmethod
    def reset(cls):
        """Drop the singleton so the next use re-reads settings."""
        cls._clients.clear()
        cls._instance = None

# Convenience functions for common operations

def get_ecs_client():
    """Get the ECS client."""
    return AWSClientManager().get_client('ecs')

def get_events_client():
    """Get the EventBridge (CloudWatch Events) client."""
    return AWSClientManager().get_client('events')

def get_application_autoscaling_client():
    """Get the Application Auto Scaling client."""
    return AWSClientManager().get_client('application-autoscaling')

def chunked(items, size):
    """Yield successive slices of at most size items."""
    for start in range(0, len(items), size):
        yield items[start:start + size]
