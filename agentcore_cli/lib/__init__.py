"""Library modules for the AgentCore CLI."""

from .config import ConfigIO, ConfigurationError, load_project
from .credentials import SecureCredentials
from .errors import (
    AwsCredentialsError,
    CdkProjectNotFoundError,
    DuplicateNameError,
    HasDependentsError,
    KmsSetupError,
    NotFoundError,
    ResourceGraphError,
    SelfBindError,
)
from .graph import ResourceGraph
from .identity import setup_api_key_providers
from .models import ProjectSpec, ResourceKind
from .teardown import destroy_target, discover_deployed_targets

__all__ = [
    "ConfigIO",
    "ConfigurationError",
    "load_project",
    "SecureCredentials",
    "AwsCredentialsError",
    "CdkProjectNotFoundError",
    "DuplicateNameError",
    "HasDependentsError",
    "KmsSetupError",
    "NotFoundError",
    "ResourceGraphError",
    "SelfBindError",
    "ResourceGraph",
    "setup_api_key_providers",
    "ProjectSpec",
    "ResourceKind",
    "destroy_target",
    "discover_deployed_targets",
]
