"""
Pre-deploy setup of AgentCore Identity API key credential providers.

Flow:
1. Merge secrets from agentcore/.env.local with runtime overrides
2. Optionally make sure the token vault is encrypted with a customer-managed
   KMS key (reusing the vault's existing key when it has one)
3. For every `own` API key provider of every agent, create the provider
   unless it already exists

Step 2 runs to completion before step 3 starts and any failure in it aborts
the whole call with KmsSetupError. Step 3 never aborts: each provider gets
its own result.

There is no transaction across these remote calls. Each step checks remote
state before acting, so re-running after an interruption picks up where the
previous run stopped (already created providers report `exists`). The window
between the existence check and the create call is not guarded against
concurrent operators.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .aws import (
    CUSTOMER_MANAGED_KEY,
    api_key_provider_exists,
    create_api_key_provider,
    create_kms_key,
    get_control_client,
    get_token_vault_kms_configuration,
    set_token_vault_kms_key,
)
from .config import CONFIG_DIR, ENV_FILE, ConfigIO
from .credentials import SecureCredentials
from .errors import KmsSetupError, describe_error
from .models import API_KEY_PROVIDER, AgentEnvSpec, OwnedIdentityProvider, ProjectSpec

logger = logging.getLogger(__name__)


class ProvisionStatus(Enum):
    """Outcome of setting up a single credential provider."""

    CREATED = "created"
    EXISTS = "exists"
    SKIPPED = "skipped"
    ERROR = "error"


@dataclass
class ApiKeyProviderSetupResult:
    agent_name: str
    provider_name: str
    status: ProvisionStatus
    error: str | None = None


@dataclass
class PreDeployIdentityResult:
    results: list[ApiKeyProviderSetupResult] = field(default_factory=list)
    kms_key_arn: str | None = None

    @property
    def has_errors(self) -> bool:
        """True iff any provider failed. Skipped providers are not errors."""
        return any(r.status is ProvisionStatus.ERROR for r in self.results)

    @property
    def skipped(self) -> list[ApiKeyProviderSetupResult]:
        return [r for r in self.results if r.status is ProvisionStatus.SKIPPED]


@dataclass
class MissingCredential:
    provider_name: str
    env_var_name: str
    agent_name: str


def _owned_api_key_providers(agent: AgentEnvSpec) -> list[OwnedIdentityProvider]:
    return [
        p
        for p in agent.identity_providers
        if p.relation == "own" and p.variant == API_KEY_PROVIDER
    ]


def has_owned_identity_api_providers(project_spec: ProjectSpec) -> bool:
    """Check if any agent owns an API key provider that needs setup."""
    return any(_owned_api_key_providers(agent) for agent in project_spec.agents)


def resolve_credentials(
    config_io: ConfigIO, runtime_credentials: SecureCredentials | None = None
) -> SecureCredentials:
    """Local secrets file values, overridden by runtime credentials when given."""
    env_credentials = SecureCredentials.from_env_vars(config_io.read_env_file())
    if runtime_credentials is None:
        return env_credentials
    return env_credentials.merge(runtime_credentials)


def get_missing_credentials(
    project_spec: ProjectSpec,
    config_io: ConfigIO,
    runtime_credentials: SecureCredentials | None = None,
) -> list[MissingCredential]:
    """List owned API key providers whose secret is not available."""
    credentials = resolve_credentials(config_io, runtime_credentials)
    missing = []
    for agent in project_spec.agents:
        for provider in _owned_api_key_providers(agent):
            if not credentials.get(provider.env_var_name):
                missing.append(
                    MissingCredential(
                        provider_name=provider.name,
                        env_var_name=provider.env_var_name,
                        agent_name=agent.name,
                    )
                )
    return missing


def setup_token_vault_kms(control_client, kms_client, project_name: str) -> str:
    """
    Make sure the token vault uses a customer-managed key and return its ARN.

    An existing customer-managed key is reused. Otherwise (service-managed
    key, no ARN, or the vault lookup failing) a new key is created and set.

    Raises:
        KmsSetupError: If the key cannot be created or set on the vault.
    """
    try:
        kms_config = get_token_vault_kms_configuration(control_client)
    except (ClientError, BotoCoreError) as e:
        logger.info("Token vault lookup failed, creating a new key: %s", e)
        kms_config = {}

    existing_arn = kms_config.get("kmsKeyArn")
    if kms_config.get("keyType") == CUSTOMER_MANAGED_KEY and existing_arn:
        logger.info("Reusing token vault key %s", existing_arn)
        return existing_arn

    try:
        key_arn = create_kms_key(kms_client, project_name)
        if not key_arn:
            raise KmsSetupError("Failed to configure KMS: Failed to create KMS key")
        set_token_vault_kms_key(control_client, key_arn)
    except (ClientError, BotoCoreError) as e:
        raise KmsSetupError(f"Failed to configure KMS: {describe_error(e)}") from e

    logger.info("Token vault now encrypted with %s", key_arn)
    return key_arn


def setup_api_key_provider(
    control_client,
    agent_name: str,
    provider: OwnedIdentityProvider,
    credentials: SecureCredentials,
) -> ApiKeyProviderSetupResult:
    """Create one provider if missing. Failures are returned, never raised."""
    # envVarName is the only place the secret is looked up
    api_key = credentials.get(provider.env_var_name)
    if not api_key:
        return ApiKeyProviderSetupResult(
            agent_name=agent_name,
            provider_name=provider.name,
            status=ProvisionStatus.SKIPPED,
            error=f"No {provider.env_var_name} found in {CONFIG_DIR}/{ENV_FILE}",
        )

    try:
        if api_key_provider_exists(control_client, provider.name):
            return ApiKeyProviderSetupResult(agent_name, provider.name, ProvisionStatus.EXISTS)
        create_api_key_provider(control_client, provider.name, api_key)
        logger.info("Created API key provider %s for agent %s", provider.name, agent_name)
        return ApiKeyProviderSetupResult(agent_name, provider.name, ProvisionStatus.CREATED)
    except Exception as e:
        logger.warning("Setting up provider %s failed: %s", provider.name, e)
        return ApiKeyProviderSetupResult(
            agent_name=agent_name,
            provider_name=provider.name,
            status=ProvisionStatus.ERROR,
            error=describe_error(e),
        )


def setup_api_key_providers(
    project_spec: ProjectSpec,
    config_io: ConfigIO,
    session: boto3.Session,
    region: str,
    runtime_credentials: SecureCredentials | None = None,
    enable_kms_encryption: bool = False,
) -> PreDeployIdentityResult:
    """
    Set up API key credential providers for all owned identity providers.

    Args:
        project_spec: Loaded project specification.
        config_io: Source of the local secrets file.
        session: boto3 session used for remote calls.
        region: Region of the deployment target.
        runtime_credentials: Secrets that take precedence over the local file
            for this run only.
        enable_kms_encryption: Encrypt the token vault with a customer-managed
            key. Also enabled when the project already records a key ARN.

    Raises:
        KmsSetupError: If token vault encryption cannot be configured. No
            provider is touched in that case.
    """
    credentials = resolve_credentials(config_io, runtime_credentials)
    control_client = get_control_client(session, region)

    kms_key_arn = None
    if enable_kms_encryption or project_spec.identity_kms_key_arn:
        kms_client = session.client("kms", region_name=region)
        kms_key_arn = setup_token_vault_kms(control_client, kms_client, project_spec.name)

    result = PreDeployIdentityResult(kms_key_arn=kms_key_arn)
    for agent in project_spec.agents:
        for provider in _owned_api_key_providers(agent):
            result.results.append(
                setup_api_key_provider(control_client, agent.name, provider, credentials)
            )

    logger.info(
        "Identity setup finished: %d providers, errors: %s",
        len(result.results),
        result.has_errors,
    )
    return result
