"""AWS client helpers for boto3 operations."""

import logging
import os

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .errors import (
    ACCESS_DENIED_CODES,
    EXPIRED_CODES,
    INVALID_CODES,
    AwsCredentialsError,
    get_error_code,
    is_no_credentials_error,
)
from .models import DiscoveredStack

logger = logging.getLogger(__name__)

CONTROL_PLANE_SERVICE = "bedrock-agentcore-control"
DEFAULT_TOKEN_VAULT_ID = "default"
CUSTOMER_MANAGED_KEY = "CustomerManagedKey"
PROJECT_TAG_KEY = "agentcore:project"


def get_session(profile: str | None = None) -> boto3.Session:
    """Create boto3 session with optional profile."""
    if profile:
        return boto3.Session(profile_name=profile)
    return boto3.Session()


def get_default_region() -> str:
    return os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION") or "us-east-1"


def get_account_id(session: boto3.Session) -> str:
    """Get the AWS account ID."""
    sts = session.client("sts", region_name=get_default_region())
    return sts.get_caller_identity()["Account"]


def detect_account(session: boto3.Session) -> str | None:
    """
    Get the AWS account ID, translating credential failures.

    Raises:
        AwsCredentialsError: For expired, invalid or under-privileged credentials.

    Returns:
        The account ID, or None when no credentials could be resolved at all.
    """
    try:
        return get_account_id(session)
    except ClientError as e:
        code = get_error_code(e)
        if code in EXPIRED_CODES:
            raise AwsCredentialsError(
                "AWS credentials expired.",
                "AWS credentials expired.\n\nTo fix this:\n  Run: aws sso login",
            ) from e
        if code in INVALID_CODES:
            raise AwsCredentialsError(
                "AWS credentials are invalid.",
                "AWS credentials are invalid.\n\nTo fix this:\n"
                "  1. Check your AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY\n"
                "  2. Or run: aws sso login",
            ) from e
        if code in ACCESS_DENIED_CODES:
            raise AwsCredentialsError(
                "AWS credentials lack required permissions.",
                "AWS credentials lack required permissions for sts:GetCallerIdentity.\n\n"
                "To fix this:\n  Ensure your IAM user/role has sts:GetCallerIdentity permission",
            ) from e
        logger.warning("Account detection failed: %s", e)
        return None
    except BotoCoreError as e:
        if not is_no_credentials_error(e):
            logger.warning("Account detection failed: %s", e)
        return None


def validate_aws_credentials(session: boto3.Session) -> str:
    """Return the account ID, or raise AwsCredentialsError if there are no credentials."""
    account = detect_account(session)
    if not account:
        raise AwsCredentialsError(
            "No AWS credentials configured.",
            "No AWS credentials configured.\n\n"
            "To fix this:\n"
            "  1. Run: aws sso login\n"
            "  2. Or set AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY environment variables",
        )
    return account


# CloudFormation


def get_stack_name(project_name: str, target_name: str) -> str:
    """Name of the CloudFormation stack deployed for a project target."""
    return f"AgentCore-{project_name}-{target_name}"


def find_stack(
    session: boto3.Session, region: str, project_name: str, target_name: str
) -> DiscoveredStack | None:
    """Look up the project's stack for a target. Deleted stacks count as absent."""
    stack_name = get_stack_name(project_name, target_name)
    cf = session.client("cloudformation", region_name=region)
    try:
        response = cf.describe_stacks(StackName=stack_name)
    except ClientError as e:
        if "does not exist" in str(e):
            return None
        raise

    stacks = response.get("Stacks", [])
    if not stacks or stacks[0].get("StackStatus") == "DELETE_COMPLETE":
        return None

    stack = stacks[0]
    return DiscoveredStack(
        stack_name=stack.get("StackName", stack_name),
        stack_id=stack.get("StackId", ""),
        status=stack.get("StackStatus", ""),
        region=region,
    )


# AgentCore Identity


def get_control_client(session: boto3.Session, region: str):
    return session.client(CONTROL_PLANE_SERVICE, region_name=region)


def api_key_provider_exists(client, name: str) -> bool:
    """Check whether an API key credential provider with this name exists."""
    try:
        client.get_api_key_credential_provider(name=name)
        return True
    except ClientError as e:
        if get_error_code(e) == "ResourceNotFoundException":
            return False
        raise


def create_api_key_provider(client, name: str, api_key: str) -> str:
    """Create an API key credential provider and return its ARN."""
    response = client.create_api_key_credential_provider(name=name, apiKey=api_key)
    return response.get("credentialProviderArn", "")


def get_token_vault_kms_configuration(client) -> dict:
    """Return the token vault's kmsConfiguration ({keyType, kmsKeyArn?})."""
    response = client.get_token_vault(tokenVaultId=DEFAULT_TOKEN_VAULT_ID)
    return response.get("kmsConfiguration", {})


def set_token_vault_kms_key(client, key_arn: str) -> None:
    """Configure the token vault to encrypt with a customer-managed key."""
    client.set_token_vault_cmk(
        tokenVaultId=DEFAULT_TOKEN_VAULT_ID,
        kmsConfiguration={"keyType": CUSTOMER_MANAGED_KEY, "kmsKeyArn": key_arn},
    )


# KMS


def create_kms_key(kms_client, project_name: str) -> str | None:
    """Create a symmetric key tagged with the project name. Returns its ARN."""
    response = kms_client.create_key(
        Description=f"AgentCore Identity encryption key for {project_name}",
        Tags=[{"TagKey": PROJECT_TAG_KEY, "TagValue": project_name}],
    )
    return response.get("KeyMetadata", {}).get("Arn")
