"""Error types and AWS credential error classification."""

from botocore.exceptions import (
    ClientError,
    NoCredentialsError,
    PartialCredentialsError,
    SSOTokenLoadError,
    TokenRetrievalError,
    UnauthorizedSSOTokenError,
)

NO_CREDENTIALS_MESSAGE = (
    "AWS credentials not found. Run `aws sso login` or set "
    "AWS_ACCESS_KEY_ID/AWS_SECRET_ACCESS_KEY."
)

EXPIRED_CODES = {"ExpiredToken", "ExpiredTokenException"}
INVALID_CODES = {"InvalidClientTokenId", "SignatureDoesNotMatch", "UnrecognizedClientException"}
ACCESS_DENIED_CODES = {"AccessDenied", "AccessDeniedException"}

_MISSING_CREDENTIAL_EXCEPTIONS = (
    NoCredentialsError,
    PartialCredentialsError,
    SSOTokenLoadError,
    TokenRetrievalError,
    UnauthorizedSSOTokenError,
)


class ResourceGraphError(Exception):
    """Base class for project specification validation errors."""

    pass


class DuplicateNameError(ResourceGraphError):
    """A resource with the same name already exists in its collection."""

    pass


class NotFoundError(ResourceGraphError):
    """Referenced agent or resource does not exist."""

    pass


class SelfBindError(ResourceGraphError):
    """Attempt to bind a resource to the agent that owns it."""

    pass


class HasDependentsError(ResourceGraphError):
    """Resource is still referenced by other agents."""

    def __init__(self, kind: str, name: str, dependents: list[str]):
        self.kind = kind
        self.name = name
        self.dependents = dependents
        super().__init__(
            f"Cannot remove {kind} '{name}': still used by {', '.join(dependents)}. "
            "Detach it first or pass --force."
        )


class KmsSetupError(Exception):
    """Token vault encryption could not be configured."""

    pass


class CdkProjectNotFoundError(Exception):
    """Local deployment infrastructure project is missing."""

    pass


class AwsCredentialsError(Exception):
    """
    AWS credentials are missing, expired or invalid.

    Carries a short message for compact output alongside the detailed
    message (with remediation steps) used as the exception text.
    """

    def __init__(self, short_message: str, detailed_message: str | None = None):
        super().__init__(detailed_message or short_message)
        self.short_message = short_message


def get_error_code(error: Exception) -> str:
    """Return the AWS error code for a ClientError, or an empty string."""
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code", "")
    return ""


def is_no_credentials_error(error: Exception) -> bool:
    """Check if exception means usable AWS credentials are not available."""
    if isinstance(error, _MISSING_CREDENTIAL_EXCEPTIONS):
        return True
    return get_error_code(error) in EXPIRED_CODES | INVALID_CODES


def credentials_error_message(error: Exception) -> str | None:
    """Actionable guidance for a credential-chain failure, None for other errors."""
    code = get_error_code(error)
    if code in EXPIRED_CODES:
        return "AWS credentials expired. Run `aws sso login` to refresh them."
    if code in INVALID_CODES:
        return (
            "AWS credentials are invalid. Check AWS_ACCESS_KEY_ID and "
            "AWS_SECRET_ACCESS_KEY, or run `aws sso login`."
        )
    if is_no_credentials_error(error):
        return NO_CREDENTIALS_MESSAGE
    return None


def describe_error(error: Exception) -> str:
    """Message to show for a remote failure, rewritten for credential problems."""
    return credentials_error_message(error) or str(error)
