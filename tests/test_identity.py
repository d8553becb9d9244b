"""Unit tests for identity provider provisioning.

AWS clients are MagicMocks handed out by the mock_session fixture, one per
service name, so each test can inspect exactly which remote calls ran.
"""

import pytest
from botocore.exceptions import ClientError, NoCredentialsError

from agentcore_cli.lib.credentials import SecureCredentials
from agentcore_cli.lib.errors import NO_CREDENTIALS_MESSAGE, KmsSetupError
from agentcore_cli.lib.graph import ResourceGraph
from agentcore_cli.lib.identity import (
    ProvisionStatus,
    get_missing_credentials,
    has_owned_identity_api_providers,
    setup_api_key_providers,
    setup_token_vault_kms,
)
from agentcore_cli.lib.models import Credential, ResourceKind

CONTROL = "bedrock-agentcore-control"
KEY_ENV = "AGENTCORE_CREDENTIAL_OPENAI"


def not_found(operation="GetApiKeyCredentialProvider"):
    return ClientError(
        {"Error": {"Code": "ResourceNotFoundException", "Message": "not found"}}, operation
    )


@pytest.fixture
def secrets_io(project_io):
    """Sample project with the OpenAI key present in agentcore/.env.local."""
    project_io.set_env_var(KEY_ENV, "sk-file")
    return project_io


def run_setup(config_io, session, **kwargs):
    return setup_api_key_providers(
        config_io.read_project_spec(), config_io, session, "us-east-2", **kwargs
    )


class TestSetupApiKeyProviders:
    """Tests for setup_api_key_providers."""

    def test_creates_missing_provider(self, secrets_io, mock_session):
        """Test a provider that does not exist is created with the file secret."""
        control = mock_session.client(CONTROL)
        control.get_api_key_credential_provider.side_effect = not_found()

        result = run_setup(secrets_io, mock_session)

        assert [r.status for r in result.results] == [ProvisionStatus.CREATED]
        assert result.results[0].agent_name == "A"
        control.create_api_key_credential_provider.assert_called_once_with(
            name="OpenAI", apiKey="sk-file"
        )
        assert not result.has_errors
        assert result.kms_key_arn is None
        assert "kms" not in mock_session.clients

    def test_idempotent_across_runs(self, secrets_io, mock_session):
        """Test a second run reports exists and creates nothing."""
        control = mock_session.client(CONTROL)
        control.get_api_key_credential_provider.side_effect = [not_found(), {"name": "OpenAI"}]

        first = run_setup(secrets_io, mock_session)
        second = run_setup(secrets_io, mock_session)

        assert first.results[0].status is ProvisionStatus.CREATED
        assert second.results[0].status is ProvisionStatus.EXISTS
        assert control.create_api_key_credential_provider.call_count == 1

    def test_runtime_credentials_override_file(self, secrets_io, mock_session):
        """Test runtime secrets win over agentcore/.env.local."""
        control = mock_session.client(CONTROL)
        control.get_api_key_credential_provider.side_effect = not_found()

        run_setup(
            secrets_io,
            mock_session,
            runtime_credentials=SecureCredentials({KEY_ENV: "sk-runtime"}),
        )

        control.create_api_key_credential_provider.assert_called_once_with(
            name="OpenAI", apiKey="sk-runtime"
        )

    def test_missing_secret_is_skipped(self, project_io, mock_session):
        """Test a provider without a secret is skipped, not failed."""
        result = run_setup(project_io, mock_session)

        skipped = result.results[0]
        assert skipped.status is ProvisionStatus.SKIPPED
        assert KEY_ENV in skipped.error
        assert result.skipped == [skipped]
        assert not result.has_errors
        mock_session.client(CONTROL).get_api_key_credential_provider.assert_not_called()

    def test_blank_runtime_secret_is_skipped(self, secrets_io, mock_session):
        """Test a blank runtime secret shadows the file secret and skips the provider."""
        result = run_setup(
            secrets_io, mock_session, runtime_credentials=SecureCredentials({KEY_ENV: ""})
        )

        assert result.results[0].status is ProvisionStatus.SKIPPED
        mock_session.client(CONTROL).create_api_key_credential_provider.assert_not_called()

    def test_no_credentials_message(self, secrets_io, mock_session):
        """Test credential-chain failures get an actionable message."""
        control = mock_session.client(CONTROL)
        control.get_api_key_credential_provider.side_effect = NoCredentialsError()

        result = run_setup(secrets_io, mock_session)

        assert result.results[0].status is ProvisionStatus.ERROR
        assert result.results[0].error == NO_CREDENTIALS_MESSAGE
        assert result.has_errors

    def test_error_does_not_stop_other_providers(self, secrets_io, mock_session):
        """Test each provider gets its own result."""
        with_second = secrets_io.read_project_spec()
        graph = ResourceGraph(with_second)
        graph.add_owned_resource(ResourceKind.IDENTITY, Credential(name="Tavily"), owner_agent="B")
        secrets_io.write_project_spec(graph.spec)
        secrets_io.set_env_var("AGENTCORE_CREDENTIAL_TAVILY", "tv-key")

        control = mock_session.client(CONTROL)
        control.get_api_key_credential_provider.side_effect = [
            ClientError(
                {"Error": {"Code": "ThrottlingException", "Message": "Rate exceeded"}},
                "GetApiKeyCredentialProvider",
            ),
            not_found(),
        ]

        result = run_setup(secrets_io, mock_session)

        assert [(r.provider_name, r.status) for r in result.results] == [
            ("OpenAI", ProvisionStatus.ERROR),
            ("Tavily", ProvisionStatus.CREATED),
        ]
        assert "Rate exceeded" in result.results[0].error
        assert result.has_errors

    def test_kms_failure_touches_no_provider(self, secrets_io, mock_session):
        """Test a KMS failure aborts before any provider call."""
        control = mock_session.client(CONTROL)
        control.get_token_vault.return_value = {"kmsConfiguration": {"keyType": "ServiceManagedKey"}}
        mock_session.client("kms").create_key.side_effect = ClientError(
            {"Error": {"Code": "AccessDeniedException", "Message": "no kms:CreateKey"}},
            "CreateKey",
        )

        with pytest.raises(KmsSetupError, match="Failed to configure KMS"):
            run_setup(secrets_io, mock_session, enable_kms_encryption=True)

        control.get_api_key_credential_provider.assert_not_called()
        control.create_api_key_credential_provider.assert_not_called()

    def test_recorded_key_enables_kms(self, secrets_io, mock_session):
        """Test a project with a recorded key keeps the vault on a customer key."""
        spec = secrets_io.read_project_spec()
        spec.identity_kms_key_arn = "arn:aws:kms:us-east-2:123:key/existing"
        secrets_io.write_project_spec(spec)
        control = mock_session.client(CONTROL)
        control.get_token_vault.return_value = {
            "kmsConfiguration": {
                "keyType": "CustomerManagedKey",
                "kmsKeyArn": "arn:aws:kms:us-east-2:123:key/existing",
            }
        }
        control.get_api_key_credential_provider.return_value = {"name": "OpenAI"}

        result = run_setup(secrets_io, mock_session)

        assert result.kms_key_arn == "arn:aws:kms:us-east-2:123:key/existing"
        mock_session.client("kms").create_key.assert_not_called()


class TestSetupTokenVaultKms:
    """Tests for setup_token_vault_kms."""

    @pytest.fixture
    def clients(self, mock_session):
        control = mock_session.client(CONTROL)
        kms = mock_session.client("kms")
        kms.create_key.return_value = {"KeyMetadata": {"Arn": "arn:aws:kms:us-east-2:123:key/new"}}
        return control, kms

    def test_reuses_customer_managed_key(self, clients):
        """Test an existing customer-managed key is reused as is."""
        control, kms = clients
        control.get_token_vault.return_value = {
            "kmsConfiguration": {"keyType": "CustomerManagedKey", "kmsKeyArn": "arn:old"}
        }

        assert setup_token_vault_kms(control, kms, "demo") == "arn:old"
        kms.create_key.assert_not_called()
        control.set_token_vault_cmk.assert_not_called()

    def test_service_managed_key_replaced(self, clients):
        """Test a service-managed vault gets a new key."""
        control, kms = clients
        control.get_token_vault.return_value = {"kmsConfiguration": {"keyType": "ServiceManagedKey"}}

        arn = setup_token_vault_kms(control, kms, "demo")

        assert arn == "arn:aws:kms:us-east-2:123:key/new"
        control.set_token_vault_cmk.assert_called_once_with(
            tokenVaultId="default",
            kmsConfiguration={"keyType": "CustomerManagedKey", "kmsKeyArn": arn},
        )
        tags = kms.create_key.call_args.kwargs["Tags"]
        assert tags == [{"TagKey": "agentcore:project", "TagValue": "demo"}]

    def test_customer_managed_without_arn(self, clients):
        """Test a customer-managed config with no ARN is treated as absent."""
        control, kms = clients
        control.get_token_vault.return_value = {"kmsConfiguration": {"keyType": "CustomerManagedKey"}}

        assert setup_token_vault_kms(control, kms, "demo") == "arn:aws:kms:us-east-2:123:key/new"

    def test_lookup_failure_creates_key(self, clients):
        """Test a failing vault lookup falls through to creating a key."""
        control, kms = clients
        control.get_token_vault.side_effect = not_found("GetTokenVault")

        assert setup_token_vault_kms(control, kms, "demo") == "arn:aws:kms:us-east-2:123:key/new"
        kms.create_key.assert_called_once()

    def test_create_without_arn(self, clients):
        control, kms = clients
        control.get_token_vault.return_value = {}
        kms.create_key.return_value = {}

        with pytest.raises(KmsSetupError, match="Failed to create KMS key"):
            setup_token_vault_kms(control, kms, "demo")
        control.set_token_vault_cmk.assert_not_called()

    def test_set_failure(self, clients):
        """Test failing to attach the key raises KmsSetupError."""
        control, kms = clients
        control.get_token_vault.return_value = {}
        control.set_token_vault_cmk.side_effect = ClientError(
            {"Error": {"Code": "ValidationException", "Message": "bad key"}}, "SetTokenVaultCMK"
        )

        with pytest.raises(KmsSetupError, match="bad key"):
            setup_token_vault_kms(control, kms, "demo")


class TestCredentialQueries:
    def test_has_owned_providers(self, sample_spec, empty_spec):
        assert has_owned_identity_api_providers(sample_spec)
        assert not has_owned_identity_api_providers(empty_spec)

    def test_missing_credentials(self, project_io):
        """Test providers without a secret are reported with their env var."""
        missing = get_missing_credentials(project_io.read_project_spec(), project_io)

        assert [(m.provider_name, m.env_var_name, m.agent_name) for m in missing] == [
            ("OpenAI", KEY_ENV, "A")
        ]

    def test_runtime_credentials_satisfy(self, project_io):
        missing = get_missing_credentials(
            project_io.read_project_spec(),
            project_io,
            runtime_credentials=SecureCredentials({KEY_ENV: "sk-runtime"}),
        )

        assert missing == []
