"""Data models for the project specification and deployment state."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Union

from .errors import ResourceGraphError

API_KEY_PROVIDER = "ApiKeyCredentialProvider"
PROJECT_SCHEMA_VERSION = 1


class ResourceKind(Enum):
    """Kinds of named resources in a project."""

    AGENT = "agent"
    IDENTITY = "identity"
    MEMORY = "memory"
    GATEWAY = "gateway"


class TargetLanguage(Enum):
    PYTHON = "Python"
    TYPESCRIPT = "TypeScript"


class Access(Enum):
    """Access level granted to a non-owning agent on a memory."""

    READ = "read"
    READWRITE = "readwrite"


class MemoryStrategy(Enum):
    SEMANTIC = "SEMANTIC"
    SUMMARIZATION = "SUMMARIZATION"
    USER_PREFERENCE = "USER_PREFERENCE"


class GatewayAuthorizerType(Enum):
    NONE = "NONE"
    CUSTOM_JWT = "CUSTOM_JWT"


# Runtime artifacts


@dataclass
class CodeZipRuntime:
    """Agent packaged as a zip of its source directory."""

    code_location: str
    entrypoint: str
    artifact: Literal["CodeZip"] = "CodeZip"

    def to_dict(self) -> dict[str, Any]:
        return {
            "artifact": self.artifact,
            "codeLocation": self.code_location,
            "entrypoint": self.entrypoint,
        }


@dataclass
class ContainerImageRuntime:
    """Agent built from a Dockerfile in its source directory."""

    code_location: str
    entrypoint: str | None = None
    dockerfile: str = "Dockerfile"
    artifact: Literal["ContainerImage"] = "ContainerImage"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "artifact": self.artifact,
            "codeLocation": self.code_location,
            "dockerfile": self.dockerfile,
        }
        if self.entrypoint:
            data["entrypoint"] = self.entrypoint
        return data


Runtime = Union[CodeZipRuntime, ContainerImageRuntime]


def runtime_from_dict(data: dict[str, Any]) -> Runtime:
    artifact = data.get("artifact")
    if artifact == "CodeZip":
        return CodeZipRuntime(
            code_location=data["codeLocation"],
            entrypoint=data.get("entrypoint", ""),
        )
    if artifact == "ContainerImage":
        return ContainerImageRuntime(
            code_location=data["codeLocation"],
            entrypoint=data.get("entrypoint"),
            dockerfile=data.get("dockerfile", "Dockerfile"),
        )
    raise ResourceGraphError(f"Unknown runtime artifact: {artifact!r}")


# Agent references. The `relation` field is the discriminant.


@dataclass
class OwnedIdentityProvider:
    """The agent is the single authoritative creator of this provider."""

    name: str
    env_var_name: str
    variant: str = API_KEY_PROVIDER
    relation: Literal["own"] = "own"

    def to_dict(self) -> dict[str, Any]:
        return {
            "relation": self.relation,
            "name": self.name,
            "variant": self.variant,
            "envVarName": self.env_var_name,
        }


@dataclass
class UsedIdentityProvider:
    """The agent was granted access to a provider owned elsewhere."""

    name: str
    env_var_name: str
    relation: Literal["use"] = "use"

    def to_dict(self) -> dict[str, Any]:
        return {"relation": self.relation, "name": self.name, "envVarName": self.env_var_name}


IdentityProviderRef = Union[OwnedIdentityProvider, UsedIdentityProvider]


def identity_ref_from_dict(data: dict[str, Any]) -> IdentityProviderRef:
    relation = data.get("relation")
    if relation == "own":
        return OwnedIdentityProvider(
            name=data["name"],
            env_var_name=data["envVarName"],
            variant=data.get("variant", API_KEY_PROVIDER),
        )
    if relation == "use":
        return UsedIdentityProvider(name=data["name"], env_var_name=data["envVarName"])
    raise ResourceGraphError(f"Unknown identity relation: {relation!r}")


@dataclass
class OwnedMemory:
    name: str
    env_var_name: str
    relation: Literal["own"] = "own"

    def to_dict(self) -> dict[str, Any]:
        return {"relation": self.relation, "name": self.name, "envVarName": self.env_var_name}


@dataclass
class MemoryAccess:
    """Non-owning binding of an agent to a memory."""

    name: str
    env_var_name: str
    access: Access = Access.READ
    relation: Literal["use"] = "use"

    def to_dict(self) -> dict[str, Any]:
        return {
            "relation": self.relation,
            "name": self.name,
            "access": self.access.value,
            "envVarName": self.env_var_name,
        }


MemoryRef = Union[OwnedMemory, MemoryAccess]


def memory_ref_from_dict(data: dict[str, Any]) -> MemoryRef:
    relation = data.get("relation")
    if relation == "own":
        return OwnedMemory(name=data["name"], env_var_name=data["envVarName"])
    if relation == "use":
        return MemoryAccess(
            name=data["name"],
            env_var_name=data["envVarName"],
            access=Access(data.get("access", Access.READ.value)),
        )
    raise ResourceGraphError(f"Unknown memory relation: {relation!r}")


@dataclass
class GatewayRef:
    """Gateways are shared project resources; agents only ever use them."""

    name: str
    env_var_name: str
    relation: Literal["use"] = "use"

    def to_dict(self) -> dict[str, Any]:
        return {"relation": self.relation, "name": self.name, "envVarName": self.env_var_name}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GatewayRef":
        return cls(name=data["name"], env_var_name=data["envVarName"])


# Top-level resources


@dataclass
class AgentEnvSpec:
    """One deployable agent."""

    name: str
    runtime: Runtime
    target_language: TargetLanguage = TargetLanguage.PYTHON
    identity_providers: list[IdentityProviderRef] = field(default_factory=list)
    memory_providers: list[MemoryRef] = field(default_factory=list)
    gateway_providers: list[GatewayRef] = field(default_factory=list)

    def refs(self, kind: ResourceKind) -> list:
        """References this agent holds for a resource kind."""
        if kind is ResourceKind.IDENTITY:
            return self.identity_providers
        if kind is ResourceKind.MEMORY:
            return self.memory_providers
        if kind is ResourceKind.GATEWAY:
            return self.gateway_providers
        raise ValueError(f"Agents do not reference resources of kind {kind.value}")

    def find_ref(self, kind: ResourceKind, name: str):
        for ref in self.refs(kind):
            if ref.name == name:
                return ref
        return None

    def owns(self, kind: ResourceKind, name: str) -> bool:
        ref = self.find_ref(kind, name)
        return ref is not None and ref.relation == "own"

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "targetLanguage": self.target_language.value,
            "runtime": self.runtime.to_dict(),
            "identityProviders": [p.to_dict() for p in self.identity_providers],
            "memoryProviders": [m.to_dict() for m in self.memory_providers],
            "gatewayProviders": [g.to_dict() for g in self.gateway_providers],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AgentEnvSpec":
        return cls(
            name=data["name"],
            runtime=runtime_from_dict(data["runtime"]),
            target_language=TargetLanguage(data.get("targetLanguage", "Python")),
            identity_providers=[identity_ref_from_dict(p) for p in data.get("identityProviders", [])],
            memory_providers=[memory_ref_from_dict(m) for m in data.get("memoryProviders", [])],
            gateway_providers=[GatewayRef.from_dict(g) for g in data.get("gatewayProviders", [])],
        )


@dataclass
class Credential:
    """Top-level identity provider declaration."""

    name: str
    type: str = API_KEY_PROVIDER

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "type": self.type}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Credential":
        return cls(name=data["name"], type=data.get("type", API_KEY_PROVIDER))


@dataclass
class MemoryProvider:
    name: str
    owner_agent: str | None = None
    strategies: list[MemoryStrategy] = field(default_factory=list)
    expiry: int | None = None  # days
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "ownerAgent": self.owner_agent,
            "strategies": [s.value for s in self.strategies],
        }
        if self.expiry is not None:
            data["expiry"] = self.expiry
        if self.description:
            data["description"] = self.description
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MemoryProvider":
        return cls(
            name=data["name"],
            owner_agent=data.get("ownerAgent"),
            strategies=[MemoryStrategy(s) for s in data.get("strategies", [])],
            expiry=data.get("expiry"),
            description=data.get("description"),
        )


@dataclass
class Gateway:
    name: str
    description: str | None = None
    authorizer_type: GatewayAuthorizerType = GatewayAuthorizerType.NONE

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "authorizerType": self.authorizer_type.value}
        if self.description:
            data["description"] = self.description
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Gateway":
        return cls(
            name=data["name"],
            description=data.get("description"),
            authorizer_type=GatewayAuthorizerType(data.get("authorizerType", "NONE")),
        )


@dataclass
class ProjectSpec:
    """Root aggregate of the project specification file."""

    name: str
    version: int = PROJECT_SCHEMA_VERSION
    agents: list[AgentEnvSpec] = field(default_factory=list)
    memories: list[MemoryProvider] = field(default_factory=list)
    credentials: list[Credential] = field(default_factory=list)
    gateways: list[Gateway] = field(default_factory=list)
    identity_kms_key_arn: str | None = None

    def collection(self, kind: ResourceKind) -> list:
        if kind is ResourceKind.AGENT:
            return self.agents
        if kind is ResourceKind.IDENTITY:
            return self.credentials
        if kind is ResourceKind.MEMORY:
            return self.memories
        return self.gateways

    def find(self, kind: ResourceKind, name: str):
        for item in self.collection(kind):
            if item.name == name:
                return item
        return None

    def find_agent(self, name: str) -> AgentEnvSpec | None:
        return self.find(ResourceKind.AGENT, name)

    def validate(self) -> None:
        """
        Check every referential invariant of the specification.

        Raises:
            ResourceGraphError: On the first violated invariant.
        """
        for kind in ResourceKind:
            seen: set[str] = set()
            for item in self.collection(kind):
                if not item.name:
                    raise ResourceGraphError(f"{kind.value} name cannot be empty")
                if item.name in seen:
                    raise ResourceGraphError(f"Duplicate {kind.value} name: {item.name}")
                seen.add(item.name)

        owners: dict[tuple[ResourceKind, str], str] = {}
        for agent in self.agents:
            if isinstance(agent.runtime, CodeZipRuntime) and not agent.runtime.entrypoint:
                raise ResourceGraphError(f"CodeZip agent '{agent.name}' is missing entrypoint")
            for kind in (ResourceKind.IDENTITY, ResourceKind.MEMORY, ResourceKind.GATEWAY):
                for ref in agent.refs(kind):
                    if self.find(kind, ref.name) is None:
                        raise ResourceGraphError(
                            f"Agent '{agent.name}' references unknown {kind.value} '{ref.name}'"
                        )
                    if ref.relation != "own":
                        continue
                    key = (kind, ref.name)
                    if key in owners:
                        raise ResourceGraphError(
                            f"{kind.value} '{ref.name}' is owned by both "
                            f"'{owners[key]}' and '{agent.name}'"
                        )
                    owners[key] = agent.name

        for memory in self.memories:
            owner = owners.get((ResourceKind.MEMORY, memory.name))
            if memory.owner_agent != owner:
                raise ResourceGraphError(
                    f"Memory '{memory.name}' declares owner '{memory.owner_agent}' "
                    f"but is owned by '{owner}'"
                )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "version": self.version,
            "agents": [a.to_dict() for a in self.agents],
            "memories": [m.to_dict() for m in self.memories],
            "credentials": [c.to_dict() for c in self.credentials],
            "gateways": [g.to_dict() for g in self.gateways],
        }
        if self.identity_kms_key_arn:
            data["identityKmsKeyArn"] = self.identity_kms_key_arn
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProjectSpec":
        return cls(
            name=data["name"],
            version=data.get("version", PROJECT_SCHEMA_VERSION),
            agents=[AgentEnvSpec.from_dict(a) for a in data.get("agents", [])],
            memories=[MemoryProvider.from_dict(m) for m in data.get("memories", [])],
            credentials=[Credential.from_dict(c) for c in data.get("credentials", [])],
            gateways=[Gateway.from_dict(g) for g in data.get("gateways", [])],
            identity_kms_key_arn=data.get("identityKmsKeyArn"),
        )


def reset_project(name: str) -> ProjectSpec:
    """Empty specification that keeps the project name."""
    return ProjectSpec(name=name)


# Deployment


@dataclass
class AwsDeploymentTarget:
    name: str
    region: str
    account: str
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = {"name": self.name, "region": self.region, "account": self.account}
        if self.description:
            data["description"] = self.description
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AwsDeploymentTarget":
        return cls(
            name=data["name"],
            region=data["region"],
            account=data.get("account", ""),
            description=data.get("description"),
        )


@dataclass
class DiscoveredStack:
    """CloudFormation stack found for a deployment target."""

    stack_name: str
    stack_id: str = ""
    status: str = ""
    region: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "stackName": self.stack_name,
            "stackId": self.stack_id,
            "status": self.status,
            "region": self.region,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DiscoveredStack":
        return cls(
            stack_name=data["stackName"],
            stack_id=data.get("stackId", ""),
            status=data.get("status", ""),
            region=data.get("region", ""),
        )


@dataclass
class DeployedState:
    """
    Cache of confirmed deployments keyed by target name.

    Entries are added after a confirmed deploy and removed after a confirmed
    destroy; the remote stack registry remains authoritative.
    """

    targets: dict[str, DiscoveredStack] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {name: stack.to_dict() for name, stack in self.targets.items()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DeployedState":
        return cls(targets={name: DiscoveredStack.from_dict(s) for name, s in data.items()})
