"""
Add, bind and remove operations over the project specification.

Every mutating operation validates its preconditions first, applies the
change to a copy of the specification, re-validates the copy and only then
swaps it in. A failed operation therefore leaves the graph untouched.

Removal policy:
    identity, memory, gateway - rejected with HasDependentsError while other
        agents reference the resource, unless force=True, in which case the
        resource and every reference to it are removed together.
    agent - cascades to the resources the agent owns. If another agent uses
        one of those resources the same force rule applies.
"""

import copy
import logging
import re
from dataclasses import dataclass, field

from .errors import (
    DuplicateNameError,
    HasDependentsError,
    NotFoundError,
    ResourceGraphError,
    SelfBindError,
)
from .models import (
    Access,
    CodeZipRuntime,
    GatewayRef,
    MemoryAccess,
    OwnedIdentityProvider,
    OwnedMemory,
    ProjectSpec,
    ResourceKind,
    UsedIdentityProvider,
)

logger = logging.getLogger(__name__)

REFERENCE_KINDS = (ResourceKind.IDENTITY, ResourceKind.MEMORY, ResourceKind.GATEWAY)


def _env_suffix(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9]", "_", name).upper()


def default_credential_env_var(name: str) -> str:
    """Env var holding the API key of a credential, e.g. AGENTCORE_CREDENTIAL_OPENAI."""
    return f"AGENTCORE_CREDENTIAL_{_env_suffix(name)}"


def default_env_var(kind: ResourceKind, name: str) -> str:
    if kind is ResourceKind.IDENTITY:
        return default_credential_env_var(name)
    if kind is ResourceKind.MEMORY:
        return f"MEMORY_{_env_suffix(name)}_ID"
    return f"GATEWAY_{_env_suffix(name)}_URL"


@dataclass
class OwnedResource:
    name: str
    owner_agent: str | None


@dataclass
class RemovalResult:
    """What a remove operation took out of the specification."""

    kind: ResourceKind
    name: str
    cascaded: list[tuple[ResourceKind, str]] = field(default_factory=list)
    detached_agents: list[str] = field(default_factory=list)


class ResourceGraph:
    """Mutations and queries over a ProjectSpec that preserve its invariants."""

    def __init__(self, spec: ProjectSpec):
        self.spec = spec

    # Queries

    def owner_of(self, kind: ResourceKind, name: str) -> str | None:
        """Name of the agent holding the `own` reference, if any."""
        if kind is ResourceKind.MEMORY:
            memory = self.spec.find(kind, name)
            if memory is not None:
                return memory.owner_agent
        for agent in self.spec.agents:
            if agent.owns(kind, name):
                return agent.name
        return None

    def list_dependents(self, kind: ResourceKind, name: str) -> list[str]:
        """
        Agents holding a non-owning reference to a resource, in project order.

        Raises:
            NotFoundError: If the resource does not exist.
        """
        self._require_reference_kind(kind)
        self._require(kind, name)
        dependents = []
        for agent in self.spec.agents:
            ref = agent.find_ref(kind, name)
            if ref is not None and ref.relation != "own":
                dependents.append(agent.name)
        return dependents

    def list_bindable(self, kind: ResourceKind, target_agent: str) -> list[str]:
        """Resources the agent neither owns nor already references."""
        self._require_reference_kind(kind)
        agent = self._require(ResourceKind.AGENT, target_agent)
        return [
            item.name
            for item in self.spec.collection(kind)
            if self.owner_of(kind, item.name) != target_agent
            and agent.find_ref(kind, item.name) is None
        ]

    def list_owned_identities(self) -> list[OwnedResource]:
        return [
            OwnedResource(c.name, self.owner_of(ResourceKind.IDENTITY, c.name))
            for c in self.spec.credentials
        ]

    def list_owned_memories(self) -> list[OwnedResource]:
        return [OwnedResource(m.name, m.owner_agent) for m in self.spec.memories]

    # Mutations

    def add_owned_resource(
        self,
        kind: ResourceKind,
        resource,
        owner_agent: str | None = None,
        env_var_name: str | None = None,
    ) -> None:
        """
        Add a new resource, registering the `own` relation on its owner.

        Args:
            kind: Kind of resource being added.
            resource: AgentEnvSpec, Credential, MemoryProvider or Gateway.
            owner_agent: Owning agent for identity and memory resources.
            env_var_name: Env var for the owner reference. For identities this
                is where the secret is looked up locally.

        Raises:
            DuplicateNameError: If the name is already taken in its collection.
            NotFoundError: If the owner agent does not exist.
        """
        if not resource.name:
            raise ResourceGraphError(f"{kind.value} name cannot be empty")
        if self.spec.find(kind, resource.name) is not None:
            raise DuplicateNameError(f"{kind.value.capitalize()} '{resource.name}' already exists")

        if kind is ResourceKind.MEMORY:
            owner_agent = owner_agent or resource.owner_agent
        if owner_agent is not None:
            if kind in (ResourceKind.AGENT, ResourceKind.GATEWAY):
                raise ResourceGraphError(f"{kind.value} resources cannot have an owner agent")
            self._require(ResourceKind.AGENT, owner_agent)

        spec = copy.deepcopy(self.spec)
        resource = copy.deepcopy(resource)

        if kind is ResourceKind.AGENT:
            if isinstance(resource.runtime, CodeZipRuntime) and not resource.runtime.entrypoint:
                raise ResourceGraphError(f"CodeZip agent '{resource.name}' requires an entrypoint")
            spec.agents.append(resource)
        elif kind is ResourceKind.IDENTITY:
            spec.credentials.append(resource)
            if owner_agent is not None:
                spec.find_agent(owner_agent).identity_providers.append(
                    OwnedIdentityProvider(
                        name=resource.name,
                        env_var_name=env_var_name or default_credential_env_var(resource.name),
                        variant=resource.type,
                    )
                )
        elif kind is ResourceKind.MEMORY:
            resource.owner_agent = owner_agent
            spec.memories.append(resource)
            if owner_agent is not None:
                spec.find_agent(owner_agent).memory_providers.append(
                    OwnedMemory(
                        name=resource.name,
                        env_var_name=env_var_name or default_env_var(kind, resource.name),
                    )
                )
        else:
            spec.gateways.append(resource)

        self._commit(spec)
        logger.info("Added %s '%s' (owner: %s)", kind.value, resource.name, owner_agent)

    def bind_resource(
        self,
        kind: ResourceKind,
        target_agent: str,
        resource_name: str,
        env_var_name: str | None = None,
        access: Access = Access.READ,
    ) -> None:
        """
        Grant an agent a non-owning reference to an existing resource.

        Raises:
            NotFoundError: If the resource or the agent does not exist.
            SelfBindError: If the agent already owns the resource.
            DuplicateNameError: If the agent already references the resource.
        """
        self._require_reference_kind(kind)
        self._require(kind, resource_name)
        agent = self._require(ResourceKind.AGENT, target_agent)

        if self.owner_of(kind, resource_name) == target_agent:
            raise SelfBindError(
                f"Agent '{target_agent}' already owns {kind.value} '{resource_name}'"
            )
        if agent.find_ref(kind, resource_name) is not None:
            raise DuplicateNameError(
                f"Agent '{target_agent}' is already bound to {kind.value} '{resource_name}'"
            )

        env_var_name = env_var_name or default_env_var(kind, resource_name)
        if kind is ResourceKind.IDENTITY:
            ref = UsedIdentityProvider(name=resource_name, env_var_name=env_var_name)
        elif kind is ResourceKind.MEMORY:
            ref = MemoryAccess(name=resource_name, env_var_name=env_var_name, access=access)
        else:
            ref = GatewayRef(name=resource_name, env_var_name=env_var_name)

        spec = copy.deepcopy(self.spec)
        spec.find_agent(target_agent).refs(kind).append(ref)
        self._commit(spec)
        logger.info("Bound %s '%s' to agent '%s'", kind.value, resource_name, target_agent)

    def remove_resource(self, kind: ResourceKind, name: str, force: bool = False) -> RemovalResult:
        """
        Remove a resource and every reference to it in one rewrite.

        Raises:
            NotFoundError: If the resource does not exist.
            HasDependentsError: If other agents still reference it and force
                is not set.
        """
        self._require(kind, name)
        result = RemovalResult(kind=kind, name=name)

        if kind is ResourceKind.AGENT:
            agent = self.spec.find_agent(name)
            targets = [
                (ref_kind, ref.name)
                for ref_kind in (ResourceKind.IDENTITY, ResourceKind.MEMORY)
                for ref in agent.refs(ref_kind)
                if ref.relation == "own"
            ]
            result.cascaded = list(targets)
        else:
            targets = [(kind, name)]

        for target_kind, target_name in targets:
            dependents = [
                d for d in self.list_dependents(target_kind, target_name) if d != name
            ]
            if dependents and not force:
                raise HasDependentsError(target_kind.value, target_name, dependents)

        spec = copy.deepcopy(self.spec)
        if kind is ResourceKind.AGENT:
            spec.agents = [a for a in spec.agents if a.name != name]

        detached: list[str] = []
        for target_kind, target_name in targets:
            collection = [r for r in spec.collection(target_kind) if r.name != target_name]
            self._replace_collection(spec, target_kind, collection)
            for agent in spec.agents:
                refs = agent.refs(target_kind)
                kept = [r for r in refs if r.name != target_name]
                if len(kept) != len(refs):
                    refs[:] = kept
                    if agent.name not in detached:
                        detached.append(agent.name)

        self._commit(spec)
        result.detached_agents = detached
        logger.info(
            "Removed %s '%s' (cascaded: %d, detached: %s)",
            kind.value,
            name,
            len(result.cascaded),
            detached,
        )
        return result

    # Helpers

    def _require(self, kind: ResourceKind, name: str):
        item = self.spec.find(kind, name)
        if item is None:
            raise NotFoundError(f"{kind.value.capitalize()} '{name}' not found")
        return item

    @staticmethod
    def _require_reference_kind(kind: ResourceKind) -> None:
        if kind not in REFERENCE_KINDS:
            raise ValueError(f"Agents cannot reference resources of kind {kind.value}")

    @staticmethod
    def _replace_collection(spec: ProjectSpec, kind: ResourceKind, items: list) -> None:
        if kind is ResourceKind.IDENTITY:
            spec.credentials = items
        elif kind is ResourceKind.MEMORY:
            spec.memories = items
        elif kind is ResourceKind.GATEWAY:
            spec.gateways = items

    def _commit(self, spec: ProjectSpec) -> None:
        spec.validate()
        self.spec = spec
