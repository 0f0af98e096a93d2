from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field

from pydantic import BaseModel, Field

from .errors import TopologyError

log = logging.getLogger(__name__)


class CpuArch(str, enum.Enum):
    X86_64 = "x86_64"
    ARM64 = "arm64"


# Instance shapes per architecture.
DEFAULT_INSTANCE_TYPE = {CpuArch.X86_64: "c5.xlarge", CpuArch.ARM64: "c6g.xlarge"}
SINGLE_NODE_INSTANCE_TYPE = {CpuArch.X86_64: "r5.xlarge", CpuArch.ARM64: "r6g.xlarge"}
DEFAULT_STORAGE_GIB = 50


class RoleCounts(BaseModel):
    """Requested node counts per role. ingest_count is informational only."""

    manager_count: int = Field(0, ge=0)
    data_count: int = Field(0, ge=0)
    ingest_count: int = Field(0, ge=0)
    client_count: int = Field(0, ge=0)
    ml_count: int = Field(0, ge=0)


class SeedRole(str, enum.Enum):
    MANAGER = "manager"
    DATA = "data"


@dataclass(frozen=True)
class SeedElection:
    role: SeedRole
    manager_capacity: int
    data_capacity: int

    @property
    def config_role(self) -> str:
        return f"seed-{self.role.value}"


@dataclass(eq=False)
class CapacityGroup:
    """A fixed-size set of identical instances filling one role.

    Compared by identity: the client target is the same object as the data
    group when no dedicated client nodes are requested.
    """

    name: str
    role: str
    config_role: str | None
    instance_type: str
    storage_size_gib: int
    desired_count: int

    def __post_init__(self) -> None:
        if self.desired_count <= 0:
            raise TopologyError(f"Capacity group '{self.name}' must have a positive size, got {self.desired_count}", field=self.name)

    @property
    def min_count(self) -> int:
        return self.desired_count

    @property
    def max_count(self) -> int:
        return self.desired_count

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "role": self.role,
            "config_role": self.config_role,
            "instance_type": self.instance_type,
            "storage_size_gib": self.storage_size_gib,
            "desired_count": self.desired_count,
            "min_count": self.min_count,
            "max_count": self.max_count,
        }


@dataclass(frozen=True)
class ListenerPlan:
    name: str
    port: int
    target_port: int


@dataclass
class TopologyPlan:
    single_node: bool
    seed: SeedElection | None
    groups: list[CapacityGroup]
    client_target: CapacityGroup
    listeners: list[ListenerPlan] = field(default_factory=list)

    def group(self, name: str) -> CapacityGroup | None:
        for g in self.groups:
            if g.name == name:
                return g
        return None

    @property
    def manager_group(self) -> CapacityGroup | None:
        return self.group("managerNodeAsg")

    @property
    def seed_group(self) -> CapacityGroup | None:
        return self.group("seedNodeAsg")

    @property
    def data_group(self) -> CapacityGroup | None:
        return self.group("dataNodeAsg")

    @property
    def client_group(self) -> CapacityGroup | None:
        return self.group("clientNodeAsg")

    @property
    def ml_group(self) -> CapacityGroup | None:
        return self.group("mlNodeAsg")

    @property
    def discovery_groups(self) -> list[CapacityGroup]:
        """Groups named in the discovery hints, seed first."""
        return [g for g in (self.seed_group, self.manager_group) if g is not None]

    @property
    def config_roles(self) -> list[str | None]:
        return [g.config_role for g in self.groups]

    def to_dict(self) -> dict:
        return {
            "single_node": self.single_node,
            "seed_role": self.seed.role.value if self.seed else None,
            "groups": [g.to_dict() for g in self.groups],
            "client_target": self.client_target.name,
            "listeners": [{"name": lsn.name, "port": lsn.port, "target_port": lsn.target_port} for lsn in self.listeners],
        }


def elect_seed(counts: RoleCounts) -> SeedElection:
    """Carve the discovery seed out of the manager allotment, else the data allotment."""
    if counts.manager_count > 0:
        return SeedElection(SeedRole.MANAGER, counts.manager_count - 1, counts.data_count)
    if counts.data_count > 0:
        return SeedElection(SeedRole.DATA, 0, counts.data_count - 1)
    raise TopologyError(
        "A distributed cluster needs at least one manager or data node to act as the discovery seed",
        field="manager_count",
    )


def plan_listeners(secure: bool, dashboards: bool = False) -> list[ListenerPlan]:
    """Load-balancer listeners; TLS deployments front the node ports with 443/80."""
    if secure:
        listeners = [ListenerPlan("https", 443, 9200), ListenerPlan("http", 80, 19200)]
    else:
        listeners = [ListenerPlan("search9200", 9200, 9200), ListenerPlan("search19200", 19200, 19200)]
    if dashboards:
        listeners.append(ListenerPlan("dashboards", 8443, 5601))
    return listeners


def plan(
    counts: RoleCounts,
    single_node: bool = False,
    cpu_arch: CpuArch = CpuArch.X86_64,
    data_instance_type: str | None = None,
    ml_instance_type: str | None = None,
    data_storage_gib: int = 100,
    ml_storage_gib: int = 100,
    secure: bool = False,
    dashboards: bool = False,
) -> TopologyPlan:
    """Turn requested role counts into fixed-size capacity groups.

    Pure function. Raises TopologyError when no manager or data node is
    requested for a distributed cluster, rather than planning a negative size.
    """
    cpu_arch = CpuArch(cpu_arch)
    listeners = plan_listeners(secure, dashboards)
    default_type = DEFAULT_INSTANCE_TYPE[cpu_arch]
    data_type = data_instance_type or default_type

    if single_node:
        node = CapacityGroup(
            name="single-node-instance",
            role="client",
            config_role=None,
            instance_type=data_instance_type or SINGLE_NODE_INSTANCE_TYPE[cpu_arch],
            storage_size_gib=data_storage_gib,
            desired_count=1,
        )
        log.info("Single node cluster requested; role counts ignored")
        return TopologyPlan(single_node=True, seed=None, groups=[node], client_target=node, listeners=listeners)

    seed = elect_seed(counts)
    groups: list[CapacityGroup] = []

    if seed.manager_capacity > 0:
        groups.append(CapacityGroup("managerNodeAsg", "manager", "manager", default_type, DEFAULT_STORAGE_GIB, seed.manager_capacity))

    if seed.role is SeedRole.MANAGER:
        seed_group = CapacityGroup("seedNodeAsg", "manager", seed.config_role, default_type, DEFAULT_STORAGE_GIB, 1)
    else:
        seed_group = CapacityGroup("seedNodeAsg", "manager", seed.config_role, data_type, data_storage_gib, 1)
    groups.append(seed_group)

    data_group = None
    if seed.data_capacity > 0:
        data_group = CapacityGroup("dataNodeAsg", "data", "data", data_type, data_storage_gib, seed.data_capacity)
        groups.append(data_group)

    if counts.client_count > 0:
        client_target = CapacityGroup("clientNodeAsg", "client", "client", default_type, DEFAULT_STORAGE_GIB, counts.client_count)
        groups.append(client_target)
    else:
        # No dedicated client capacity: data nodes (or the lone seed) take client traffic.
        client_target = data_group if data_group is not None else seed_group

    if counts.ml_count > 0:
        groups.append(
            CapacityGroup("mlNodeAsg", "ml-node", "ml", ml_instance_type or default_type, ml_storage_gib, counts.ml_count)
        )

    log.info(
        "Planned %d capacity group(s); seed=%s, client target=%s",
        len(groups),
        seed.role.value,
        client_target.name,
    )
    return TopologyPlan(single_node=False, seed=seed, groups=groups, client_target=client_target, listeners=listeners)
