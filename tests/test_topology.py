import pytest
from pydantic import ValidationError

from scb.errors import ConfigError, TopologyError
from scb.topology import CapacityGroup, CpuArch, RoleCounts, SeedRole, elect_seed, plan, plan_listeners


def counts(**kw) -> RoleCounts:
    return RoleCounts(**kw)


@pytest.mark.parametrize("managers", [1, 2, 3, 7])
@pytest.mark.parametrize("data", [0, 1, 4])
def test_manager_seed_when_managers_requested(managers, data):
    p = plan(counts(manager_count=managers, data_count=data))
    assert p.seed.role is SeedRole.MANAGER
    assert p.seed.manager_capacity == managers - 1
    assert p.seed.data_capacity == data
    if managers > 1:
        assert p.manager_group.desired_count == managers - 1
    else:
        assert p.manager_group is None
    assert p.seed_group.desired_count == 1
    assert p.seed_group.config_role == "seed-manager"


@pytest.mark.parametrize("data", [1, 2, 5])
def test_data_seed_when_no_managers(data):
    p = plan(counts(data_count=data))
    assert p.seed.role is SeedRole.DATA
    assert p.seed.manager_capacity == 0
    assert p.seed.data_capacity == data - 1
    assert p.manager_group is None
    assert p.seed_group.config_role == "seed-data"
    if data > 1:
        assert p.data_group.desired_count == data - 1


@pytest.mark.parametrize("extra", [{}, {"client_count": 2}, {"ml_count": 1, "ingest_count": 3}])
def test_zero_managers_and_zero_data_is_rejected(extra):
    with pytest.raises(TopologyError) as exc:
        plan(counts(**extra))
    assert isinstance(exc.value, ConfigError)
    assert exc.value.field == "manager_count"


def test_zero_zero_is_fine_in_single_node_mode():
    p = plan(counts(), single_node=True)
    assert p.single_node
    assert p.seed is None
    assert [g.name for g in p.groups] == ["single-node-instance"]
    assert p.client_target is p.groups[0]
    assert p.config_roles == [None]


def test_single_node_ignores_role_counts():
    p = plan(counts(manager_count=3, data_count=9, client_count=2, ml_count=1), single_node=True)
    assert len(p.groups) == 1
    assert p.groups[0].desired_count == 1
    assert p.groups[0].instance_type == "r5.xlarge"


def test_seed_election_is_seed_only_accounting():
    for m in range(0, 4):
        for d in range(0, 4):
            c = counts(manager_count=m, data_count=d)
            if m == 0 and d == 0:
                with pytest.raises(TopologyError):
                    elect_seed(c)
                continue
            s = elect_seed(c)
            assert s.manager_capacity + (1 if s.role is SeedRole.MANAGER else 0) == m
            assert s.data_capacity + (1 if s.role is SeedRole.DATA else 0) == d


def test_three_managers_four_data_no_clients():
    p = plan(counts(manager_count=3, data_count=4, client_count=0, ml_count=0))
    assert p.seed.role is SeedRole.MANAGER
    assert p.manager_group.desired_count == 2
    assert p.data_group.desired_count == 4
    assert p.client_target is p.data_group
    assert p.client_group is None
    assert p.ml_group is None
    assert [g.name for g in p.groups] == ["managerNodeAsg", "seedNodeAsg", "dataNodeAsg"]
    assert [g.name for g in p.discovery_groups] == ["seedNodeAsg", "managerNodeAsg"]


def test_single_data_node_is_only_the_seed():
    p = plan(counts(manager_count=0, data_count=1))
    assert p.seed.role is SeedRole.DATA
    assert p.seed.data_capacity == 0
    assert p.data_group is None
    assert [g.name for g in p.groups] == ["seedNodeAsg"]
    assert p.client_target is p.seed_group


def test_dedicated_clients_and_ml():
    p = plan(
        counts(manager_count=3, data_count=2, client_count=2, ml_count=1),
        cpu_arch=CpuArch.ARM64,
        data_instance_type="r6g.2xlarge",
        ml_instance_type="g5.xlarge",
        data_storage_gib=500,
        ml_storage_gib=200,
    )
    assert p.client_group is not None
    assert p.client_target is p.client_group
    assert p.client_target is not p.data_group
    assert p.client_group.desired_count == 2
    assert p.client_group.instance_type == "c6g.xlarge"
    assert p.data_group.instance_type == "r6g.2xlarge"
    assert p.data_group.storage_size_gib == 500
    assert p.ml_group.instance_type == "g5.xlarge"
    assert p.ml_group.storage_size_gib == 200
    assert p.ml_group.role == "ml-node"
    assert p.config_roles == ["manager", "seed-manager", "data", "client", "ml"]


def test_data_seed_uses_data_shape():
    p = plan(counts(data_count=3), data_instance_type="r5.2xlarge", data_storage_gib=300)
    assert p.seed_group.instance_type == "r5.2xlarge"
    assert p.seed_group.storage_size_gib == 300


def test_groups_are_fixed_size():
    p = plan(counts(manager_count=4, data_count=6, client_count=3, ml_count=2))
    for g in p.groups:
        assert g.min_count == g.max_count == g.desired_count > 0


def test_capacity_group_rejects_empty_size():
    with pytest.raises(TopologyError):
        CapacityGroup("dataNodeAsg", "data", "data", "c5.xlarge", 50, 0)


def test_negative_counts_are_rejected_by_model():
    with pytest.raises(ValidationError):
        RoleCounts(manager_count=-1)


@pytest.mark.parametrize(
    "secure,dashboards,expected",
    [
        (False, False, [(9200, 9200), (19200, 19200)]),
        (True, False, [(443, 9200), (80, 19200)]),
        (False, True, [(9200, 9200), (19200, 19200), (8443, 5601)]),
    ],
)
def test_listener_layout(secure, dashboards, expected):
    assert [(lsn.port, lsn.target_port) for lsn in plan_listeners(secure, dashboards)] == expected


def test_plan_to_dict_names_client_target():
    d = plan(counts(manager_count=1, data_count=2)).to_dict()
    assert d["seed_role"] == "manager"
    assert d["client_target"] == "dataNodeAsg"
    assert [g["name"] for g in d["groups"]] == ["seedNodeAsg", "dataNodeAsg"]
