from __future__ import annotations

from dataclasses import dataclass

from .api_models import PlanRequest, RenderRequest
from .assembler import ClusterIdentity, RenderedConfig, assemble_roles, remote_store_overlay, render_dashboards_config
from .overlays import ClusterMode, ConfigOverlayStore
from .topology import TopologyPlan, plan


@dataclass
class RenderBundle:
    """Everything the provisioning layer injects into the nodes of one cluster."""

    plan: TopologyPlan
    configs: dict[str | None, RenderedConfig]
    dashboards_config: str | None = None

    def to_dict(self) -> dict:
        return {
            "plan": self.plan.to_dict(),
            "configs": {config_file_name(role): rc.text for role, rc in self.configs.items()},
            "dashboards_config": self.dashboards_config,
        }


def config_file_name(role: str | None) -> str:
    return f"{role or 'single-node'}.yml"


def plan_from_request(req: PlanRequest) -> TopologyPlan:
    return plan(
        req.roles,
        single_node=req.single_node,
        cpu_arch=req.cpu_arch,
        data_instance_type=req.data_instance_type,
        ml_instance_type=req.ml_instance_type,
        data_storage_gib=req.data_storage_gib,
        ml_storage_gib=req.ml_storage_gib,
        secure=req.secure,
        dashboards=req.dashboards,
    )


def render_from_request(req: RenderRequest, store: ConfigOverlayStore | None = None) -> RenderBundle:
    store = store or ConfigOverlayStore()
    topo = plan_from_request(req)
    identity = ClusterIdentity(req.deployment, req.account, req.region)
    mode = ClusterMode.SINGLE_NODE if topo.single_node else ClusterMode.MULTI_NODE

    features = []
    if req.remote_store:
        features.append(remote_store_overlay(identity, bucket=req.remote_store_bucket))

    configs = assemble_roles(identity, mode, topo.config_roles, features, req.additional_config, store)
    dashboards = render_dashboards_config(req.additional_dashboards_config, store) if req.dashboards else None
    return RenderBundle(plan=topo, configs=configs, dashboards_config=dashboards)
