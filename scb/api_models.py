from __future__ import annotations

from pydantic import BaseModel, Field

from .topology import CpuArch, RoleCounts


class PlanRequest(BaseModel):
    roles: RoleCounts = Field(default_factory=RoleCounts)
    single_node: bool = Field(False, description="One instance serving every role; role counts ignored")
    cpu_arch: CpuArch = CpuArch.X86_64
    data_instance_type: str | None = Field(None, description="e.g. r5.xlarge")
    ml_instance_type: str | None = None
    data_storage_gib: int = Field(100, ge=1, le=16384)
    ml_storage_gib: int = Field(100, ge=1, le=16384)
    secure: bool = Field(False, description="TLS listeners (443/80) instead of 9200/19200")
    dashboards: bool = False


class RenderRequest(PlanRequest):
    deployment: str = Field(..., min_length=1, description="Deployment (stack) name")
    account: str = Field(..., min_length=1)
    region: str = Field(..., min_length=1)
    remote_store: bool = False
    remote_store_bucket: str | None = None
    additional_config: str | None = Field(None, description="Raw text appended verbatim to every node config")
    additional_dashboards_config: str | None = None
