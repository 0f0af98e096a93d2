from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from typing import Iterable, Sequence

import psutil
import yaml

from .errors import TemplateError
from .overlays import ClusterMode, ConfigDocument, ConfigOverlayStore, LiteralOverlay, Overlay, StructuredOverlay
from .settings import settings

log = logging.getLogger(__name__)

_XMS_RE = re.compile(r"^-Xms[0-9a-zA-Z]*$", re.MULTILINE)
_XMX_RE = re.compile(r"^-Xmx[0-9a-zA-Z]*$", re.MULTILINE)


@dataclass(frozen=True)
class ClusterIdentity:
    """Deployment/account/region triple that keeps cluster names unique across environments."""

    deployment: str
    account: str
    region: str

    @property
    def cluster_name(self) -> str:
        return f"{self.deployment}-{self.account}-{self.region}"

    @property
    def repository_name(self) -> str:
        return f"{self.deployment}-repo"

    def discovery_tag_names(self) -> str:
        # Seed first: it is provisioned on its own and is reachable before the scalable groups.
        return f"{self.deployment}/seedNodeAsg,{self.deployment}/managerNodeAsg"


@dataclass(frozen=True)
class RenderedConfig:
    role: str | None
    text: str


def identity_overlay(identity: ClusterIdentity) -> StructuredOverlay:
    return StructuredOverlay("identity", {"cluster.name": identity.cluster_name})


def discovery_overlay(identity: ClusterIdentity) -> StructuredOverlay:
    return StructuredOverlay("discovery", {"discovery.ec2.tag.Name": identity.discovery_tag_names()})


def remote_store_overlay(identity: ClusterIdentity, bucket: str | None = None, base_path: str = "remote-store") -> StructuredOverlay:
    """Segment, translog and cluster-state repositories backed by one S3 bucket."""
    repo = identity.repository_name
    return StructuredOverlay(
        "remote-store",
        {
            "node.attr.remote_store.segment.repository": repo,
            "node.attr.remote_store.translog.repository": repo,
            "node.attr.remote_store.state.repository": repo,
            f"node.attr.remote_store.repository.{repo}.type": "s3",
            f"node.attr.remote_store.repository.{repo}.settings": {
                "bucket": bucket or identity.deployment,
                "base_path": base_path,
                "region": identity.region,
            },
        },
    )


def render_document(doc: ConfigDocument) -> str:
    """Serialize with sorted keys so identical input gives identical bytes."""
    text = ""
    if doc.values:
        text = yaml.safe_dump(doc.values, sort_keys=True, default_flow_style=False, allow_unicode=True)
    for chunk in doc.literal:
        if not chunk:
            continue
        if text and not text.endswith("\n"):
            text += "\n"
        text += chunk
        if not text.endswith("\n"):
            text += "\n"
    return text


def _apply_all(overlays: Iterable[Overlay]) -> ConfigDocument:
    doc = ConfigDocument()
    for overlay in overlays:
        log.debug("Applying overlay %s", overlay.name)
        overlay.apply(doc)
    return doc


def assemble(
    identity: ClusterIdentity,
    mode: ClusterMode,
    role: str | None = None,
    feature_overlays: Sequence[StructuredOverlay] = (),
    user_overlay: str | None = None,
    store: ConfigOverlayStore | None = None,
) -> RenderedConfig:
    """Render the configuration document for one node role.

    Order is fixed: base template, cluster identity, discovery (multi-node
    only), role overlay, feature overlays, then the user text appended last.
    """
    store = store or ConfigOverlayStore()
    mode = ClusterMode(mode)

    overlays: list[Overlay] = [store.base(mode), identity_overlay(identity)]
    if mode is ClusterMode.MULTI_NODE:
        overlays.append(discovery_overlay(identity))
        if role is not None:
            overlays.append(store.role(role))
    elif role is not None:
        raise TemplateError("Role overlays only apply to multi-node clusters", field="role")

    for feature in feature_overlays:
        if not isinstance(feature, StructuredOverlay):
            raise TemplateError(f"Feature overlay must be structured, got {type(feature).__name__}", field="feature_overlays")
        overlays.append(feature)

    if user_overlay:
        overlays.append(LiteralOverlay("user", user_overlay))

    return RenderedConfig(role=role, text=render_document(_apply_all(overlays)))


def assemble_roles(
    identity: ClusterIdentity,
    mode: ClusterMode,
    roles: Iterable[str | None],
    feature_overlays: Sequence[StructuredOverlay] = (),
    user_overlay: str | None = None,
    store: ConfigOverlayStore | None = None,
) -> dict[str | None, RenderedConfig]:
    store = store or ConfigOverlayStore()
    out: dict[str | None, RenderedConfig] = {}
    for role in roles:
        out[role] = assemble(identity, mode, role, feature_overlays, user_overlay, store)
    return out


def render_dashboards_config(user_overlay: str | None = None, store: ConfigOverlayStore | None = None) -> str:
    store = store or ConfigOverlayStore()
    overlays: list[Overlay] = [store.dashboards_base()]
    if user_overlay:
        overlays.append(LiteralOverlay("user", user_overlay))
    return render_document(_apply_all(overlays))


def heap_size_gb(total_mem_gib: int, cap: int | None = None) -> int:
    """Half of the node's memory (rounded up by one GiB first), capped."""
    if total_mem_gib < 0:
        raise TemplateError("total_mem_gib must be non-negative", field="total_mem_gib")
    cap = settings.max_heap_gb if cap is None else cap
    return min((total_mem_gib + 1) // 2, cap)


def node_total_memory_gib() -> int:
    return int(psutil.virtual_memory().total // (1024**3))


def _split_sys_props(sys_props: str | Sequence[str] | None) -> list[str]:
    if not sys_props:
        return []
    if isinstance(sys_props, str):
        sys_props = sys_props.split(",")
    return [p.strip() for p in sys_props if p and p.strip()]


def render_jvm_options(base_text: str, sys_props: str | Sequence[str] | None = None, heap_gb: int | None = None) -> str:
    """Append -D system properties and optionally pin -Xms/-Xmx.

    The options file is flat text; nothing is parsed beyond whole-line heap flags.
    """
    text = base_text
    props = _split_sys_props(sys_props)
    if props:
        if text and not text.endswith("\n"):
            text += "\n"
        text += "".join(f"-D{p}\n" for p in props)

    if heap_gb is not None:
        if heap_gb <= 0:
            raise TemplateError("heap_gb must be positive", field="heap_gb")
        text = _XMS_RE.sub(f"-Xms{heap_gb}g", text)
        text = _XMX_RE.sub(f"-Xmx{heap_gb}g", text)
    return text


def write_rendered(path: str, text: str) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(path, "w", encoding="utf-8") as fh:
        fh.write(text)
    log.info("Wrote %s (%d bytes)", path, len(text.encode("utf-8")))
