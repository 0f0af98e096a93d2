from __future__ import annotations

import copy
import enum
import os
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol

import yaml

from .errors import TemplateError
from .settings import settings


class ClusterMode(str, enum.Enum):
    SINGLE_NODE = "single-node"
    MULTI_NODE = "multi-node"


BASE_TEMPLATES: dict[ClusterMode, str] = {
    ClusterMode.SINGLE_NODE: "single-node-base-config.yml",
    ClusterMode.MULTI_NODE: "multi-node-base-config.yml",
}
DASHBOARDS_TEMPLATE = "dashboards-base-config.yml"

# Keyed by the config role a capacity group hands to its nodes.
ROLE_OVERLAYS: dict[str, dict[str, Any]] = {
    "manager": {"node.roles": ["master"]},
    "seed-manager": {"node.roles": ["master"]},
    "seed-data": {"node.roles": ["master", "data", "ingest"]},
    "data": {"node.roles": ["data", "ingest"]},
    "client": {"node.roles": []},
    "ml": {"node.roles": ["ml", "remote_cluster_client"]},
}


@dataclass
class ConfigDocument:
    """A configuration document under construction.

    `values` receives structured merges. `literal` is raw text appended after
    the serialized values and is never parsed or merged.
    """

    values: dict[str, Any] = field(default_factory=dict)
    literal: list[str] = field(default_factory=list)


class Overlay(Protocol):
    name: str

    def apply(self, doc: ConfigDocument) -> None:
        ...


def _deep_merge(target: dict[str, Any], source: Mapping[str, Any]) -> None:
    for key, value in source.items():
        if isinstance(value, Mapping) and isinstance(target.get(key), dict):
            _deep_merge(target[key], value)
        else:
            target[key] = copy.deepcopy(value)


@dataclass(frozen=True)
class StructuredOverlay:
    """Key-by-key merge; on collision the overlay's value wins."""

    name: str
    values: Mapping[str, Any]

    def __post_init__(self) -> None:
        if not isinstance(self.values, Mapping):
            raise TemplateError(f"Overlay '{self.name}' must be a mapping, got {type(self.values).__name__}", field=self.name)
        for key in self.values:
            if not isinstance(key, str):
                raise TemplateError(f"Overlay '{self.name}' has a non-string key: {key!r}", field=self.name)

    def apply(self, doc: ConfigDocument) -> None:
        if doc.literal:
            raise TemplateError(f"Structured overlay '{self.name}' applied after a literal overlay", field=self.name)
        _deep_merge(doc.values, self.values)


@dataclass(frozen=True)
class LiteralOverlay:
    """Verbatim text appended to the rendered document.

    Nothing is merged: a key that also appears in a structured overlay shows up
    twice, and readers that keep the last occurrence see this overlay's value.
    """

    name: str
    text: str

    def apply(self, doc: ConfigDocument) -> None:
        doc.literal.append(self.text)


def parse_overlay(name: str, text: str) -> StructuredOverlay:
    """Parse a YAML mapping into a structured overlay."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise TemplateError(f"Overlay '{name}' is not valid YAML: {e}", field=name) from e
    if data is None:
        data = {}
    return StructuredOverlay(name, data)


class ConfigOverlayStore:
    """Base templates on disk plus the built-in per-role overlays."""

    def __init__(self, template_dir: str | None = None, role_overlays: Mapping[str, Mapping[str, Any]] | None = None):
        self.template_dir = template_dir or settings.template_dir
        self.role_overlays = dict(ROLE_OVERLAYS if role_overlays is None else role_overlays)

    def _load(self, filename: str) -> dict[str, Any]:
        path = os.path.join(self.template_dir, filename)
        try:
            with open(path, encoding="utf-8") as fh:
                text = fh.read()
        except FileNotFoundError as e:
            raise TemplateError(f"Base template not found: {path}", field=filename) from e
        return dict(parse_overlay(filename, text).values)

    def base(self, mode: ClusterMode) -> StructuredOverlay:
        filename = BASE_TEMPLATES[ClusterMode(mode)]
        return StructuredOverlay(filename, self._load(filename))

    def dashboards_base(self) -> StructuredOverlay:
        return StructuredOverlay(DASHBOARDS_TEMPLATE, self._load(DASHBOARDS_TEMPLATE))

    def role(self, role: str) -> StructuredOverlay:
        try:
            values = self.role_overlays[role]
        except KeyError as e:
            raise TemplateError(f"Unknown node role '{role}'. Known: {', '.join(sorted(self.role_overlays))}", field="role") from e
        return StructuredOverlay(f"role:{role}", values)

    def roles(self) -> list[str]:
        return sorted(self.role_overlays)
