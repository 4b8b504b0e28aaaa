"""Resource graph produced by the compiler.

A :class:`PlanGraph` is the in-progress, single-owner graph mutated while the
topology is assembled. :meth:`PlanGraph.freeze` turns it into the immutable
tuple of :class:`ResourceNode` carried by a :class:`DeploymentPlan`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from ecs_deploy.config.normalized import BuildStrategy, NormalizedConfig, frozen_mapping
from ecs_deploy.core.certificate import CertificateDecision
from ecs_deploy.core.errors import PlanOrderingError
from ecs_deploy.core.secrets import SecretBinding


class NodeKind(str, Enum):
    NETWORK = "network"
    HOSTED_ZONE = "hosted-zone"
    CERTIFICATE = "certificate"
    SECRET = "secret"
    CLUSTER = "cluster"
    LOAD_BALANCER = "load-balancer"
    LISTENER = "listener"
    TARGET_GROUP = "target-group"
    IMAGE = "image"
    TASK_DEFINITION = "task-definition"
    SERVICE = "service"
    DNS_RECORD = "dns-record"
    SCALING_TARGET = "scaling-target"
    SCALING_POLICY = "scaling-policy"
    ALARM = "alarm"
    DASHBOARD = "dashboard"
    DASHBOARD_WIDGET = "dashboard-widget"


@dataclass(frozen=True)
class MetricSpec:
    """CloudWatch metric whose dimensions come from another node."""

    namespace: str
    metric_name: str
    statistic: str
    source: str
    period_minutes: int = 5


def _freeze_value(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze_value(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze_value(item) for item in value)
    return value


def _plain(value: Any) -> Any:
    """Convert frozen structures into JSON-friendly builtins."""
    if isinstance(value, Enum):
        return value.value
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: _plain(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Mapping):
        return {str(key): _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return value


@dataclass(frozen=True)
class ResourceNode:
    node_id: str
    kind: NodeKind
    depends_on: Tuple[str, ...] = ()
    properties: Mapping[str, Any] = field(default_factory=frozen_mapping)
    tags: Mapping[str, str] = field(default_factory=frozen_mapping)

    def get(self, key: str, default: Any = None) -> Any:
        return self.properties.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.node_id,
            "kind": self.kind.value,
            "depends_on": list(self.depends_on),
            "properties": _plain(self.properties),
            "tags": dict(self.tags),
        }


@dataclass
class _Draft:
    kind: NodeKind
    depends_on: List[str]
    properties: Dict[str, Any]


class PlanGraph:
    """Ordered, append-only node graph owned by a single compilation run."""

    def __init__(self) -> None:
        self._drafts: Dict[str, _Draft] = {}

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._drafts

    def __len__(self) -> int:
        return len(self._drafts)

    def __iter__(self) -> Iterator[str]:
        return iter(self._drafts)

    def add(self, node_id: str, kind: NodeKind, *, depends_on: Tuple[str, ...] = (), **properties: Any) -> str:
        """Append a node; every dependency must already be in the graph."""
        if node_id in self._drafts:
            raise PlanOrderingError(f"Node '{node_id}' is already defined")
        self._check_dependencies(node_id, depends_on)
        self._drafts[node_id] = _Draft(kind=kind, depends_on=list(dict.fromkeys(depends_on)), properties=properties)
        return node_id

    def link(self, node_id: str, dependency: str, **properties: Any) -> None:
        """Add a dependency (and properties) to a node already in the graph."""
        draft = self._draft(node_id)
        self._check_dependencies(node_id, (dependency,))
        if dependency not in draft.depends_on:
            draft.depends_on.append(dependency)
        draft.properties.update(properties)

    def update(self, node_id: str, **properties: Any) -> None:
        self._draft(node_id).properties.update(properties)

    def properties(self, node_id: str) -> Mapping[str, Any]:
        return MappingProxyType(self._draft(node_id).properties)

    def ids_of_kind(self, kind: NodeKind) -> List[str]:
        return [node_id for node_id, draft in self._drafts.items() if draft.kind is kind]

    def freeze(self, tags: Optional[Mapping[str, str]] = None) -> Tuple[ResourceNode, ...]:
        return tuple(
            ResourceNode(
                node_id=node_id,
                kind=draft.kind,
                depends_on=tuple(draft.depends_on),
                properties=_freeze_value(draft.properties),
                tags=frozen_mapping(tags),
            )
            for node_id, draft in self._drafts.items()
        )

    def _draft(self, node_id: str) -> _Draft:
        try:
            return self._drafts[node_id]
        except KeyError:
            raise PlanOrderingError(f"Node '{node_id}' is not in the graph") from None

    def _check_dependencies(self, node_id: str, depends_on: Tuple[str, ...]) -> None:
        missing = [dep for dep in depends_on if dep not in self._drafts]
        if missing:
            raise PlanOrderingError(f"Node '{node_id}' depends on undefined node(s): {', '.join(missing)}")


@dataclass(frozen=True)
class DeploymentPlan:
    """Complete, immutable output of the compiler."""

    config: NormalizedConfig
    certificate: CertificateDecision
    secrets: SecretBinding
    tags: Mapping[str, str]
    nodes: Tuple[ResourceNode, ...]

    @property
    def stage(self) -> str:
        return self.config.stage

    @property
    def stack_name(self) -> str:
        return self.config.stack_name

    @property
    def build_strategy(self) -> BuildStrategy:
        return self.config.build_strategy

    @property
    def node_ids(self) -> List[str]:
        return [node.node_id for node in self.nodes]

    def node(self, node_id: str) -> ResourceNode:
        for node in self.nodes:
            if node.node_id == node_id:
                return node
        raise KeyError(node_id)

    def nodes_of_kind(self, kind: NodeKind) -> List[ResourceNode]:
        return [node for node in self.nodes if node.kind is kind]

    def first_of_kind(self, kind: NodeKind) -> Optional[ResourceNode]:
        matches = self.nodes_of_kind(kind)
        return matches[0] if matches else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage,
            "stack_name": self.stack_name,
            "build_strategy": self.build_strategy.value,
            "certificate": self.certificate.to_dict(),
            "secrets": {name: {"arn": ref.arn, "key": ref.key} for name, ref in self.secrets.items()},
            "tags": dict(self.tags),
            "nodes": [node.to_dict() for node in self.nodes],
        }
