"""Resolution of existing AWS resources referenced by stage configuration.

The compiler never talks to AWS directly; it asks a :class:`LookupResolver`.
Three resolvers are provided:

* :class:`DeferredLookupResolver` defers every lookup to the CDK context
  providers at synth time (``Vpc.from_lookup``, ``HostedZone.from_lookup``).
* :class:`StaticLookupResolver` answers from in-memory tables.
* :class:`AwsLookupResolver` queries EC2, Route 53 and Secrets Manager with
  boto3.

Every resolver memoizes its answers so a single compilation run observes a
consistent view. Lookups are never retried: failures raise
:class:`~ecs_deploy.core.errors.ResourceLookupError` immediately.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Protocol, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ecs_deploy.config.normalized import NetworkRef, frozen_mapping
from ecs_deploy.core.errors import ResourceLookupError
from ecs_deploy.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class LookupRef:
    """Handle for an existing resource.

    ``deferred`` refs carry only the lookup key; the provisioning tool resolves
    them later. Non-deferred refs carry concrete identifiers in ``attributes``.
    """

    kind: str
    key: str
    attributes: Mapping[str, str] = field(default_factory=frozen_mapping)
    deferred: bool = False

    def get(self, name: str) -> Optional[str]:
        return self.attributes.get(name)


class LookupResolver(Protocol):
    """Protocol implemented by every lookup backend."""

    def resolve_network(self, network: NetworkRef) -> LookupRef:
        ...

    def resolve_hosted_zone(self, domain: str) -> Optional[LookupRef]:
        ...

    def resolve_secret(self, arn: str) -> LookupRef:
        ...


class CachedLookupResolver(ABC):
    """Memoizing base class; subclasses implement the ``_lookup_*`` hooks."""

    def __init__(self) -> None:
        self._cache: Dict[Tuple[str, str], Optional[LookupRef]] = {}

    def resolve_network(self, network: NetworkRef) -> LookupRef:
        if not network.vpc_id and not network.vpc_name:
            raise ResourceLookupError("Either Vpc Id or Vpc Name should be set.")
        ref = self._cached("vpc", network.lookup_key, lambda: self._lookup_network(network))
        assert ref is not None
        return ref

    def resolve_hosted_zone(self, domain: str) -> Optional[LookupRef]:
        name = (domain or "").strip().rstrip(".")
        if not name:
            return None
        return self._cached("hosted-zone", name, lambda: self._lookup_hosted_zone(name))

    def resolve_secret(self, arn: str) -> LookupRef:
        ref = self._cached("secret", arn, lambda: self._lookup_secret(arn))
        assert ref is not None
        return ref

    def _cached(self, kind: str, key: str, loader: Callable[[], Optional[LookupRef]]) -> Optional[LookupRef]:
        cache_key = (kind, key)
        if cache_key not in self._cache:
            logger.debug("Resolving %s %s", kind, key)
            self._cache[cache_key] = loader()
        return self._cache[cache_key]

    @abstractmethod
    def _lookup_network(self, network: NetworkRef) -> LookupRef:
        """Describe the VPC referenced by ``network``."""

    @abstractmethod
    def _lookup_hosted_zone(self, domain: str) -> Optional[LookupRef]:
        """Return the public zone for ``domain``, or ``None`` when there is none."""

    @abstractmethod
    def _lookup_secret(self, arn: str) -> LookupRef:
        """Describe the secret stored at ``arn``."""


def _network_attributes(network: NetworkRef) -> Dict[str, str]:
    if network.vpc_id:
        return {"vpc_id": network.vpc_id}
    return {"vpc_name": str(network.vpc_name)}


class DeferredLookupResolver(CachedLookupResolver):
    """Resolve lazily through CDK context providers at synth time."""

    def _lookup_network(self, network: NetworkRef) -> LookupRef:
        return LookupRef("vpc", network.lookup_key, frozen_mapping(_network_attributes(network)), deferred=True)

    def _lookup_hosted_zone(self, domain: str) -> Optional[LookupRef]:
        return LookupRef("hosted-zone", domain, frozen_mapping({"zone_name": domain}), deferred=True)

    def _lookup_secret(self, arn: str) -> LookupRef:
        return LookupRef("secret", arn, frozen_mapping({"arn": arn}), deferred=True)


class StaticLookupResolver(CachedLookupResolver):
    """Answer lookups from in-memory tables.

    ``networks`` is keyed by VPC id or VPC name, ``hosted_zones`` by domain
    name. Secrets are accepted by complete ARN unless ``secrets`` is given, in
    which case unknown ARNs fail.
    """

    def __init__(
        self,
        *,
        networks: Optional[Mapping[str, Mapping[str, str]]] = None,
        hosted_zones: Optional[Mapping[str, Mapping[str, str]]] = None,
        secrets: Optional[Mapping[str, Mapping[str, str]]] = None,
    ) -> None:
        super().__init__()
        self._networks = dict(networks or {})
        self._hosted_zones = dict(hosted_zones or {})
        self._secrets = None if secrets is None else dict(secrets)

    def _lookup_network(self, network: NetworkRef) -> LookupRef:
        key = network.vpc_id or network.vpc_name or ""
        attributes = self._networks.get(key)
        if attributes is None:
            raise ResourceLookupError(f"VPC not found: {network.lookup_key}")
        return LookupRef("vpc", network.lookup_key, frozen_mapping({**_network_attributes(network), **attributes}))

    def _lookup_hosted_zone(self, domain: str) -> Optional[LookupRef]:
        attributes = self._hosted_zones.get(domain)
        if attributes is None:
            return None
        return LookupRef("hosted-zone", domain, frozen_mapping({"zone_name": domain, **attributes}))

    def _lookup_secret(self, arn: str) -> LookupRef:
        if self._secrets is None:
            return LookupRef("secret", arn, frozen_mapping({"arn": arn}))
        attributes = self._secrets.get(arn)
        if attributes is None:
            raise ResourceLookupError(f"Secret not found: {arn}")
        return LookupRef("secret", arn, frozen_mapping({"arn": arn, **attributes}))


class AwsLookupResolver(CachedLookupResolver):
    """Resolve lookups against live AWS APIs using boto3."""

    def __init__(self, *, region: Optional[str] = None, session: Optional[Any] = None) -> None:
        super().__init__()
        self._session = session or boto3.session.Session(region_name=region)
        self._clients: Dict[str, Any] = {}

    def _client(self, service: str) -> Any:
        if service not in self._clients:
            self._clients[service] = self._session.client(service)
        return self._clients[service]

    def _lookup_network(self, network: NetworkRef) -> LookupRef:
        ec2 = self._client("ec2")
        try:
            if network.vpc_id:
                response = ec2.describe_vpcs(VpcIds=[network.vpc_id])
            else:
                response = ec2.describe_vpcs(Filters=[{"Name": "tag:Name", "Values": [str(network.vpc_name)]}])
        except (ClientError, BotoCoreError) as exc:
            raise ResourceLookupError(f"VPC lookup failed for {network.lookup_key}: {exc}") from exc

        vpcs = list(response.get("Vpcs", []))
        if not vpcs:
            raise ResourceLookupError(f"VPC not found: {network.lookup_key}")
        if len(vpcs) > 1:
            raise ResourceLookupError(f"VPC lookup is ambiguous for {network.lookup_key}: {len(vpcs)} matches")

        vpc = vpcs[0]
        attributes = {"vpc_id": vpc["VpcId"], "cidr_block": vpc.get("CidrBlock", "")}
        name = next((tag["Value"] for tag in vpc.get("Tags", []) if tag.get("Key") == "Name"), "")
        if name:
            attributes["vpc_name"] = name
        return LookupRef("vpc", network.lookup_key, frozen_mapping(attributes))

    def _lookup_hosted_zone(self, domain: str) -> Optional[LookupRef]:
        route53 = self._client("route53")
        try:
            response = route53.list_hosted_zones_by_name(DNSName=domain)
        except (ClientError, BotoCoreError) as exc:
            raise ResourceLookupError(f"Hosted zone lookup failed for {domain}: {exc}") from exc

        for zone in response.get("HostedZones", []):
            if zone.get("Name", "").rstrip(".") != domain:
                continue
            if zone.get("Config", {}).get("PrivateZone", False):
                continue
            zone_id = str(zone["Id"]).split("/")[-1]
            return LookupRef("hosted-zone", domain, frozen_mapping({"zone_name": domain, "hosted_zone_id": zone_id}))
        return None

    def _lookup_secret(self, arn: str) -> LookupRef:
        secretsmanager = self._client("secretsmanager")
        try:
            response = secretsmanager.describe_secret(SecretId=arn)
        except (ClientError, BotoCoreError) as exc:
            raise ResourceLookupError(f"Secret lookup failed for {arn}: {exc}") from exc
        return LookupRef("secret", arn, frozen_mapping({"arn": response["ARN"], "name": response.get("Name", "")}))
