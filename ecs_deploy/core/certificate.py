"""TLS certificate strategy for the load balancer listener."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ecs_deploy.config.normalized import NormalizedConfig
from ecs_deploy.core.errors import MissingHostedZone
from ecs_deploy.core.lookups import LookupRef, LookupResolver


@dataclass(frozen=True)
class CertificateDecision(ABC):
    """Base type for the three possible certificate outcomes."""

    @property
    def terminates_tls(self) -> bool:
        return True

    @property
    def protocol(self) -> str:
        return "HTTPS" if self.terminates_tls else "HTTP"

    @property
    def listener_port(self) -> int:
        return 443 if self.terminates_tls else 80

    @abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        """Plain-data form recorded in the plan."""


@dataclass(frozen=True)
class NoCertificate(CertificateDecision):
    """Plain HTTP; no certificate is imported or created."""

    @property
    def terminates_tls(self) -> bool:
        return False

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "none"}


@dataclass(frozen=True)
class ImportedCertificate(CertificateDecision):
    arn: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "imported", "arn": self.arn}


@dataclass(frozen=True)
class CreatedCertificate(CertificateDecision):
    """DNS-validated certificate created in ``zone`` for ``domain``."""

    domain: str
    zone: LookupRef

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "created", "domain": self.domain, "zone": self.zone.key}


def decide_certificate(config: NormalizedConfig, lookups: LookupResolver) -> CertificateDecision:
    """Pick the certificate strategy for ``config``.

    1. ``create`` is false and no ARN is given: plain HTTP.
    2. An ARN is given: import it, whatever ``create`` says.
    3. Otherwise create a DNS-validated certificate for the full domain. The
       hosted zone of ``route53.domain`` must resolve, otherwise
       :class:`MissingHostedZone` is raised.
    """
    spec = config.certificate
    if not spec.create and not spec.arn:
        return NoCertificate()
    if spec.arn:
        return ImportedCertificate(arn=spec.arn)

    zone: Optional[LookupRef] = lookups.resolve_hosted_zone(config.dns.domain)
    if zone is None or not config.full_domain:
        raise MissingHostedZone(config.dns.domain)
    return CreatedCertificate(domain=config.full_domain, zone=zone)
