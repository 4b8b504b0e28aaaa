"""Flatten Secrets Manager references into container secret bindings."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List

from ecs_deploy.config.normalized import SecretReference
from ecs_deploy.core.errors import DuplicateSecretVariable


@dataclass(frozen=True)
class SecretRef:
    """A single key inside a Secrets Manager secret."""

    arn: str
    key: str


class SecretBinding(Mapping):
    """Read-only mapping of container env var name -> :class:`SecretRef`."""

    def __init__(self, entries: Dict[str, SecretRef]) -> None:
        self._entries = dict(entries)

    def __getitem__(self, variable: str) -> SecretRef:
        return self._entries[variable]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"SecretBinding({self._entries!r})"

    def arns(self) -> List[str]:
        """Distinct secret ARNs in first-seen order."""
        return list(dict.fromkeys(ref.arn for ref in self._entries.values()))


def map_secrets(references: Iterable[SecretReference]) -> SecretBinding:
    """Build the env-var binding from secret references, in order.

    Binding the same variable twice to the same (ARN, key) is a no-op; binding
    it to a different ARN or key raises :class:`DuplicateSecretVariable`.
    """
    entries: Dict[str, SecretRef] = {}
    for reference in references:
        for key, variable in reference.variables.items():
            candidate = SecretRef(arn=reference.arn, key=key)
            existing = entries.get(variable)
            if existing is not None and existing != candidate:
                raise DuplicateSecretVariable(variable, (existing.arn, existing.key), (candidate.arn, candidate.key))
            entries[variable] = candidate
    return SecretBinding(entries)
