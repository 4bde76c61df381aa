"""
Domain template catalog.

Read-only templates loaded from the bundled data/domains.yaml.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

CATALOG_PATH = Path(__file__).parent / "data" / "domains.yaml"


@dataclass(frozen=True)
class DomainConfound:
    id: str
    name: str
    description: str
    when_to_check: str = ""
    mitigation_strategies: tuple[str, ...] = ()
    base_likelihood: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DomainConfound:
        return cls(
            id=data["id"],
            name=data["name"],
            description=data.get("description", ""),
            when_to_check=data.get("when_to_check", ""),
            mitigation_strategies=tuple(data.get("mitigation_strategies", [])),
            base_likelihood=float(data.get("base_likelihood", 0.0)),
        )


@dataclass(frozen=True)
class ResearchDesign:
    id: str
    name: str
    description: str
    discriminative_power: int  # 1-10
    feasibility: str = "medium"  # high | medium | low

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ResearchDesign:
        return cls(
            id=data["id"],
            name=data["name"],
            description=data.get("description", ""),
            discriminative_power=int(data.get("discriminative_power", 0)),
            feasibility=data.get("feasibility", "medium"),
        )


@dataclass(frozen=True)
class EffectSizeNorms:
    metric: str
    small: float
    medium: float
    large: float


@dataclass(frozen=True)
class DomainTemplate:
    id: str
    name: str
    description: str
    confounds: tuple[DomainConfound, ...] = ()
    designs: tuple[ResearchDesign, ...] = ()
    effect_size_norms: EffectSizeNorms | None = None
    example_hypotheses: tuple[str, ...] = field(default_factory=tuple)

    def confounds_above(self, min_likelihood: float) -> list[DomainConfound]:
        return [c for c in self.confounds if c.base_likelihood >= min_likelihood]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DomainTemplate:
        norms = data.get("effect_size_norms")
        return cls(
            id=data["id"],
            name=data["name"],
            description=data.get("description", ""),
            confounds=tuple(DomainConfound.from_dict(c) for c in data.get("confounds") or []),
            designs=tuple(ResearchDesign.from_dict(d) for d in data.get("designs") or []),
            effect_size_norms=EffectSizeNorms(**norms) if norms else None,
            example_hypotheses=tuple(data.get("example_hypotheses") or []),
        )


@lru_cache(maxsize=1)
def _catalog() -> dict[str, DomainTemplate]:
    data = yaml.safe_load(CATALOG_PATH.read_text(encoding="utf-8")) or {}
    templates = [DomainTemplate.from_dict(d) for d in data.get("domains", [])]
    return {t.id: t for t in templates}


def get_domain_template(domain_id: str) -> DomainTemplate:
    """Look up a template by id. Raises KeyError for unknown ids."""
    catalog = _catalog()
    if domain_id not in catalog:
        raise KeyError(f"Unknown domain: {domain_id}")
    return catalog[domain_id]


def list_domain_templates() -> list[DomainTemplate]:
    return list(_catalog().values())


def is_known_domain(domain_id: str) -> bool:
    return domain_id in _catalog()
