"""Resource census: count the workload resources left in a namespace."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Callable, List, Sequence

from nsguard.providers.k8s_provider import K8sProvider

logger = logging.getLogger(__name__)

# Declared order is the order kinds appear in denial reasons.
MONITORED_KINDS: tuple[str, ...] = (
    "pods",
    "services",
    "replicasets",
    "deployments",
    "statefulsets",
    "daemonsets",
    "ingresses",
    "horizontalpodautoscalers",
)


@dataclass(frozen=True)
class ResourceKindQuery:
    kind: str
    count: Callable[[str], int]


@dataclass(frozen=True)
class KindCount:
    kind: str
    count: int

    def __str__(self) -> str:
        return f"{self.kind}({self.count})"


@dataclass(frozen=True)
class KindFailure:
    kind: str
    error: Exception

    def __str__(self) -> str:
        return f"error listing {self.kind}, {self.error}"


@dataclass
class CensusResult:
    non_empty_kinds: List[KindCount] = field(default_factory=list)
    failed_kinds: List[KindFailure] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.non_empty_kinds and not self.failed_kinds


def default_kind_queries(provider: K8sProvider) -> List[ResourceKindQuery]:
    return [ResourceKindQuery(kind=kind, count=partial(provider.count, kind)) for kind in MONITORED_KINDS]


def run_census(namespace: str, kinds: Sequence[ResourceKindQuery]) -> CensusResult:
    """
    Run every query against `namespace` and fold the outcomes.

    This is a full scan: a failing or non-empty kind never stops the remaining kinds from
    being counted, so one denial can list everything that blocks the deletion. Query
    failures are recorded in the result, never raised.
    """
    result = CensusResult()
    for q in kinds:
        try:
            n = q.count(namespace)
        except Exception as e:
            logger.warning("Census: listing %s in namespace %s failed: %s", q.kind, namespace, str(e))
            result.failed_kinds.append(KindFailure(kind=q.kind, error=e))
            continue
        if n > 0:
            result.non_empty_kinds.append(KindCount(kind=q.kind, count=n))
    logger.debug(
        "Census of namespace %s: non_empty=%s failed=%s",
        namespace,
        [str(c) for c in result.non_empty_kinds],
        [f.kind for f in result.failed_kinds],
    )
    return result
