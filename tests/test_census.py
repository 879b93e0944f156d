from __future__ import annotations

from typing import List

from nsguard.pipeline.census import (
    MONITORED_KINDS,
    CensusResult,
    KindCount,
    ResourceKindQuery,
    default_kind_queries,
    run_census,
)


def _const(n: int):
    return lambda _ns: n


def _boom(msg: str):
    def _raise(_ns: str) -> int:
        raise RuntimeError(msg)

    return _raise


def test_monitored_kinds_fixed_order() -> None:
    assert MONITORED_KINDS == (
        "pods",
        "services",
        "replicasets",
        "deployments",
        "statefulsets",
        "daemonsets",
        "ingresses",
        "horizontalpodautoscalers",
    )


def test_clean_namespace_yields_empty_result() -> None:
    kinds = [ResourceKindQuery(kind=k, count=_const(0)) for k in MONITORED_KINDS]
    result = run_census("ns", kinds)
    assert result.clean
    assert result.non_empty_kinds == []
    assert result.failed_kinds == []


def test_full_scan_records_counts_and_failures_in_order() -> None:
    seen: List[str] = []

    def _track(kind: str, n: int):
        def _count(ns: str) -> int:
            seen.append(kind)
            return n

        return _count

    kinds = [
        ResourceKindQuery("pods", _track("pods", 2)),
        ResourceKindQuery("services", _boom("forbidden")),
        ResourceKindQuery("replicasets", _track("replicasets", 0)),
        ResourceKindQuery("deployments", _track("deployments", 1)),
        ResourceKindQuery("ingresses", _boom("timeout")),
        ResourceKindQuery("horizontalpodautoscalers", _track("horizontalpodautoscalers", 0)),
    ]

    result = run_census("ns", kinds)

    assert seen == ["pods", "replicasets", "deployments", "horizontalpodautoscalers"]
    assert result.non_empty_kinds == [KindCount("pods", 2), KindCount("deployments", 1)]
    assert [f.kind for f in result.failed_kinds] == ["services", "ingresses"]
    assert str(result.failed_kinds[1]) == "error listing ingresses, timeout"
    assert not result.clean


def test_queries_receive_the_namespace() -> None:
    got: List[str] = []
    kinds = [ResourceKindQuery("pods", lambda ns: got.append(ns) or 0)]
    run_census("team-a", kinds)
    assert got == ["team-a"]


def test_default_kind_queries_bind_provider(fake_k8s) -> None:
    provider = fake_k8s(counts={("ns", "daemonsets"): 3})

    kinds = default_kind_queries(provider)
    result = run_census("ns", kinds)

    assert [q.kind for q in kinds] == list(MONITORED_KINDS)
    assert result.non_empty_kinds == [KindCount("daemonsets", 3)]
    assert [k for _ns, k in provider.count_calls] == list(MONITORED_KINDS)


def test_result_is_fresh_per_run() -> None:
    kinds = [ResourceKindQuery("pods", _const(1))]
    a = run_census("ns", kinds)
    b = run_census("ns", kinds)
    assert a == b
    assert a is not b
    assert isinstance(a, CensusResult)
