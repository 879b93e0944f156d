"""
Pytest config.

Local imports like `import nsguard` rely on the repo root being on sys.path. When invoking
a global `pytest` entrypoint that doesn't happen reliably during collection, so we pin it
here.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()


class FakeK8sProvider:
    """
    In-memory stand-in for the cluster.

    - namespaces: name -> annotations (missing name => NamespaceNotFoundError)
    - counts: (namespace, kind) -> int (missing => 0)
    - count_errors: kind -> exception raised for that kind's list call
    - lookup_error: raised by get_namespace instead of a lookup
    """

    def __init__(
        self,
        *,
        namespaces: Optional[Dict[str, Dict[str, str]]] = None,
        counts: Optional[Dict[tuple, int]] = None,
        count_errors: Optional[Dict[str, Exception]] = None,
        lookup_error: Optional[Exception] = None,
    ) -> None:
        self.namespaces = namespaces or {}
        self.counts = counts or {}
        self.count_errors = count_errors or {}
        self.lookup_error = lookup_error
        self.lookups: List[str] = []
        self.count_calls: List[tuple] = []

    def get_namespace(self, name: str) -> Dict[str, Any]:
        from nsguard.providers.k8s_provider import NamespaceNotFoundError

        self.lookups.append(name)
        if self.lookup_error is not None:
            raise self.lookup_error
        if name not in self.namespaces:
            raise NamespaceNotFoundError(name)
        return {"name": name, "annotations": dict(self.namespaces[name])}

    def count(self, kind: str, namespace: str) -> int:
        self.count_calls.append((namespace, kind))
        err = self.count_errors.get(kind)
        if err is not None:
            raise err
        return self.counts.get((namespace, kind), 0)


@pytest.fixture
def fake_k8s() -> type:
    return FakeK8sProvider


@pytest.fixture(autouse=True)
def _isolate_guard_config(monkeypatch: pytest.MonkeyPatch):
    """
    `load_guard_config()` is lru-cached and the webhook app keeps its config on `app.state`.
    Reset both around every test so env-driven settings never leak between tests.
    """
    from nsguard.api import webhook
    from nsguard.core.config import load_guard_config

    for name in ("NSGUARD_ADMIT_ALL", "NSGUARD_CLIENT_AUTH", "NSGUARD_PORT", "KUBECONFIG"):
        monkeypatch.delenv(name, raising=False)
    load_guard_config.cache_clear()
    if hasattr(webhook.app.state, "config"):
        del webhook.app.state.config
    yield
    load_guard_config.cache_clear()
    if hasattr(webhook.app.state, "config"):
        del webhook.app.state.config
