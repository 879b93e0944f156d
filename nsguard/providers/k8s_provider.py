"""Kubernetes API access for the namespace guard (read-only: namespace lookup + workload counts)."""

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, Optional, Protocol, runtime_checkable

_apis: Dict[str, Any] = {}
_config_loaded = False
_kubeconfig: Optional[str] = None
_request_timeout: Optional[float] = 10.0
_init_lock = threading.Lock()


class NamespaceNotFoundError(LookupError):
    """The namespace does not exist (HTTP 404 from the API server)."""

    def __init__(self, name: str) -> None:
        super().__init__(f'namespaces "{name}" not found')
        self.name = name


class K8sQueryError(Exception):
    """A read against the API server failed for a reason other than not-found."""

    def __init__(self, message: str, *, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


@runtime_checkable
class K8sProvider(Protocol):
    def get_namespace(self, name: str) -> Dict[str, Any]: ...

    def count(self, kind: str, namespace: str) -> int: ...


class DefaultK8sProvider:
    def get_namespace(self, name: str) -> Dict[str, Any]:
        return get_namespace(name)

    def count(self, kind: str, namespace: str) -> int:
        counter = _COUNTERS.get(kind)
        if counter is None:
            raise K8sQueryError(f"unsupported resource kind: {kind}")
        return counter(namespace)


def get_k8s_provider() -> K8sProvider:
    """Seam for swapping provider implementations (tests use in-memory fakes)."""
    return DefaultK8sProvider()


def configure(*, kubeconfig: Optional[str] = None, request_timeout_seconds: Optional[float] = 10.0) -> None:
    """
    Set how clients are built. Drops any cached clients so the next call reloads config.

    Call before serving; clients are otherwise created lazily on first use.
    """
    global _kubeconfig, _request_timeout, _config_loaded
    with _init_lock:
        _kubeconfig = kubeconfig
        _request_timeout = request_timeout_seconds
        _config_loaded = False
        _apis.clear()


def _load_config() -> None:
    # Caller holds _init_lock.
    global _config_loaded
    if _config_loaded:
        return
    from kubernetes import config

    if _kubeconfig:
        config.load_kube_config(config_file=_kubeconfig)
    else:
        try:
            config.load_incluster_config()
        except config.ConfigException:
            config.load_kube_config()
    _config_loaded = True


def _get_api(name: str):
    """
    Return a cached API group client (`CoreV1Api`, `AppsV1Api`, ...).

    Config loading and client construction happen once per process; the clients are then
    shared read-only across requests.
    """
    api = _apis.get(name)
    if api is not None:
        return api

    with _init_lock:
        api = _apis.get(name)
        if api is not None:
            return api
        from kubernetes import client

        _load_config()
        api = getattr(client, name)()
        _apis[name] = api
        return api


def warmup() -> None:
    """Load cluster config eagerly so a broken setup fails at startup, not on the first review."""
    _get_api("CoreV1Api")


def _translate_error(e: Exception, what: str) -> Exception:
    try:
        from kubernetes.client.rest import ApiException
    except Exception:
        ApiException = None  # type: ignore[assignment,misc]

    if ApiException is not None and isinstance(e, ApiException):
        return K8sQueryError(f"{what}: Kubernetes API error: {e.status} {e.reason}", status=e.status)
    return K8sQueryError(f"{what}: {e}")


def get_namespace(name: str) -> Dict[str, Any]:
    """
    Read a Namespace and return the metadata the guard needs.

    Raises NamespaceNotFoundError on 404 and K8sQueryError on any other failure.
    """
    if not name:
        raise K8sQueryError("namespace name required")
    try:
        v1 = _get_api("CoreV1Api")
        ns = v1.read_namespace(name=name, _request_timeout=_request_timeout)
    except Exception as e:
        if getattr(e, "status", None) == 404:
            raise NamespaceNotFoundError(name) from e
        raise _translate_error(e, f"Failed to read namespace {name}") from e

    metadata = getattr(ns, "metadata", None)
    annotations: Dict[str, str] = {}
    if metadata is not None:
        raw_annotations = getattr(metadata, "annotations", None)
        if raw_annotations and isinstance(raw_annotations, dict):
            annotations = dict(raw_annotations)

    return {
        "name": getattr(metadata, "name", None) if metadata is not None else name,
        "annotations": annotations,
    }


def _count_items(api_name: str, method: str, namespace: str) -> int:
    try:
        api = _get_api(api_name)
        resp = getattr(api, method)(namespace=namespace, _request_timeout=_request_timeout)
    except Exception as e:
        raise _translate_error(e, f"{method} in namespace {namespace}") from e
    return len(getattr(resp, "items", None) or [])


def count_pods(namespace: str) -> int:
    return _count_items("CoreV1Api", "list_namespaced_pod", namespace)


def count_services(namespace: str) -> int:
    return _count_items("CoreV1Api", "list_namespaced_service", namespace)


def count_replicasets(namespace: str) -> int:
    return _count_items("AppsV1Api", "list_namespaced_replica_set", namespace)


def count_deployments(namespace: str) -> int:
    return _count_items("AppsV1Api", "list_namespaced_deployment", namespace)


def count_statefulsets(namespace: str) -> int:
    return _count_items("AppsV1Api", "list_namespaced_stateful_set", namespace)


def count_daemonsets(namespace: str) -> int:
    return _count_items("AppsV1Api", "list_namespaced_daemon_set", namespace)


def count_ingresses(namespace: str) -> int:
    return _count_items("NetworkingV1Api", "list_namespaced_ingress", namespace)


def count_horizontalpodautoscalers(namespace: str) -> int:
    return _count_items("AutoscalingV1Api", "list_namespaced_horizontal_pod_autoscaler", namespace)


_COUNTERS: Dict[str, Callable[[str], int]] = {
    "pods": count_pods,
    "services": count_services,
    "replicasets": count_replicasets,
    "deployments": count_deployments,
    "statefulsets": count_statefulsets,
    "daemonsets": count_daemonsets,
    "ingresses": count_ingresses,
    "horizontalpodautoscalers": count_horizontalpodautoscalers,
}
