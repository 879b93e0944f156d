from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

DEFAULT_CERT_FILE = "/var/lib/kubernetes/kubernetes.pem"
DEFAULT_KEY_FILE = "/var/lib/kubernetes/kubernetes-key.pem"
DEFAULT_CLIENT_CA_FILE = "/var/run/secrets/kubernetes.io/serviceaccount/ca.crt"


@dataclass(frozen=True)
class GuardConfig:
    # HTTPS listener
    host: str = "0.0.0.0"
    port: int = 443
    cert_file: str = DEFAULT_CERT_FILE
    key_file: str = DEFAULT_KEY_FILE
    client_ca_file: str = DEFAULT_CLIENT_CA_FILE
    client_auth: bool = False  # require + verify the apiserver client cert

    # Policy
    admit_all: bool = False  # emergency escape hatch: allow every deletion unchecked

    # Cluster access
    kubeconfig: Optional[str] = None  # unset: in-cluster config, then local kubeconfig
    request_timeout_seconds: float = 10.0

    log_level: str = "INFO"


def _env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "y", "on")


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except Exception:
        return default


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except Exception:
        return default


def _env_str(name: str, default: str) -> str:
    return (os.getenv(name, "") or "").strip() or default


@lru_cache(maxsize=1)
def load_guard_config() -> GuardConfig:
    """
    Load guard configuration from environment variables (ConfigMap/Secret friendly).

    Recognized vars:
    - NSGUARD_HOST, NSGUARD_PORT
    - NSGUARD_CERT_FILE, NSGUARD_KEY_FILE, NSGUARD_CLIENT_CA_FILE
    - NSGUARD_CLIENT_AUTH=1
    - NSGUARD_ADMIT_ALL=1
    - KUBECONFIG
    - K8S_REQUEST_TIMEOUT_SECONDS=10
    - LOG_LEVEL=info

    CLI flags in `main.py` override these via `dataclasses.replace`.
    """
    timeout = _env_float("K8S_REQUEST_TIMEOUT_SECONDS", 10.0)
    if timeout <= 0:
        timeout = 10.0

    return GuardConfig(
        host=_env_str("NSGUARD_HOST", "0.0.0.0"),
        port=_env_int("NSGUARD_PORT", 443),
        cert_file=_env_str("NSGUARD_CERT_FILE", DEFAULT_CERT_FILE),
        key_file=_env_str("NSGUARD_KEY_FILE", DEFAULT_KEY_FILE),
        client_ca_file=_env_str("NSGUARD_CLIENT_CA_FILE", DEFAULT_CLIENT_CA_FILE),
        client_auth=_env_bool("NSGUARD_CLIENT_AUTH", False),
        admit_all=_env_bool("NSGUARD_ADMIT_ALL", False),
        kubeconfig=(os.getenv("KUBECONFIG", "") or "").strip() or None,
        request_timeout_seconds=timeout,
        log_level=_env_str("LOG_LEVEL", "info").upper(),
    )
