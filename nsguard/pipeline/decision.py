"""
Decision engine for namespace DELETE admission reviews.

One call to `decide` walks a fixed sequence of gates and stops at the first one that
applies:

1. admit-all override
2. resource must be core/v1 namespaces
3. operation must be DELETE
4. namespace lookup (not found: allow and let the apiserver reject; other errors: deny)
5. bypass annotation
6. resource census (anything left, or anything we could not count: deny)
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Sequence

from nsguard.core.models import OPERATION_DELETE, AdmissionRequest, GroupVersionResource, ReviewVerdict
from nsguard.pipeline.census import CensusResult, ResourceKindQuery, run_census
from nsguard.providers.k8s_provider import NamespaceNotFoundError

logger = logging.getLogger(__name__)

BYPASS_ANNOTATION_KEY = "k8s-namespace-guard.admission.yahoo.com/allow-cascade-delete"
BYPASS_ANNOTATION_VALUE = "true"

NAMESPACE_RESOURCE = GroupVersionResource(group="", version="v1", resource="namespaces")

NamespaceLookup = Callable[[str], Mapping[str, Any]]
Census = Callable[[str, Sequence[ResourceKindQuery]], CensusResult]


def _is_namespace_resource(resource: GroupVersionResource) -> bool:
    return (resource.group, resource.version, resource.resource) == (
        NAMESPACE_RESOURCE.group,
        NAMESPACE_RESOURCE.version,
        NAMESPACE_RESOURCE.resource,
    )


def has_bypass_annotation(annotations: Mapping[str, Any] | None) -> bool:
    if not annotations:
        return False
    return annotations.get(BYPASS_ANNOTATION_KEY) == BYPASS_ANNOTATION_VALUE


def bypass_hint(namespace: str) -> str:
    return (
        "WARNING: If you know what you are doing, run "
        f"`kubectl annotate namespace {namespace} {BYPASS_ANNOTATION_KEY}={BYPASS_ANNOTATION_VALUE}` "
        "to bypass this policy check."
    )


def render_denial_reason(namespace: str, census: CensusResult) -> str:
    """
    Compose the denial text: in-use kinds, then failed kinds, then the bypass hint.

    Returns "" for a clean census.
    """
    parts = []
    if census.non_empty_kinds:
        listed = " ".join(str(c) for c in census.non_empty_kinds)
        parts.append(
            f"The namespace {namespace} you are trying to remove contains one or more of these "
            f"resources: [{listed}]. Please delete them and try again."
        )
    if census.failed_kinds:
        listed = "; ".join(str(f) for f in census.failed_kinds)
        parts.append(
            "The following error(s) occurred while validating the DELETE operation on the "
            f"namespace {namespace}: [{listed}]."
        )
    if not parts:
        return ""
    parts.append(bypass_hint(namespace))
    return " ".join(parts)


def decide(
    request: AdmissionRequest,
    *,
    namespace_lookup: NamespaceLookup,
    kinds: Sequence[ResourceKindQuery],
    admit_all: bool = False,
    census: Census = run_census,
) -> ReviewVerdict:
    """Return the admission verdict for one review request. Never raises for lookup/query failures."""
    name = request.name

    if admit_all:
        logger.warning("admitAll is set. Allowing %s on %s without validation.", request.operation, name)
        return ReviewVerdict.allow("admit_all")

    if not _is_namespace_resource(request.resource):
        return ReviewVerdict.deny("unexpected_resource", f"Incoming resource is not a Namespace: {request.resource}")

    if request.operation != OPERATION_DELETE:
        return ReviewVerdict.deny(
            "unsupported_operation",
            f"Incoming operation is {request.operation} on namespace {name}. Only DELETE is currently supported.",
        )

    try:
        ns: Dict[str, Any] = dict(namespace_lookup(name))
    except NamespaceNotFoundError as e:
        # The apiserver rejects deletes of missing namespaces itself.
        logger.info("Namespace %s not found, let apiserver handle the error: %s", name, str(e))
        return ReviewVerdict.allow("namespace_not_found")
    except Exception as e:
        return ReviewVerdict.deny("lookup_error", f"Error occurred while retrieving the namespace {name}: {e}")

    if has_bypass_annotation(ns.get("annotations")):
        logger.info(
            "Namespace %s has the bypass annotation set[%s:%s]. OK to DELETE.",
            name,
            BYPASS_ANNOTATION_KEY,
            BYPASS_ANNOTATION_VALUE,
        )
        return ReviewVerdict.allow("bypass_annotation")

    result = census(name, kinds)
    if result.clean:
        logger.info("Namespace %s does not contain any workload resources. OK to DELETE.", name)
        return ReviewVerdict.allow("empty_namespace")

    return ReviewVerdict.deny("namespace_in_use", render_denial_reason(name, result))
