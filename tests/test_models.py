import pytest
from pydantic import ValidationError


def test_admission_review_parses_v1beta1_payload() -> None:
    from nsguard.core.models import AdmissionReview

    review = AdmissionReview.model_validate(
        {
            "apiVersion": "admission.k8s.io/v1beta1",
            "kind": "AdmissionReview",
            "request": {
                "uid": "u1",
                "kind": {"group": "", "version": "v1", "kind": "Namespace"},
                "resource": {"group": "", "version": "v1", "resource": "namespaces"},
                "name": "team-a",
                "operation": "DELETE",
                "userInfo": {"username": "bob", "groups": ["devs"]},
                "oldObject": {"metadata": {"name": "team-a", "annotations": {"owner": "bob"}}},
                "options": {"kind": "DeleteOptions"},
            },
        }
    )

    assert review.api_version == "admission.k8s.io/v1beta1"
    req = review.request
    assert req is not None
    assert req.name == "team-a"
    assert req.user_info.username == "bob"
    assert str(req.resource) == "/v1, Resource=namespaces"


def test_request_defaults_are_empty() -> None:
    from nsguard.core.models import AdmissionRequest

    req = AdmissionRequest()
    assert req.operation == ""
    assert req.user_info.username == ""


def test_verdict_denial_requires_reason() -> None:
    from nsguard.core.models import ReviewVerdict

    with pytest.raises(ValidationError):
        ReviewVerdict(allowed=False, reason="  ")
    with pytest.raises(ValidationError):
        ReviewVerdict.deny("x", "")

    assert ReviewVerdict.allow("empty_namespace").reason == ""


def test_response_envelope_uses_kubernetes_field_names() -> None:
    from nsguard.core.models import AdmissionReview, ReviewVerdict

    denied = AdmissionReview(response=ReviewVerdict.deny("x", "nope").to_response(uid="u1")).to_wire()
    assert denied == {
        "apiVersion": "admission.k8s.io/v1",
        "kind": "AdmissionReview",
        "response": {"uid": "u1", "allowed": False, "status": {"reason": "nope", "message": "nope"}},
    }

    allowed = AdmissionReview(response=ReviewVerdict.allow("ok").to_response(uid="u2")).to_wire()
    assert allowed["response"] == {"uid": "u2", "allowed": True}


def test_request_is_immutable() -> None:
    from nsguard.core.models import AdmissionRequest

    req = AdmissionRequest(name="team-a", operation="DELETE")
    with pytest.raises(ValidationError):
        req.name = "team-b"  # type: ignore[misc]


def test_null_fields_decode_to_their_defaults() -> None:
    from nsguard.core.models import AdmissionReview

    review = AdmissionReview.model_validate(
        {
            "apiVersion": "admission.k8s.io/v1",
            "kind": "AdmissionReview",
            "request": {
                "uid": "u1",
                "kind": None,
                "resource": {"group": None, "version": "v1", "resource": "namespaces"},
                "name": "team-a",
                "namespace": None,
                "operation": "DELETE",
                "userInfo": {"username": None, "groups": None, "extra": {"scopes": None}},
            },
        }
    )

    req = review.request
    assert req is not None
    assert req.namespace == ""
    assert req.kind.kind == ""
    assert str(req.resource) == "/v1, Resource=namespaces"
    assert req.user_info.username == ""
    assert req.user_info.groups == []
    assert req.user_info.extra == {"scopes": []}

    assert AdmissionReview.model_validate({"request": {"userInfo": None}}).request.user_info.groups == []
