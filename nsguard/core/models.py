"""Canonical domain models for the namespace guard.

The AdmissionReview envelope is owned by the Kubernetes API server; we model only the
fields we read or write and tolerate the rest (`extra="allow"`), since the exact shape
varies between `admission.k8s.io/v1beta1` and `admission.k8s.io/v1`.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ADMISSION_API_VERSION = "admission.k8s.io/v1"
OPERATION_DELETE = "DELETE"


def _null_as_empty_str(v: Any) -> Any:
    return "" if v is None else v


class BaseModelAllowExtra(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class BaseModelStrict(BaseModel):
    model_config = ConfigDict(extra="forbid")


class GroupVersionResource(BaseModelAllowExtra):
    group: str = ""
    version: str = ""
    resource: str = ""

    @field_validator("group", "version", "resource", mode="before")
    @classmethod
    def _null_str(cls, v: Any) -> Any:
        return _null_as_empty_str(v)

    def __str__(self) -> str:
        # Same rendering as apimachinery's GroupVersionResource.String().
        return f"{self.group}/{self.version}, Resource={self.resource}"


class GroupVersionKind(BaseModelAllowExtra):
    group: str = ""
    version: str = ""
    kind: str = ""

    @field_validator("group", "version", "kind", mode="before")
    @classmethod
    def _null_str(cls, v: Any) -> Any:
        return _null_as_empty_str(v)


class UserInfo(BaseModelAllowExtra):
    username: str = ""
    uid: str = ""
    groups: List[str] = Field(default_factory=list)
    extra: Dict[str, List[str]] = Field(default_factory=dict)

    @field_validator("username", "uid", mode="before")
    @classmethod
    def _null_str(cls, v: Any) -> Any:
        return _null_as_empty_str(v)

    @field_validator("groups", mode="before")
    @classmethod
    def _groups_list(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("extra", mode="before")
    @classmethod
    def _extra_obj(cls, v: Any) -> Any:
        if v is None:
            return {}
        if isinstance(v, dict):
            return {k: [] if vals is None else vals for k, vals in v.items()}
        return v


class AdmissionRequest(BaseModelAllowExtra):
    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    uid: str = ""
    kind: GroupVersionKind = Field(default_factory=GroupVersionKind)
    resource: GroupVersionResource = Field(default_factory=GroupVersionResource)
    sub_resource: Optional[str] = Field(default=None, alias="subResource")
    name: str = ""
    namespace: str = ""
    # Kept open (not an enum) so an operation we don't know is denied, not rejected as malformed.
    operation: str = ""
    user_info: UserInfo = Field(default_factory=UserInfo, alias="userInfo")
    object: Optional[Dict[str, Any]] = None
    old_object: Optional[Dict[str, Any]] = Field(default=None, alias="oldObject")
    dry_run: Optional[bool] = Field(default=None, alias="dryRun")

    @field_validator("uid", "name", "namespace", "operation", mode="before")
    @classmethod
    def _null_str(cls, v: Any) -> Any:
        return _null_as_empty_str(v)

    @field_validator("kind", "resource", "user_info", mode="before")
    @classmethod
    def _null_obj(cls, v: Any) -> Any:
        return {} if v is None else v


class Status(BaseModelAllowExtra):
    reason: Optional[str] = None
    message: Optional[str] = None


class AdmissionResponse(BaseModelAllowExtra):
    uid: str = ""
    allowed: bool
    status: Optional[Status] = None


class AdmissionReview(BaseModelAllowExtra):
    api_version: str = Field(default=ADMISSION_API_VERSION, alias="apiVersion")
    kind: str = "AdmissionReview"
    request: Optional[AdmissionRequest] = None
    response: Optional[AdmissionResponse] = None

    def to_wire(self) -> Dict[str, Any]:
        """Serialize with Kubernetes field names, dropping unset optional fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ReviewVerdict(BaseModelStrict):
    """
    Outcome of one admission decision.

    `code` is a stable label for the branch that produced the verdict (for audit logs);
    `reason` is the operator-facing text and must be non-empty for every denial.
    """

    allowed: bool
    reason: str = ""
    code: str = ""

    @model_validator(mode="after")
    def _denials_carry_reason(self) -> "ReviewVerdict":
        if not self.allowed and not self.reason.strip():
            raise ValueError("a denied verdict must carry a reason")
        return self

    @classmethod
    def allow(cls, code: str, reason: str = "") -> "ReviewVerdict":
        return cls(allowed=True, reason=reason, code=code)

    @classmethod
    def deny(cls, code: str, reason: str) -> "ReviewVerdict":
        return cls(allowed=False, reason=reason, code=code)

    def to_response(self, uid: str) -> AdmissionResponse:
        status = Status(reason=self.reason, message=self.reason) if self.reason else None
        return AdmissionResponse(uid=uid, allowed=self.allowed, status=status)
