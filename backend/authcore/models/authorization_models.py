"""
Authorization Models for AuthCore
Read models for the policy graph (User -> Role -> Policy -> Endpoint) and the
UI graph (UIPage -> PageAction -> Endpoint), plus decision results and API
request/response schemas.

SECURITY REQUIREMENT: every decision defaults to DENY. Records here are plain
snapshots of rows read inside the request's transaction; nothing in this
module talks to the database.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set

from pydantic import BaseModel, Field


class PolicyType(str, Enum):
    """Policy kinds; only RBAC grants access in the decision path"""

    RBAC = "RBAC"
    ABAC = "ABAC"
    CUSTOM = "CUSTOM"


class AuthorizationDecision(str, Enum):
    """Final authorization decision"""

    ALLOW = "allow"
    DENY = "deny"


class DenyReason(str, Enum):
    """Server-side reason codes for a deny decision (never sent to clients)"""

    UNAUTHENTICATED = "unauthenticated"
    PRINCIPAL_UNRESOLVABLE = "principal_unresolvable"
    UNCATALOGED = "uncataloged"
    INACTIVE = "inactive"
    UNPROTECTED = "unprotected"
    POLICY = "policy"
    ERROR = "error"


# Graph records
@dataclass
class UserRecord:
    id: int
    username: str
    enabled: bool = True
    permission_version: int = 0


@dataclass
class RoleRecord:
    id: int
    name: str
    description: Optional[str] = None
    is_active: bool = True


@dataclass
class PolicyRecord:
    id: int
    name: str
    description: Optional[str] = None
    type: str = PolicyType.RBAC.value
    is_active: bool = True


@dataclass(frozen=True)
class EndpointDescriptor:
    """Cataloged endpoint as held by the matcher cache"""

    id: int
    service: str
    version: str
    method: str
    path: str
    is_active: bool = True
    description: Optional[str] = None
    ui_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "service": self.service,
            "version": self.version,
            "method": self.method,
            "path": self.path,
            "description": self.description,
            "ui_type": self.ui_type,
            "is_active": self.is_active,
        }


@dataclass
class PageRecord:
    id: int
    key: str
    label: str
    route: str
    parent_id: Optional[int] = None
    icon: Optional[str] = None
    module: Optional[str] = None
    display_order: int = 0
    is_menu_item: bool = True
    is_active: bool = True


@dataclass
class PageActionRecord:
    id: int
    page_id: int
    label: str
    action: str
    endpoint_id: Optional[int] = None
    icon: Optional[str] = None
    variant: Optional[str] = None
    display_order: Optional[int] = 0
    is_active: bool = True


@dataclass
class RolePolicyGrant:
    """One row of UserRole/Role x RolePolicy x Policy"""

    role_id: int
    role_name: str
    policy_id: int
    policy_name: str
    policy_type: str = PolicyType.RBAC.value


@dataclass
class EndpointPolicyLink:
    """One row of EndpointPolicy x Policy"""

    endpoint_id: int
    policy_id: int
    policy_name: str
    policy_type: str = PolicyType.RBAC.value


# Decision-side results
@dataclass
class EndpointAuthorizationMetadata:
    """What the catalog knows about a request line"""

    endpoint_found: bool
    endpoint_id: Optional[int] = None
    has_policies: bool = False
    policy_ids: Set[int] = field(default_factory=set)

    @classmethod
    def not_found(cls) -> "EndpointAuthorizationMetadata":
        return cls(endpoint_found=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "endpointFound": self.endpoint_found,
            "endpointId": self.endpoint_id,
            "hasPolicies": self.has_policies,
            "policyIds": sorted(self.policy_ids),
        }


@dataclass
class AuthorizationMatrix:
    """Enforcement-facing view of a user's roles and policy names"""

    user_id: int
    permission_version: int
    roles: Set[str] = field(default_factory=set)
    policies: Set[str] = field(default_factory=set)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "permissionVersion": self.permission_version,
            "roles": sorted(self.roles),
            "policies": sorted(self.policies),
        }


@dataclass
class AuthorizationResult:
    """Result of a request-time authorization check"""

    decision: AuthorizationDecision
    method: str
    path: str
    reason: Optional[DenyReason] = None
    user_id: Optional[int] = None
    endpoint_id: Optional[int] = None
    timestamp: datetime = field(default_factory=datetime.utcnow)

    @property
    def allowed(self) -> bool:
        return self.decision == AuthorizationDecision.ALLOW


@dataclass
class PolicyEndpointMapping:
    """
    Active policies, active endpoints and the policy -> endpoint links between them.

    Built once per request for the page/action and audit views so repeated
    lookups do not go back to the database.
    """

    active_policies_by_id: Dict[int, PolicyRecord] = field(default_factory=dict)
    active_endpoints_by_id: Dict[int, EndpointDescriptor] = field(default_factory=dict)
    endpoints_by_policy_id: Dict[int, List[EndpointDescriptor]] = field(default_factory=dict)

    def endpoint_ids_for_policies(self, policy_ids: Iterable[int]) -> Set[int]:
        """Endpoint ids reachable from the given (active) policy ids"""
        endpoint_ids: Set[int] = set()
        for policy_id in policy_ids:
            for endpoint in self.endpoints_by_policy_id.get(policy_id, []):
                endpoint_ids.add(endpoint.id)
        return endpoint_ids


# API schemas
class PolicyEvaluationRequest(BaseModel):
    """Body of POST /internal/authz/policies/evaluate"""

    endpointId: Optional[int] = None
    roles: List[str] = Field(default_factory=list)


class PolicyEvaluationResponse(BaseModel):
    endpointId: int
    allowed: bool


class EndpointMetadataResponse(BaseModel):
    endpointFound: bool
    endpointId: Optional[int] = None
    hasPolicies: bool
    policyIds: List[int] = Field(default_factory=list)


class AuthorizationMatrixResponse(BaseModel):
    userId: int
    permissionVersion: int
    roles: List[str] = Field(default_factory=list)
    policies: List[str] = Field(default_factory=list)


class EndpointDetailResponse(BaseModel):
    """Endpoint with the ids of its active policies"""

    id: int
    service: str
    version: str
    method: str
    path: str
    description: Optional[str] = None
    ui_type: Optional[str] = None
    is_active: bool
    policyIds: List[int] = Field(default_factory=list)
