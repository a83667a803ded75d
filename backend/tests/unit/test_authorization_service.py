"""
Unit tests for the request-time AuthorizationService.

Covers the full decision procedure (preflight, principal resolution,
catalog resolution, policy intersection) and its fail-secure behaviour.
"""

from unittest.mock import patch

import pytest

from authcore.auth import ClaimsPrincipalResolver
from authcore.models.authorization_models import AuthorizationDecision, AuthorizationResult, DenyReason
from authcore.services.authorization import (
    AuthorizationService,
    NotAuthenticatedError,
    PolicyDeniedError,
    deny_error_for,
    get_authorization_service,
)


@pytest.fixture
def service(db_session, matcher):
    return AuthorizationService(db_session, matcher, ClaimsPrincipalResolver())


def _principal(user):
    return {"sub": user.username, "user_id": user.id}


@pytest.mark.unit
class TestDecisionProcedure:
    def test_options_allowed_without_principal(self, service):
        result = service.authorize("OPTIONS", "/anything/at/all", None)

        assert result.allowed
        assert result.reason is None

    def test_missing_principal_is_unauthenticated(self, service, billing_graph):
        result = service.authorize("GET", "/invoices/42", None)

        assert result.reason == DenyReason.UNAUTHENTICATED
        assert deny_error_for(result).status_code == 401

    def test_unresolvable_principal(self, service, billing_graph):
        result = service.authorize("GET", "/invoices/42", {"sub": "not-a-number"})

        assert result.reason == DenyReason.PRINCIPAL_UNRESOLVABLE
        assert deny_error_for(result).status_code == 403

    def test_unknown_user_id(self, service, billing_graph):
        result = service.authorize("GET", "/invoices/42", {"sub": "ghost", "user_id": 4242})

        assert result.reason == DenyReason.PRINCIPAL_UNRESOLVABLE

    def test_uncataloged_route_denied_for_user_with_all_roles(self, service, billing_graph, graph):
        u1 = graph.user("u1")
        graph.assign(u1, billing_graph["role"])
        graph.assign(u1, graph.role("R_ADMIN"))

        result = service.authorize("PUT", "/api/unknown/thing", _principal(u1))

        assert not result.allowed
        assert result.reason == DenyReason.UNCATALOGED
        assert deny_error_for(result).status_code == 403

    def test_allow_single_policy(self, service, billing_graph):
        result = service.authorize("GET", "/api/billing/v1/invoices/42", _principal(billing_graph["user"]))

        assert result.decision == AuthorizationDecision.ALLOW
        assert result.endpoint_id == billing_graph["endpoint"].id
        assert result.user_id == billing_graph["user"].id

    def test_composite_path_equivalence(self, service, billing_graph):
        principal = _principal(billing_graph["user"])

        for path in ("/invoices/42", "/api/billing/invoices/42", "/api/billing/v1/invoices/42/"):
            assert service.authorize("GET", path, principal).allowed, path

    def test_query_string_ignored(self, service, billing_graph):
        assert service.authorize("GET", "/invoices/42?expand=lines", _principal(billing_graph["user"])).allowed

    def test_inactive_policy_denied_with_policy_reason(self, service, billing_graph, graph):
        graph.deactivate(billing_graph["policy"])

        result = service.authorize("GET", "/api/billing/v1/invoices/42", _principal(billing_graph["user"]))

        assert result.reason == DenyReason.POLICY

    def test_unprotected_endpoint_denied(self, service, billing_graph, graph):
        graph.endpoint("GET", "/statements")

        result = service.authorize("GET", "/statements", _principal(billing_graph["user"]))

        assert result.reason == DenyReason.UNPROTECTED

    def test_inactive_endpoint_behaves_as_uncataloged(self, service, billing_graph, graph):
        graph.deactivate(billing_graph["endpoint"])

        result = service.authorize("GET", "/invoices/42", _principal(billing_graph["user"]))

        assert result.reason == DenyReason.UNCATALOGED

    def test_user_without_policy_denied(self, service, billing_graph, graph):
        outsider = graph.user("outsider")
        graph.assign(outsider, graph.role("R_SUPPORT"))

        result = service.authorize("GET", "/invoices/42", _principal(outsider))

        assert result.reason == DenyReason.POLICY

    def test_inactive_role_denied(self, service, billing_graph, graph):
        graph.deactivate(billing_graph["role"])

        result = service.authorize("GET", "/invoices/42", _principal(billing_graph["user"]))

        assert result.reason == DenyReason.POLICY

    def test_method_is_case_insensitive(self, service, billing_graph):
        assert service.authorize("get", "/invoices/42", _principal(billing_graph["user"])).allowed

    def test_context_path_stripped(self, db_session, matcher, billing_graph):
        service = AuthorizationService(db_session, matcher, ClaimsPrincipalResolver(), context_path="/auth")

        assert service.authorize("GET", "/auth/api/billing/v1/invoices/42", _principal(billing_graph["user"])).allowed

    def test_errors_fail_secure(self, service, billing_graph):
        with patch.object(
            service.matrix_builder, "build_authorization_matrix", side_effect=RuntimeError("connection reset")
        ):
            result = service.authorize("GET", "/invoices/42", _principal(billing_graph["user"]))

        assert not result.allowed
        assert result.reason == DenyReason.ERROR

    def test_resolver_errors_are_unresolvable(self, service, billing_graph):
        with patch.object(service.principal_resolver, "user_id", side_effect=ValueError("bad claim")):
            result = service.authorize("GET", "/invoices/42", _principal(billing_graph["user"]))

        assert result.reason == DenyReason.PRINCIPAL_UNRESOLVABLE

    def test_is_allowed(self, service, billing_graph):
        assert service.is_allowed("GET", "/invoices/42", _principal(billing_graph["user"]))
        assert not service.is_allowed("GET", "/invoices/42", None)


@pytest.mark.unit
class TestDenyMapping:
    def test_unauthenticated_maps_to_401(self):
        result = AuthorizationResult(
            decision=AuthorizationDecision.DENY, method="GET", path="/", reason=DenyReason.UNAUTHENTICATED
        )

        error = deny_error_for(result)

        assert isinstance(error, NotAuthenticatedError)
        assert error.status_code == 401

    @pytest.mark.parametrize(
        "reason",
        [
            DenyReason.PRINCIPAL_UNRESOLVABLE,
            DenyReason.UNCATALOGED,
            DenyReason.INACTIVE,
            DenyReason.UNPROTECTED,
            DenyReason.POLICY,
            DenyReason.ERROR,
        ],
    )
    def test_other_reasons_map_to_403(self, reason):
        result = AuthorizationResult(decision=AuthorizationDecision.DENY, method="GET", path="/", reason=reason)

        assert deny_error_for(result).status_code == 403

    def test_error_reason_reported_as_policy_denial(self):
        result = AuthorizationResult(
            decision=AuthorizationDecision.DENY, method="GET", path="/", reason=DenyReason.ERROR
        )

        assert isinstance(deny_error_for(result), PolicyDeniedError)


@pytest.mark.unit
class TestFactory:
    def test_uses_context_path_from_settings(self, db_session, matcher, settings):
        service = get_authorization_service(
            db_session, matcher, settings=settings.model_copy(update={"context_path": "/auth"})
        )

        assert service.context_path == "/auth"
        assert isinstance(service.principal_resolver, ClaimsPrincipalResolver)
