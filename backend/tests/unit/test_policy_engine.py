"""
Unit tests for PolicyEngine.

Tests role/endpoint policy intersection against a seeded SQLite policy graph.
"""

from unittest.mock import patch

import pytest

from authcore.services.authorization import PolicyEngine


@pytest.mark.unit
class TestPolicyEngineEvaluate:
    def test_allows_when_role_holds_endpoint_policy(self, billing_graph, db_session):
        engine = PolicyEngine(db_session)

        assert engine.evaluate(["R_FIN"], billing_graph["endpoint"].id) is True

    def test_denies_without_roles(self, billing_graph, db_session):
        engine = PolicyEngine(db_session)

        assert engine.evaluate([], billing_graph["endpoint"].id) is False
        assert engine.evaluate(None, billing_graph["endpoint"].id) is False

    def test_denies_unknown_role(self, billing_graph, db_session):
        assert PolicyEngine(db_session).evaluate(["R_OPS"], billing_graph["endpoint"].id) is False

    def test_role_names_are_case_sensitive(self, billing_graph, db_session):
        assert PolicyEngine(db_session).evaluate(["r_fin"], billing_graph["endpoint"].id) is False

    def test_any_matching_role_is_enough(self, billing_graph, graph, db_session):
        graph.role("R_OPS")

        assert PolicyEngine(db_session).evaluate(["R_OPS", "R_FIN"], billing_graph["endpoint"].id) is True

    def test_unguarded_endpoint_denied(self, graph, db_session):
        endpoint = graph.endpoint("GET", "/open")
        role = graph.role("R_ALL")
        graph.grant(role, graph.policy("P_ANY"))

        assert PolicyEngine(db_session).evaluate(["R_ALL"], endpoint.id) is False

    def test_inactive_policy_contributes_nothing(self, billing_graph, graph, db_session):
        graph.deactivate(billing_graph["policy"])

        assert PolicyEngine(db_session).evaluate(["R_FIN"], billing_graph["endpoint"].id) is False

    def test_inactive_role_policy_assignment_ignored(self, graph, db_session):
        endpoint = graph.endpoint("GET", "/x")
        policy = graph.policy("P_X")
        role = graph.role("R_X")
        graph.guard(endpoint, policy)
        graph.grant(role, policy, is_active=False)

        assert PolicyEngine(db_session).evaluate(["R_X"], endpoint.id) is False

    def test_inactive_role_ignored(self, billing_graph, graph, db_session):
        graph.deactivate(billing_graph["role"])

        assert PolicyEngine(db_session).evaluate(["R_FIN"], billing_graph["endpoint"].id) is False

    def test_inactive_endpoint_denied(self, billing_graph, graph, db_session):
        graph.deactivate(billing_graph["endpoint"])

        assert PolicyEngine(db_session).evaluate(["R_FIN"], billing_graph["endpoint"].id) is False

    def test_abac_policy_denied_by_default(self, graph, db_session):
        endpoint = graph.endpoint("GET", "/attr")
        policy = graph.policy("P_ATTR", type="ABAC")
        role = graph.role("R_ATTR")
        graph.guard(endpoint, policy)
        graph.grant(role, policy)

        assert PolicyEngine(db_session).evaluate(["R_ATTR"], endpoint.id) is False

    def test_unknown_endpoint_denied(self, billing_graph, db_session):
        assert PolicyEngine(db_session).evaluate(["R_FIN"], 9999) is False

    def test_error_fails_secure(self, billing_graph, db_session):
        engine = PolicyEngine(db_session)

        with patch.object(engine, "required_policy_ids", side_effect=RuntimeError("db down")):
            assert engine.evaluate(["R_FIN"], billing_graph["endpoint"].id) is False


@pytest.mark.unit
class TestPolicySets:
    def test_required_policy_ids(self, billing_graph, graph, db_session):
        extra = graph.policy("P_AUDIT")
        graph.guard(billing_graph["endpoint"], extra)

        required = PolicyEngine(db_session).required_policy_ids(billing_graph["endpoint"].id)

        assert required == {billing_graph["policy"].id, extra.id}

    def test_granted_policy_ids(self, billing_graph, graph, db_session):
        other = graph.policy("P_WRITE")
        graph.grant(billing_graph["role"], other)

        granted = PolicyEngine(db_session).granted_policy_ids(["R_FIN"])

        assert granted == {billing_graph["policy"].id, other.id}
