"""Tests for the reconciler state machine."""

from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor

import httpx
import pytest

from wpconverge import Action, State
from wpconverge.client.models import Site
from wpconverge.exceptions import (
    ConflictError,
    NotFoundError,
    ProtocolError,
    RequiresReplacementError,
    ServerError,
    TransportError,
    ValidationError,
)

ANN = {"first_name": "Ann", "last_name": "Lee", "email": "a@x.com"}
ANN_REMOTE = {"user_id": "42", **ANN}

SITE = {"account_id": "a-1", "name": "blog"}
SITE_REMOTE = {"id": "s-1", "account_id": "a-1", "name": "blog", "group_name": None}


def _body(route) -> dict:
    return json.loads(route.calls.last.request.content)


def _user_routes(mock_api):
    return {
        "create": mock_api.post("/users"),
        "read": mock_api.get("/users/42"),
        "update": mock_api.patch("/users/42"),
        "delete": mock_api.delete("/users/42"),
    }


# -- Create --------------------------------------------------------------------

class TestCreate:
    def test_create_binds_identifier(self, mock_api, reconciler, user_kind):
        routes = _user_routes(mock_api)
        routes["create"].mock(return_value=httpx.Response(201, json=ANN_REMOTE))

        result = reconciler.reconcile(user_kind, dict(ANN))

        assert result.ok
        assert result.action == Action.CREATE
        assert result.state == State.PRESENT
        assert result.remote_id == "42"
        assert result.observed == ANN_REMOTE
        assert _body(routes["create"]) == ANN
        assert routes["create"].call_count == 1
        assert not routes["update"].called
        assert not routes["delete"].called

    def test_numeric_identifier_is_stringified(self, mock_api, reconciler, user_kind):
        mock_api.post("/users").mock(
            return_value=httpx.Response(201, json={**ANN, "user_id": 42})
        )
        result = reconciler.reconcile(user_kind, dict(ANN))
        assert result.remote_id == "42"

    def test_validation_fails_before_remote_call(self, mock_api, reconciler, user_kind):
        result = reconciler.reconcile(user_kind, {"first_name": "Ann"})
        assert isinstance(result.error, ValidationError)
        assert result.state == State.ABSENT
        assert result.action == Action.NOOP
        assert mock_api.calls.call_count == 0

    def test_null_required_values_fail_validation(self, mock_api, reconciler, user_kind):
        create = mock_api.post("/users")
        result = reconciler.reconcile(
            user_kind, {"first_name": None, "last_name": None, "email": None}
        )
        assert isinstance(result.error, ValidationError)
        assert result.state == State.ABSENT
        assert not create.called

    def test_missing_identifier_is_protocol_error(self, mock_api, reconciler, user_kind):
        mock_api.post("/users").mock(return_value=httpx.Response(201, json=ANN))
        result = reconciler.reconcile(user_kind, dict(ANN))
        assert isinstance(result.error, ProtocolError)
        assert result.error.body == ANN
        assert result.state == State.ABSENT
        assert result.remote_id is None
        assert result.observed is None

    def test_create_failure_leaves_absent(self, mock_api, reconciler, user_kind):
        mock_api.post("/users").mock(
            return_value=httpx.Response(422, json={"message": "email taken"})
        )
        result = reconciler.reconcile(user_kind, dict(ANN))
        assert isinstance(result.error, ConflictError)
        assert result.error.kind == "user"
        assert result.state == State.ABSENT
        with pytest.raises(ConflictError):
            result.raise_on_error()

    def test_account_user_by_name(self, mock_api, reconciler):
        route = mock_api.post("/accounts/a-1/account_users").mock(
            return_value=httpx.Response(201, json=ANN_REMOTE)
        )
        result = reconciler.reconcile("account_user", {"account_id": "a-1", **ANN})
        assert result.remote_id == "42"
        assert _body(route) == ANN


# -- Present / Update ----------------------------------------------------------

class TestUpdate:
    def test_idempotent_when_observed_matches(self, mock_api, reconciler, user_kind):
        mock_api.post("/users").mock(return_value=httpx.Response(201, json=ANN_REMOTE))
        first = reconciler.reconcile(user_kind, dict(ANN))
        calls_after_create = mock_api.calls.call_count

        second = reconciler.reconcile(user_kind, dict(ANN), first.remote_id, first.observed)

        assert mock_api.calls.call_count == calls_after_create
        assert second.action == Action.NOOP
        assert second.observed is first.observed
        assert second.remote_id == "42"
        assert not second.changes

    def test_email_change_sends_only_email(self, mock_api, reconciler, user_kind):
        routes = _user_routes(mock_api)
        routes["update"].mock(
            return_value=httpx.Response(200, json={**ANN_REMOTE, "email": "ann@x.com"})
        )

        result = reconciler.reconcile(
            user_kind, {**ANN, "email": "ann@x.com"}, "42", dict(ANN_REMOTE)
        )

        assert result.action == Action.UPDATE
        assert result.changes.to_dict() == {"email": "ann@x.com"}
        assert _body(routes["update"]) == {"email": "ann@x.com"}
        assert result.observed["email"] == "ann@x.com"
        assert not routes["create"].called
        assert not routes["delete"].called

    def test_update_failure_keeps_stale_observed(self, mock_api, reconciler, user_kind):
        mock_api.patch("/users/42").mock(
            return_value=httpx.Response(409, json={"message": "locked"})
        )
        observed = dict(ANN_REMOTE)
        result = reconciler.reconcile(user_kind, {**ANN, "email": "ann@x.com"}, "42", observed)
        assert isinstance(result.error, ConflictError)
        assert result.error.remote_id == "42"
        assert result.state == State.PRESENT
        assert result.remote_id == "42"
        assert result.observed is observed

    def test_reads_before_diff_without_observed(self, mock_api, reconciler, user_kind):
        routes = _user_routes(mock_api)
        routes["read"].mock(return_value=httpx.Response(200, json=ANN_REMOTE))
        result = reconciler.reconcile(user_kind, dict(ANN), "42")
        assert routes["read"].call_count == 1
        assert result.action == Action.NOOP
        assert result.observed == ANN_REMOTE

    def test_read_failure_is_surfaced(self, mock_api, reconciler, user_kind):
        routes = _user_routes(mock_api)
        routes["read"].mock(side_effect=httpx.ConnectTimeout("slow"))
        result = reconciler.reconcile(user_kind, {**ANN, "email": "ann@x.com"}, "42")
        assert isinstance(result.error, TransportError)
        assert result.state == State.PRESENT
        assert not routes["update"].called


# -- Drift ---------------------------------------------------------------------

class TestDrift:
    def test_refresh_not_found_clears_identifier(self, mock_api, reconciler, user_kind):
        mock_api.get("/users/42").mock(return_value=httpx.Response(404, json={}))
        result = reconciler.refresh(user_kind, "42")
        assert result.ok
        assert result.drifted
        assert result.state == State.ABSENT
        assert result.remote_id is None

    def test_reconcile_after_drift_creates(self, mock_api, reconciler, user_kind):
        routes = _user_routes(mock_api)
        routes["read"].mock(return_value=httpx.Response(404, json={}))
        routes["create"].mock(return_value=httpx.Response(201, json={**ANN, "user_id": "43"}))

        refreshed = reconciler.refresh(user_kind, "42")
        result = reconciler.reconcile(user_kind, dict(ANN), refreshed.remote_id, refreshed.observed)

        assert result.action == Action.CREATE
        assert result.remote_id == "43"
        assert not routes["update"].called

    def test_reconcile_never_updates_unconfirmed_identifier(self, mock_api, reconciler, user_kind):
        routes = _user_routes(mock_api)
        routes["read"].mock(return_value=httpx.Response(404, json={}))
        result = reconciler.reconcile(user_kind, {**ANN, "email": "ann@x.com"}, "42")
        assert result.drifted
        assert result.state == State.ABSENT
        assert not routes["update"].called
        assert not routes["create"].called

    def test_update_not_found_clears_identifier(self, mock_api, reconciler, user_kind):
        routes = _user_routes(mock_api)
        routes["update"].mock(return_value=httpx.Response(404, json={"message": "Not found"}))

        result = reconciler.reconcile(
            user_kind, {**ANN, "email": "ann@x.com"}, "42", dict(ANN_REMOTE)
        )

        assert result.ok
        assert result.drifted
        assert result.action == Action.UPDATE
        assert result.state == State.ABSENT
        assert result.remote_id is None
        assert result.observed is None
        assert not routes["create"].called

    def test_reconcile_after_update_drift_creates(self, mock_api, reconciler, user_kind):
        routes = _user_routes(mock_api)
        routes["update"].mock(return_value=httpx.Response(404, json={}))
        routes["create"].mock(
            return_value=httpx.Response(201, json={**ANN, "email": "ann@x.com", "user_id": "43"})
        )
        desired = {**ANN, "email": "ann@x.com"}

        gone = reconciler.reconcile(user_kind, desired, "42", dict(ANN_REMOTE))
        result = reconciler.reconcile(user_kind, desired, gone.remote_id, gone.observed)

        assert result.action == Action.CREATE
        assert result.remote_id == "43"
        assert routes["update"].call_count == 1

    def test_refresh_picks_up_remote_changes(self, mock_api, reconciler, user_kind):
        mock_api.get("/users/42").mock(
            return_value=httpx.Response(200, json={**ANN_REMOTE, "last_name": "Smith"})
        )
        refreshed = reconciler.refresh(user_kind, "42")
        plan = reconciler.plan(user_kind, dict(ANN), refreshed.remote_id, refreshed.observed)
        assert plan.action == Action.UPDATE
        assert plan.changes.to_dict() == {"last_name": "Lee"}

    def test_refresh_other_errors_are_not_drift(self, mock_api, reconciler, user_kind):
        mock_api.get("/users/42").mock(return_value=httpx.Response(500, json={}))
        result = reconciler.refresh(user_kind, "42")
        assert isinstance(result.error, ServerError)
        assert not result.drifted
        assert result.remote_id == "42"


# -- Replacement ---------------------------------------------------------------

class TestReplacement:
    def test_immutable_change_is_surfaced(self, mock_api, reconciler):
        update = mock_api.patch("/sites/s-1")
        delete = mock_api.delete("/sites/s-1")
        create = mock_api.post("/sites")

        result = reconciler.reconcile("site", {**SITE, "account_id": "a-2"}, "s-1", dict(SITE_REMOTE))

        assert isinstance(result.error, RequiresReplacementError)
        assert result.error.attributes == ["account_id"]
        assert result.error.remote_id == "s-1"
        assert result.state == State.PRESENT
        assert not update.called
        assert not delete.called
        assert not create.called

    def test_allow_replace_deletes_then_creates(self, mock_api, reconciler):
        delete = mock_api.delete("/sites/s-1").mock(return_value=httpx.Response(204))
        create = mock_api.post("/sites").mock(
            return_value=httpx.Response(201, json={"id": "s-2", "account_id": "a-2", "name": "blog"})
        )

        result = reconciler.reconcile(
            "site", {**SITE, "account_id": "a-2"}, "s-1", dict(SITE_REMOTE), allow_replace=True
        )

        assert result.ok
        assert result.action == Action.REPLACE
        assert result.remote_id == "s-2"
        assert delete.call_count == 1
        assert create.call_count == 1

    def test_replace_delete_failure_stays_present(self, mock_api, reconciler):
        mock_api.delete("/sites/s-1").mock(return_value=httpx.Response(403, json={}))
        create = mock_api.post("/sites")
        result = reconciler.replace("site", "s-1", {**SITE, "account_id": "a-2"}, dict(SITE_REMOTE))
        assert result.error is not None
        assert result.state == State.PRESENT
        assert result.remote_id == "s-1"
        assert not create.called

    def test_replace_create_failure_leaves_absent(self, mock_api, reconciler):
        mock_api.delete("/sites/s-1").mock(return_value=httpx.Response(204))
        mock_api.post("/sites").mock(return_value=httpx.Response(502, json={}))
        result = reconciler.replace("site", "s-1", {**SITE, "account_id": "a-2"}, dict(SITE_REMOTE))
        assert isinstance(result.error, ServerError)
        assert result.state == State.ABSENT
        assert result.remote_id is None

    def test_replace_reads_first_without_observed(self, mock_api, reconciler):
        read = mock_api.get("/sites/s-1").mock(return_value=httpx.Response(404, json={}))
        delete = mock_api.delete("/sites/s-1")
        mock_api.post("/sites").mock(
            return_value=httpx.Response(201, json={"id": "s-2", **SITE})
        )
        result = reconciler.replace("site", "s-1", dict(SITE))
        assert read.called
        assert not delete.called
        assert result.action == Action.REPLACE
        assert result.remote_id == "s-2"


# -- Destroy -------------------------------------------------------------------

class TestDestroy:
    def test_destroy(self, mock_api, reconciler):
        mock_api.get("/sites/s-1").mock(return_value=httpx.Response(200, json=SITE_REMOTE))
        delete = mock_api.delete("/sites/s-1").mock(return_value=httpx.Response(204))
        result = reconciler.destroy("site", "s-1")
        assert result.ok
        assert result.action == Action.DELETE
        assert result.state == State.ABSENT
        assert delete.call_count == 1

    def test_destroy_already_absent(self, mock_api, reconciler):
        mock_api.delete("/sites/s-1").mock(return_value=httpx.Response(404, json={}))
        result = reconciler.destroy("site", "s-1", dict(SITE_REMOTE))
        assert result.ok
        assert result.state == State.ABSENT

    def test_destroy_confirms_by_read(self, mock_api, reconciler):
        mock_api.get("/sites/s-1").mock(return_value=httpx.Response(404, json={}))
        delete = mock_api.delete("/sites/s-1")
        result = reconciler.destroy("site", "s-1")
        assert result.ok
        assert result.drifted
        assert not delete.called

    def test_destroy_failure_stays_present(self, mock_api, reconciler):
        mock_api.delete("/sites/s-1").mock(return_value=httpx.Response(409, json={}))
        result = reconciler.destroy("site", "s-1", dict(SITE_REMOTE))
        assert isinstance(result.error, ConflictError)
        assert not isinstance(result.error, NotFoundError)
        assert result.state == State.PRESENT
        assert result.remote_id == "s-1"


# -- Plan ----------------------------------------------------------------------

class TestPlan:
    def test_plan_create(self, reconciler, user_kind):
        plan = reconciler.plan(user_kind, dict(ANN))
        assert plan.action == Action.CREATE
        assert plan.summary() == "create user"

    def test_plan_read(self, reconciler, user_kind):
        assert reconciler.plan(user_kind, dict(ANN), "42").action == Action.READ

    def test_plan_noop(self, reconciler, user_kind):
        plan = reconciler.plan(user_kind, dict(ANN), "42", dict(ANN_REMOTE))
        assert plan.action == Action.NOOP
        assert plan.summary() == "user 42 is up to date"

    def test_plan_replace(self, reconciler):
        plan = reconciler.plan("site", {**SITE, "account_id": "a-2"}, "s-1", dict(SITE_REMOTE))
        assert plan.action == Action.REPLACE
        assert plan.replace_attributes == ["account_id"]

    def test_plan_validation(self, reconciler):
        with pytest.raises(ValidationError):
            reconciler.plan("site", {"name": "blog"})


class TestResult:
    def test_as_model(self, mock_api, reconciler):
        mock_api.get("/sites/s-1").mock(
            return_value=httpx.Response(200, json={**SITE_REMOTE, "created_at": "2024-01-01"})
        )
        result = reconciler.refresh("site", "s-1")
        model = result.as_model()
        assert isinstance(model, Site)
        assert model.name == "blog"

    def test_as_model_without_model(self, mock_api, reconciler, user_kind):
        mock_api.get("/users/42").mock(return_value=httpx.Response(200, json=ANN_REMOTE))
        assert reconciler.refresh(user_kind, "42").as_model() is None


class TestConcurrency:
    def test_shared_client_across_threads(self, mock_api, reconciler):
        site_ids = [f"s-{n}" for n in range(1, 5)]
        routes = {}
        for site_id in site_ids:
            routes[site_id] = mock_api.patch(f"/sites/{site_id}").mock(
                return_value=httpx.Response(
                    200, json={"id": site_id, "account_id": "a-1", "name": f"blog-{site_id}"}
                )
            )

        def converge(site_id):
            observed = {"id": site_id, "account_id": "a-1", "name": "old"}
            return reconciler.reconcile(
                "site", {"account_id": "a-1", "name": f"blog-{site_id}"}, site_id, observed
            )

        with ThreadPoolExecutor(max_workers=4) as executor:
            results = list(executor.map(converge, site_ids))

        for site_id, result in zip(site_ids, results):
            assert result.ok
            assert result.action == Action.UPDATE
            assert result.remote_id == site_id
            assert result.observed["name"] == f"blog-{site_id}"
            assert routes[site_id].call_count == 1
            assert _body(routes[site_id]) == {"name": f"blog-{site_id}"}
