"""Tests for the authorization gate and role/permission gated endpoints."""

from repairdesk.core.rbac import (
    ALL_PERMISSIONS,
    ROLE_LABELS,
    UserRole,
    authorize,
    expand_permissions,
    permission_name,
)
from repairdesk.core.security import issue_access_token
from repairdesk.services.permissions import permissions_for_role, sync_role_permissions

API = "/api/v1"


# ============== Pure gate ==============

class TestAuthorize:
    def test_role_membership(self):
        assert authorize({UserRole.ADMIN}, UserRole.ADMIN)
        assert not authorize({UserRole.USER}, UserRole.ADMIN)
        assert not authorize(set(), UserRole.USER)

    def test_admin_holds_every_permission(self):
        assert authorize({UserRole.ADMIN}, ["delete repair_requests"])
        assert authorize({UserRole.ADMIN}, ["create categories"])

    def test_user_and_employee_hold_none(self):
        assert not authorize({UserRole.USER}, ["read articles"])
        assert not authorize({UserRole.EMPLOYEE}, ["read articles"])

    def test_any_of_required_permissions_suffices(self):
        assert authorize({UserRole.USER}, ["create categories", "read articles"], permissions={"read articles"})

    def test_explicit_permissions_override_expansion(self):
        assert not authorize({UserRole.ADMIN}, ["create categories"], permissions=set())

    def test_single_permission_string(self):
        assert authorize({UserRole.ADMIN}, "update users")

    def test_roles_given_as_strings(self):
        assert authorize(["admin"], UserRole.ADMIN)


class TestPermissionCatalog:
    def test_names(self):
        assert permission_name("create", "categories") == "create categories"
        assert len(ALL_PERMISSIONS) == 7 * 4

    def test_expansion(self):
        assert expand_permissions([UserRole.ADMIN]) == ALL_PERMISSIONS
        assert expand_permissions([UserRole.USER]) == frozenset()

    def test_labels_for_every_role(self):
        assert set(ROLE_LABELS) == set(UserRole)

    def test_sync_is_idempotent(self, db_session):
        # conftest already synced once
        assert sync_role_permissions(db_session) == 0
        assert permissions_for_role(db_session, UserRole.ADMIN) == ALL_PERMISSIONS
        assert permissions_for_role(db_session, UserRole.USER) == frozenset()


# ============== Endpoint gating ==============

class TestAdminOnlyEndpoints:
    def test_user_role_gets_403(self, client, auth_headers):
        response = client.get(f"{API}/repair-request", headers=auth_headers)
        assert response.status_code == 403
        body = response.json()
        assert body["status"] == 403
        assert body["errors"] == {}

    def test_missing_token_gets_401(self, client):
        response = client.get(f"{API}/repair-request")
        assert response.status_code == 401
        assert response.headers.get("www-authenticate") == "Bearer"

    def test_admin_allowed(self, client, admin_headers):
        response = client.get(f"{API}/repair-request", headers=admin_headers)
        assert response.status_code == 200

    def test_garbage_token_gets_401(self, client):
        response = client.get(f"{API}/repair-request", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_non_bearer_scheme_gets_401(self, client):
        response = client.get(f"{API}/user/profile", headers={"Authorization": "Basic abc"})
        assert response.status_code == 401

    def test_deleted_user_token_gets_401(self, client, db_session, test_user, auth_headers):
        test_user.soft_delete()
        db_session.commit()
        response = client.get(f"{API}/user/profile", headers=auth_headers)
        assert response.status_code == 401

    def test_token_for_unknown_user_gets_401(self, client):
        token = issue_access_token(9999).token
        response = client.get(f"{API}/user/profile", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401


class TestPermissionGatedEndpoints:
    def test_user_cannot_create_category(self, client, auth_headers):
        response = client.post(f"{API}/category", json={"name": "Phones"}, headers=auth_headers)
        assert response.status_code == 403
        assert response.json()["message"] == "User does not have the right permissions."

    def test_admin_can_create_category(self, client, admin_headers):
        response = client.post(f"{API}/category", json={"name": "Phones"}, headers=admin_headers)
        assert response.status_code == 201
