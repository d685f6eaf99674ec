"""
用户管理接口测试：创建用户时的分店约束与分店隔离
"""
from pms.models.ontology import UserRole
from pms.services.role_storage import RoleStorage


def _grant_users(db_session, user, write=True):
    storage = RoleStorage(db_session)
    role = storage.create_custom_role("User Admin", permissions=[
        {"module": "users", "permissions": {"read": True, "write": write, "delete": False}},
    ])
    storage.assign_roles_to_user(user.id, [role.id])


class TestCreateUser:

    def test_superadmin_creates_front_desk(self, client, superadmin_headers, branch):
        response = client.post("/api/users", headers=superadmin_headers, json={
            "email": "New.Desk@Hotel.test", "password": "secret123",
            "role": "front-desk", "branch_id": branch.id,
        })
        assert response.status_code == 201
        data = response.json()
        assert data["email"] == "new.desk@hotel.test"
        assert data["branch_id"] == branch.id
        assert data["custom_permissions"] is None

        login = client.post("/api/auth/login", json={"email": "new.desk@hotel.test", "password": "secret123"})
        assert login.status_code == 200

    def test_branch_required_for_non_superadmin(self, client, superadmin_headers):
        response = client.post("/api/users", headers=superadmin_headers, json={
            "email": "nobranch@hotel.test", "password": "secret123", "role": "custom",
        })
        assert response.status_code == 400
        assert "Branch is required" in response.json()["detail"]

    def test_unknown_branch(self, client, superadmin_headers):
        response = client.post("/api/users", headers=superadmin_headers, json={
            "email": "lost@hotel.test", "password": "secret123", "branch_id": 999,
        })
        assert response.status_code == 400

    def test_superadmin_without_branch(self, client, superadmin_headers):
        response = client.post("/api/users", headers=superadmin_headers, json={
            "email": "root2@hotel.test", "password": "secret123", "role": "superadmin",
        })
        assert response.status_code == 201
        assert response.json()["branch_id"] is None

    def test_duplicate_email(self, client, superadmin_headers, front_desk, branch):
        response = client.post("/api/users", headers=superadmin_headers, json={
            "email": front_desk.email, "password": "secret123", "branch_id": branch.id,
        })
        assert response.status_code == 400

    def test_short_password_is_validation_error(self, client, superadmin_headers, branch):
        response = client.post("/api/users", headers=superadmin_headers, json={
            "email": "weak@hotel.test", "password": "123", "branch_id": branch.id,
        })
        assert response.status_code == 422


class TestDelegatedUserAdmin:

    def test_custom_admin_creates_in_own_branch(self, client, db_session, custom_user, custom_headers, branch):
        _grant_users(db_session, custom_user)
        response = client.post("/api/users", headers=custom_headers, json={
            "email": "helper@hotel.test", "password": "secret123",
        })
        assert response.status_code == 201
        assert response.json()["branch_id"] == branch.id

    def test_custom_admin_cannot_target_other_branch(self, client, db_session, custom_user, custom_headers,
                                                     other_branch):
        _grant_users(db_session, custom_user)
        response = client.post("/api/users", headers=custom_headers, json={
            "email": "spy@hotel.test", "password": "secret123", "branch_id": other_branch.id,
        })
        assert response.status_code == 403

    def test_custom_admin_cannot_create_superadmin(self, client, db_session, custom_user, custom_headers):
        _grant_users(db_session, custom_user)
        response = client.post("/api/users", headers=custom_headers, json={
            "email": "boss@hotel.test", "password": "secret123", "role": "superadmin",
        })
        assert response.status_code == 403

    def test_read_only_grant_cannot_create(self, client, db_session, custom_user, custom_headers):
        _grant_users(db_session, custom_user, write=False)
        response = client.post("/api/users", headers=custom_headers, json={
            "email": "x@hotel.test", "password": "secret123",
        })
        assert response.status_code == 403
        assert response.json()["detail"] == "Missing permission: users:write"

    def test_branch_admin_denied(self, client, branch_admin_headers):
        assert client.get("/api/users", headers=branch_admin_headers).status_code == 403


class TestListUsers:

    def test_superadmin_sees_all_or_filters(self, client, superadmin, superadmin_headers, front_desk,
                                            user_factory, other_branch):
        remote = user_factory("remote@hotel.test", UserRole.FRONT_DESK, other_branch.id)
        emails = {u["email"] for u in client.get("/api/users", headers=superadmin_headers).json()}
        assert {superadmin.email, front_desk.email, remote.email} <= emails

        filtered = client.get(f"/api/users?branch_id={other_branch.id}", headers=superadmin_headers).json()
        assert [u["email"] for u in filtered] == [remote.email]

    def test_non_superadmin_scoped_to_own_branch(self, client, db_session, custom_user, custom_headers,
                                                 front_desk, user_factory, other_branch):
        _grant_users(db_session, custom_user, write=False)
        user_factory("remote@hotel.test", UserRole.FRONT_DESK, other_branch.id)
        response = client.get(f"/api/users?branch_id={other_branch.id}", headers=custom_headers)
        assert response.status_code == 200
        emails = {u["email"] for u in response.json()}
        assert emails == {custom_user.email, front_desk.email}
        custom = next(u for u in response.json() if u["email"] == custom_user.email)
        assert custom["custom_permissions"]["users"]["read"] is True
