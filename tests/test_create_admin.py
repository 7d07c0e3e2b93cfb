from app.core.security import UserRole, verify_password
from create_admin import create_or_reset_admin

class TestCreateAdmin:

    def test_creates_admin(self, db_session):
        user = create_or_reset_admin(db_session, " Boss@Example.com", "Admin123!", "Boss")
        assert user.email == "boss@example.com"
        assert user.role == UserRole.ADMIN

    def test_resets_existing_account(self, db_session, create_user):
        existing = create_user(UserRole.PATIENT, email="boss@example.com")

        user = create_or_reset_admin(db_session, "boss@example.com", "Another123", "Boss")
        assert user.id == existing.id
        assert user.role == UserRole.ADMIN
        assert verify_password("Another123", user.password_hash)

    def test_admin_can_log_in(self, client, db_session):
        create_or_reset_admin(db_session, "boss@example.com", "Admin123!", "Boss")

        response = client.post("/api/auth/login", json={"email": "boss@example.com", "password": "Admin123!"})
        assert response.status_code == 200
        assert response.json()["user"]["role"] == "admin"
