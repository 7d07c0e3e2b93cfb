from datetime import datetime

import pytest

from app.core.security import UserRole
from app.models import Appointment, AppointmentStatus

@pytest.fixture
def admin(create_user):
    return create_user(UserRole.ADMIN, full_name="Site Admin")

@pytest.fixture
def admin_headers(admin, auth_headers):
    return auth_headers(admin)

class TestAdminAccess:

    @pytest.mark.parametrize("role", [UserRole.PATIENT, UserRole.DOCTOR])
    def test_non_admin_forbidden(self, client, create_user, auth_headers, role):
        headers = auth_headers(create_user(role))
        assert client.get("/api/admin/stats", headers=headers).status_code == 403
        assert client.get("/api/admin/users", headers=headers).status_code == 403

    def test_anonymous_rejected(self, client):
        assert client.get("/api/admin/stats").status_code == 401

class TestAdminStats:

    def test_stats(self, client, create_user, db_session, admin_headers):
        doctor = create_user(UserRole.DOCTOR)
        patient = create_user(UserRole.PATIENT)
        create_user(UserRole.PATIENT)

        today_noon = datetime.utcnow().replace(hour=12, minute=0, second=0, microsecond=0)
        db_session.add_all([
            Appointment(patient_id=patient.id, doctor_id=doctor.id,
                        appointment_date=today_noon, duration=30,
                        status=AppointmentStatus.CONFIRMED),
            Appointment(patient_id=patient.id, doctor_id=doctor.id,
                        appointment_date=datetime(2040, 1, 1, 9, 0), duration=30,
                        status=AppointmentStatus.PENDING),
            Appointment(patient_id=patient.id, doctor_id=doctor.id,
                        appointment_date=datetime(2040, 1, 2, 9, 0), duration=30,
                        status=AppointmentStatus.CANCELLED),
        ])
        db_session.commit()

        response = client.get("/api/admin/stats", headers=admin_headers)
        assert response.status_code == 200

        stats = response.json()["stats"]
        assert stats["users"] == {
            "total_users": 4,
            "total_patients": 2,
            "total_doctors": 1,
            "total_admins": 1
        }
        assert stats["appointments"] == {
            "total_appointments": 3,
            "pending": 1,
            "confirmed": 1,
            "completed": 0,
            "cancelled": 1
        }
        assert stats["today"] == 1
        assert stats["week"] == 1

class TestAdminUsers:

    def test_create_user_with_any_role(self, client, admin_headers):
        response = client.post("/api/admin/users", json={
            "email": "second.admin@example.com",
            "password": "Password123",
            "full_name": "Second Admin",
            "role": "admin"
        }, headers=admin_headers)
        assert response.status_code == 201
        assert response.json()["user"]["role"] == "admin"

    def test_create_user_duplicate_email(self, client, admin, admin_headers):
        response = client.post("/api/admin/users", json={
            "email": admin.email,
            "password": "Password123",
            "full_name": "Copy",
            "role": "patient"
        }, headers=admin_headers)
        assert response.status_code == 400

    def test_create_user_blank_name(self, client, admin_headers):
        response = client.post("/api/admin/users", json={
            "email": "blank@example.com",
            "password": "Password123",
            "full_name": "    ",
            "role": "patient"
        }, headers=admin_headers)
        assert response.status_code == 400

    def test_create_user_name_is_stripped(self, client, admin_headers):
        response = client.post("/api/admin/users", json={
            "email": "padded@example.com",
            "password": "Password123",
            "full_name": "  Padded Name ",
            "role": "patient"
        }, headers=admin_headers)
        assert response.status_code == 201
        assert response.json()["user"]["full_name"] == "Padded Name"

    def test_create_user_invalid_role(self, client, admin_headers):
        response = client.post("/api/admin/users", json={
            "email": "x@example.com",
            "password": "Password123",
            "full_name": "Someone",
            "role": "nurse"
        }, headers=admin_headers)
        assert response.status_code == 400

    def test_created_doctor_is_bookable(self, client, create_user, auth_headers, admin_headers):
        response = client.post("/api/admin/users", json={
            "email": "new.doc@example.com",
            "password": "Password123",
            "full_name": "New Doc",
            "role": "doctor"
        }, headers=admin_headers)
        doctor_id = response.json()["user"]["id"]

        patient_headers = auth_headers(create_user(UserRole.PATIENT))
        doctors = client.get("/api/users/doctors", headers=patient_headers).json()["doctors"]
        assert doctor_id in [d["id"] for d in doctors]

    def test_list_users_filters(self, client, create_user, admin_headers):
        create_user(UserRole.DOCTOR, full_name="Gregory House", email="house@example.com")
        create_user(UserRole.PATIENT, full_name="Lisa Cuddy")

        response = client.get("/api/admin/users", params={"role": "doctor"}, headers=admin_headers)
        assert [u["full_name"] for u in response.json()["users"]] == ["Gregory House"]

        response = client.get("/api/admin/users", params={"search": "CUDDY"}, headers=admin_headers)
        assert [u["full_name"] for u in response.json()["users"]] == ["Lisa Cuddy"]

        response = client.get("/api/admin/users", params={"search": "house@"}, headers=admin_headers)
        assert len(response.json()["users"]) == 1

        response = client.get("/api/admin/users", headers=admin_headers)
        assert len(response.json()["users"]) == 3

    def test_update_user(self, client, create_user, admin_headers):
        user = create_user(UserRole.PATIENT)

        response = client.put(
            f"/api/admin/users/{user.id}",
            json={"full_name": "Promoted", "role": "doctor"},
            headers=admin_headers
        )
        assert response.status_code == 200
        data = response.json()["user"]
        assert data["full_name"] == "Promoted"
        assert data["role"] == "doctor"

    def test_admin_cannot_change_own_role(self, client, admin, admin_headers):
        response = client.put(
            f"/api/admin/users/{admin.id}",
            json={"role": "patient"},
            headers=admin_headers
        )
        assert response.status_code == 400

    def test_update_missing_user(self, client, admin_headers):
        response = client.put("/api/admin/users/999", json={"full_name": "Ghost"}, headers=admin_headers)
        assert response.status_code == 404

    def test_deactivate_user(self, client, create_user, auth_headers, admin_headers):
        user = create_user(UserRole.PATIENT)
        user_headers = auth_headers(user)

        response = client.patch(
            f"/api/admin/users/{user.id}/status",
            json={"is_active": False},
            headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["user"]["is_active"] is False

        assert client.get("/api/users/profile", headers=user_headers).status_code == 401

    def test_delete_user_removes_appointments(self, client, create_user, auth_headers, admin_headers):
        doctor = create_user(UserRole.DOCTOR)
        patient = create_user(UserRole.PATIENT)
        client.post(
            "/api/appointments",
            json={"doctor_id": doctor.id, "appointment_date": "2030-01-15T10:00:00"},
            headers=auth_headers(patient)
        )

        response = client.delete(f"/api/admin/users/{patient.id}", headers=admin_headers)
        assert response.status_code == 200

        appointments = client.get("/api/admin/appointments", headers=admin_headers).json()["appointments"]
        assert appointments == []

    def test_admin_cannot_delete_self(self, client, admin, admin_headers):
        response = client.delete(f"/api/admin/users/{admin.id}", headers=admin_headers)
        assert response.status_code == 400

    def test_reset_password(self, client, create_user, admin_headers):
        user = create_user(UserRole.PATIENT)

        response = client.post(
            f"/api/admin/users/{user.id}/reset-password",
            json={"new_password": "Reset12345"},
            headers=admin_headers
        )
        assert response.status_code == 200

        response = client.post("/api/auth/login", json={"email": user.email, "password": "Reset12345"})
        assert response.status_code == 200

class TestAdminAppointments:

    def test_filters(self, client, create_user, auth_headers, admin_headers):
        doctor = create_user(UserRole.DOCTOR)
        other_doctor = create_user(UserRole.DOCTOR)
        patient = create_user(UserRole.PATIENT)
        headers = auth_headers(patient)

        for doctor_id, start in [
            (doctor.id, "2030-01-15T10:00:00"),
            (doctor.id, "2030-02-15T10:00:00"),
            (other_doctor.id, "2030-03-15T10:00:00"),
        ]:
            client.post(
                "/api/appointments",
                json={"doctor_id": doctor_id, "appointment_date": start},
                headers=headers
            )

        def search(**params):
            response = client.get("/api/admin/appointments", params=params, headers=admin_headers)
            assert response.status_code == 200
            return response.json()["appointments"]

        assert len(search()) == 3
        assert len(search(doctor_id=doctor.id)) == 2
        assert len(search(patient_id=patient.id)) == 3
        assert len(search(status="pending")) == 3
        assert len(search(status="cancelled")) == 0
        assert len(search(date_from="2030-02-01T00:00:00", date_to="2030-02-28T00:00:00")) == 1
