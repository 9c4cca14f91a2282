"""Tests for database models."""

from datetime import UTC, datetime

import pytest
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from epass.models import Attendee, Checkin, SystemSetting


def make_attendee(**overrides) -> Attendee:
    fields = {
        "registration_id": "UP25-MODEL001",
        "full_name": "Model Test",
        "phone": "9000000001",
        "email": "model@example.com",
        "city": "Agra",
        "state": "Uttar Pradesh",
    }
    fields.update(overrides)
    return Attendee(**fields)


class TestAttendeeModel:
    """Tests for the Attendee model."""

    def test_create_attendee(self, session: Session):
        """Test creating an attendee with defaults."""
        session.add(make_attendee())
        session.commit()

        retrieved = session.exec(
            select(Attendee).where(Attendee.registration_id == "UP25-MODEL001")
        ).first()

        assert retrieved is not None
        assert retrieved.status == "registered"
        assert retrieved.profile_url is None
        assert retrieved.created_at is not None
        assert retrieved.is_checked_in is False

    def test_unique_registration_id(self, session: Session):
        """Test that registration_id must be unique."""
        session.add(make_attendee())
        session.commit()

        session.add(make_attendee(phone="9000000002"))
        with pytest.raises(IntegrityError):
            session.commit()

    def test_unique_phone(self, session: Session):
        """Test that phone must be unique."""
        session.add(make_attendee())
        session.commit()

        session.add(make_attendee(registration_id="UP25-MODEL002"))
        with pytest.raises(IntegrityError):
            session.commit()

    def test_is_checked_in(self):
        """Test is_checked_in follows the status column."""
        assert make_attendee(status="checked_in").is_checked_in is True
        assert make_attendee(status="CHECKED_IN").is_checked_in is True
        assert make_attendee(status="epass_issued").is_checked_in is False


class TestCheckinModel:
    """Tests for the Checkin model."""

    def test_checkin_relationship(self, session: Session, sample_attendee: Attendee):
        """Test check-ins are linked to their attendee."""
        session.add(Checkin(attendee_id=sample_attendee.id, method="qr_scan"))
        session.commit()
        session.refresh(sample_attendee)

        assert len(sample_attendee.checkins) == 1
        assert sample_attendee.checkins[0].attendee.id == sample_attendee.id

    def test_no_unique_constraint_on_method(self, session: Session, sample_attendee: Attendee):
        """Test duplicate (attendee, method) rows are not blocked by the schema."""
        session.add(Checkin(attendee_id=sample_attendee.id, method="qr_scan"))
        session.add(Checkin(attendee_id=sample_attendee.id, method="qr_scan"))
        session.commit()

        rows = session.exec(
            select(Checkin).where(Checkin.attendee_id == sample_attendee.id)
        ).all()
        assert len(rows) == 2

    def test_delete_attendee_cascades(self, session: Session, sample_attendee: Attendee):
        """Test deleting an attendee removes their check-ins."""
        session.add(Checkin(attendee_id=sample_attendee.id, method="qr_scan"))
        session.commit()
        session.refresh(sample_attendee)

        session.delete(sample_attendee)
        session.commit()

        assert session.exec(select(Checkin)).all() == []


class TestSystemSettingModel:
    """Tests for the SystemSetting model."""

    def test_seeded_settings(self, session: Session):
        """Test the schema step seeds both switches."""
        values = {s.key: s.value for s in session.exec(select(SystemSetting)).all()}
        assert values == {"registration_open": "true", "maintenance_mode": "false"}

    def test_update_setting(self, session: Session):
        """Test a setting value can be changed."""
        setting = session.get(SystemSetting, "maintenance_mode")
        setting.value = "true"
        setting.updated_at = datetime.now(UTC)
        session.add(setting)
        session.commit()

        assert session.get(SystemSetting, "maintenance_mode").value == "true"
