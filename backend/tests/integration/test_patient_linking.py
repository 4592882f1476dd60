"""
Integration tests for linking LINE accounts to patient numbers.

Covers self-registration, verification on link, the one-patient-per-LINE
account rule, and concurrent link attempts for the same patient number.
"""

import pytest
from fastapi import HTTPException

from core.database import SessionLocal
from models import Patient
from services.patient_service import (
    ALREADY_LINKED_MESSAGE,
    IDENTITY_IN_USE_MESSAGE,
    PatientService,
)
from services.patient_verification import (
    IDENTITY_MISMATCH_MESSAGE,
    BirthDateVerifier,
    NameVerifier,
)
from tests.helpers import make_patient_session


class TestSelfRegistration:
    """Unknown patient numbers are created on first link."""

    def test_register_new_patient(self, db_session):
        session = make_patient_session("U-new", subject_id="s-new")

        patient = PatientService.link_patient(
            db_session, session, "５００１", "佐藤 一郎", verifier=NameVerifier()
        )

        assert patient.patient_id == "5001"
        assert patient.name == "佐藤 一郎"
        assert patient.line_user_id == "U-new"
        assert patient.owner_subject_id == "s-new"
        assert patient.created_by_type == "patient"
        assert patient.linked_at is not None

    def test_register_with_birth_date(self, db_session):
        session = make_patient_session("U-new")

        patient = PatientService.link_patient(
            db_session, session, "5002", "佐藤 二郎", birth_date="1985/12/03", verifier=BirthDateVerifier()
        )

        assert patient.birth_date == "1985-12-03"

    def test_invalid_name_rejected(self, db_session):
        with pytest.raises(ValueError):
            PatientService.link_patient(db_session, make_patient_session("U1"), "5003", "  ")


class TestLinkExistingPatient:
    """Linking staff-imported records."""

    def test_link_with_matching_name(self, db_session, imported_patient):
        patient = PatientService.link_patient(
            db_session, make_patient_session("U-yamada"), "1001", "山田太郎", verifier=NameVerifier()
        )

        assert patient.line_user_id == "U-yamada"
        # Name verification keeps the stored spelling
        assert patient.name == "山田 太郎"
        assert patient.created_by_type == "staff"

    def test_link_with_wrong_name(self, db_session, imported_patient):
        with pytest.raises(HTTPException) as exc_info:
            PatientService.link_patient(
                db_session, make_patient_session("U-x"), "1001", "山田 花子", verifier=NameVerifier()
            )

        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == IDENTITY_MISMATCH_MESSAGE
        db_session.expire_all()
        assert db_session.get(Patient, "1001").line_user_id is None

    def test_birth_date_link_takes_typed_name(self, db_session):
        db_session.add(Patient(patient_id="2001", name="スズキ", birth_date="1990-04-01", created_by_type="staff"))
        db_session.commit()

        patient = PatientService.link_patient(
            db_session, make_patient_session("U-suzuki"), "2001", "鈴木 花子",
            birth_date="19900401", verifier=BirthDateVerifier(),
        )

        assert patient.name == "鈴木 花子"
        assert patient.line_user_id == "U-suzuki"

    def test_relink_same_account_is_idempotent(self, db_session, imported_patient):
        session = make_patient_session("U-yamada")
        PatientService.link_patient(db_session, session, "1001", "山田 太郎", verifier=NameVerifier())

        patient = PatientService.link_patient(db_session, session, "1001", "山田 太郎", verifier=NameVerifier())

        assert patient.line_user_id == "U-yamada"

    def test_patient_linked_to_other_account(self, db_session, imported_patient):
        PatientService.link_patient(
            db_session, make_patient_session("U-first"), "1001", "山田 太郎", verifier=NameVerifier()
        )

        with pytest.raises(HTTPException) as exc_info:
            PatientService.link_patient(
                db_session, make_patient_session("U-second"), "1001", "山田 太郎", verifier=NameVerifier()
            )

        assert exc_info.value.status_code == 409
        assert exc_info.value.detail == ALREADY_LINKED_MESSAGE

    def test_account_already_linked_to_other_patient(self, db_session, imported_patient):
        """Test a LINE account holds at most one patient number."""
        session = make_patient_session("U-yamada")
        PatientService.link_patient(db_session, session, "1001", "山田 太郎", verifier=NameVerifier())

        with pytest.raises(HTTPException) as exc_info:
            PatientService.link_patient(db_session, session, "7777", "山田 太郎", verifier=NameVerifier())

        assert exc_info.value.status_code == 409
        assert exc_info.value.detail == IDENTITY_IN_USE_MESSAGE
        assert db_session.get(Patient, "7777") is None

    def test_session_without_line_user_id(self, db_session, imported_patient):
        session = make_patient_session("U1")
        session.line_user_id = None

        with pytest.raises(HTTPException) as exc_info:
            PatientService.link_patient(db_session, session, "1001", "山田 太郎")
        assert exc_info.value.status_code == 403


class TestConcurrentLinking:
    """Two link attempts for the same patient number; exactly one may win."""

    def test_claim_race_second_claimer_gets_conflict(self, db_session, imported_patient, monkeypatch):
        """Another account links the patient between our read and our update."""
        original_check = NameVerifier.check
        raced = {"done": False}

        def check_then_lose_race(self, patient, name, birth_date):
            original_check(self, patient, name, birth_date)
            if raced["done"]:
                return
            raced["done"] = True
            with SessionLocal() as other:
                PatientService.link_patient(
                    other, make_patient_session("U-winner"), patient.patient_id, name, verifier=NameVerifier()
                )

        monkeypatch.setattr(NameVerifier, "check", check_then_lose_race)

        with pytest.raises(HTTPException) as exc_info:
            PatientService.link_patient(
                db_session, make_patient_session("U-loser"), "1001", "山田 太郎", verifier=NameVerifier()
            )

        assert exc_info.value.status_code == 409
        assert exc_info.value.detail == ALREADY_LINKED_MESSAGE
        db_session.expire_all()
        assert db_session.get(Patient, "1001").line_user_id == "U-winner"

    def test_registration_race_falls_back_to_link(self, db_session, monkeypatch):
        """The patient number is created by someone else after we saw it missing."""
        with SessionLocal() as other:
            other.add(Patient(patient_id="6001", name="高橋 三郎", created_by_type="staff"))
            other.commit()

        real_get = db_session.get
        calls = {"count": 0}

        def stale_get(entity, ident, *args, **kwargs):
            calls["count"] += 1
            if entity is Patient and calls["count"] == 1:
                return None
            return real_get(entity, ident, *args, **kwargs)

        monkeypatch.setattr(db_session, "get", stale_get)

        patient = PatientService.link_patient(
            db_session, make_patient_session("U-takahashi"), "6001", "高橋 三郎", verifier=NameVerifier()
        )

        assert patient.line_user_id == "U-takahashi"
        assert patient.created_by_type == "staff"

    def test_registration_race_against_linked_record(self, db_session, monkeypatch):
        with SessionLocal() as other:
            PatientService.link_patient(
                other, make_patient_session("U-winner"), "6002", "高橋 四郎", verifier=NameVerifier()
            )

        real_get = db_session.get
        calls = {"count": 0}

        def stale_get(entity, ident, *args, **kwargs):
            calls["count"] += 1
            if entity is Patient and calls["count"] == 1:
                return None
            return real_get(entity, ident, *args, **kwargs)

        monkeypatch.setattr(db_session, "get", stale_get)

        with pytest.raises(HTTPException) as exc_info:
            PatientService.link_patient(
                db_session, make_patient_session("U-loser"), "6002", "高橋 四郎", verifier=NameVerifier()
            )

        assert exc_info.value.status_code == 409
        assert exc_info.value.detail == ALREADY_LINKED_MESSAGE
