"""
Tests for patient identity verification strategies.
"""

import pytest
from fastapi import HTTPException

from models import Patient
from services.patient_verification import (
    BIRTH_DATE_MISMATCH_MESSAGE,
    IDENTITY_MISMATCH_MESSAGE,
    BirthDateVerifier,
    NameVerifier,
    get_patient_verifier,
)


class TestNameVerifier:
    """Patient number + name."""

    def test_match_ignores_spacing(self, db_session, imported_patient):
        patient = NameVerifier().verify(db_session, "1001", name="山田　太郎")
        assert patient is not None
        assert patient.patient_id == "1001"

    def test_name_mismatch(self, db_session, imported_patient):
        with pytest.raises(HTTPException) as exc_info:
            NameVerifier().verify(db_session, "1001", name="山田 次郎")

        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == IDENTITY_MISMATCH_MESSAGE

    def test_unknown_number_indistinguishable_from_mismatch(self, db_session, imported_patient):
        """Test a missing record gives the same error as a wrong name."""
        with pytest.raises(HTTPException) as exc_info:
            NameVerifier().verify(db_session, "9999", name="山田 太郎")

        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == IDENTITY_MISMATCH_MESSAGE


class TestBirthDateVerifier:
    """Patient number + birth date."""

    @pytest.fixture
    def patient_with_birth_date(self, db_session):
        patient = Patient(patient_id="2001", name="鈴木 花子", birth_date="1990-04-01", created_by_type="staff")
        db_session.add(patient)
        db_session.commit()
        return patient

    @pytest.mark.parametrize("claimed", ["1990-04-01", "1990/04/01", "19900401"])
    def test_match_on_digits(self, db_session, patient_with_birth_date, claimed):
        patient = BirthDateVerifier().verify(db_session, "2001", birth_date=claimed)
        assert patient is not None

    def test_mismatch(self, db_session, patient_with_birth_date):
        with pytest.raises(HTTPException) as exc_info:
            BirthDateVerifier().verify(db_session, "2001", birth_date="1990-04-02")

        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == BIRTH_DATE_MISMATCH_MESSAGE

    def test_unknown_number_is_not_found(self, db_session):
        """Test a missing record continues to self-registration."""
        assert BirthDateVerifier().verify(db_session, "9999", birth_date="1990-04-01") is None

    def test_record_without_birth_date_fails(self, db_session, imported_patient):
        with pytest.raises(HTTPException) as exc_info:
            BirthDateVerifier().verify(db_session, "1001", birth_date="1990-04-01")
        assert exc_info.value.status_code == 400


class TestGetPatientVerifier:
    def test_known_strategies(self):
        assert isinstance(get_patient_verifier("name"), NameVerifier)
        assert isinstance(get_patient_verifier("birth_date"), BirthDateVerifier)

    def test_default_strategy(self):
        assert get_patient_verifier().strategy in ("name", "birth_date")

    def test_unknown_strategy(self):
        with pytest.raises(ValueError):
            get_patient_verifier("fingerprint")
