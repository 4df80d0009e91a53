"""Unit tests for expiry analysis, authenticity and compliance checks"""

from datetime import date, timedelta

import pytest

from docintake.domain.validation.authenticity import (
    check_authenticity,
    check_signature,
    compute_sha256,
    score_authenticity,
)
from docintake.domain.validation.compliance import check_compliance, normalize_document_type
from docintake.domain.validation.expiry import analyze_expiry, issue_date_warnings
from docintake.models import ExpiryStatus

TODAY = date(2025, 1, 1)
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class TestExpiryAnalysis:
    def test_unknown_without_date(self):
        """Test a missing expiry date is unknown"""
        result = analyze_expiry(None, today=TODAY)
        assert result.status == ExpiryStatus.UNKNOWN
        assert result.days_until_expiry is None

    def test_expired_yesterday(self):
        """Test a date in the past is expired"""
        result = analyze_expiry(TODAY - timedelta(days=1), today=TODAY)
        assert result.status == ExpiryStatus.EXPIRED
        assert result.days_until_expiry == -1

    def test_expires_today_is_expiring_soon(self):
        """Test the expiry day itself is not yet expired"""
        assert analyze_expiry(TODAY, today=TODAY).status == ExpiryStatus.EXPIRING_SOON

    def test_horizon_is_inclusive(self):
        """Test the horizon boundary counts as expiring soon"""
        assert analyze_expiry(TODAY + timedelta(days=90), today=TODAY).status == ExpiryStatus.EXPIRING_SOON
        assert analyze_expiry(TODAY + timedelta(days=91), today=TODAY).status == ExpiryStatus.VALID

    def test_custom_horizon(self):
        """Test the org horizon replaces the default"""
        result = analyze_expiry(TODAY + timedelta(days=45), today=TODAY, horizon_days=30)
        assert result.status == ExpiryStatus.VALID

    def test_issue_date_warnings(self):
        """Test future and post-expiry issue dates are warned about"""
        assert issue_date_warnings(TODAY + timedelta(days=3), None, TODAY) == ["issue_date_in_future"]
        assert issue_date_warnings(date(2024, 5, 1), date(2024, 1, 1), TODAY) == ["issue_date_after_expiry"]
        assert issue_date_warnings(date(2020, 1, 1), date(2030, 1, 1), TODAY) == []
        assert issue_date_warnings(None, date(2030, 1, 1), TODAY) == []


class TestSignatures:
    def test_known_signatures(self):
        """Test magic bytes of supported types"""
        assert check_signature(b"%PDF-1.7 ...", "application/pdf") is True
        assert check_signature(PNG_BYTES, "image/png") is True
        assert check_signature(b"\xff\xd8\xff\xe0rest", "image/jpeg") is True
        assert check_signature(b"RIFF\x00\x00\x00\x00WEBPVP8 ", "image/webp") is True

    def test_mismatch(self):
        """Test bytes that do not fit the declared type"""
        assert check_signature(PNG_BYTES, "application/pdf") is False

    def test_unknown_type(self):
        """Test types without a signature are undecided"""
        assert check_signature(b"hello", "text/plain") is None


class TestAuthenticityScore:
    def test_empty_file(self):
        """Test empty content scores zero"""
        assert score_authenticity(b"", "application/pdf") == (0.0, None, True)

    def test_pdf_and_image_scores(self):
        """Test valid PDFs and images score above the base"""
        assert score_authenticity(b"%PDF-1.4", "application/pdf")[0] == pytest.approx(0.9)
        assert score_authenticity(PNG_BYTES, "image/png")[0] == pytest.approx(0.85)

    def test_signature_mismatch_score(self):
        """Test a mismatch scores 0.3"""
        assert score_authenticity(PNG_BYTES, "application/pdf") == (0.3, False, False)

    def test_unknown_type_base_score(self):
        """Test types without a signature get the base score"""
        assert score_authenticity(b"plain text", "text/plain")[0] == pytest.approx(0.7)

    def test_declared_mime_type_is_checked_not_extension(self, db_session, make_document):
        """Test the magic bytes are compared with the declared MIME type, whatever the file name says"""
        content = b"%PDF-1.4 renamed"
        renamed = make_document(content=content, file_name="scan.png", mime_type="application/pdf")
        mislabeled = make_document(content=PNG_BYTES, file_name="scan.pdf", mime_type="application/pdf")

        assert check_authenticity(db_session, renamed, content).signature_valid is True
        result = check_authenticity(db_session, mislabeled, PNG_BYTES)
        assert result.signature_valid is False
        assert result.structural_failure is True

    def test_duplicates_found_by_hash(self, db_session, make_document, memory_storage):
        """Test another document with the same bytes is reported as duplicate"""
        first = make_document()
        second = make_document()

        result = check_authenticity(db_session, second, memory_storage.download_file(second.storage_path))

        assert result.is_duplicate is True
        assert result.duplicate_of_ids == [first.id]
        assert result.sha256 == second.sha256

    def test_unique_document_is_not_duplicate(self, db_session, make_document):
        """Test a single document has no duplicates"""
        content = b"%PDF-1.4 unique"
        document = make_document(content=content)

        result = check_authenticity(db_session, document, content)

        assert result.is_duplicate is False
        assert result.sha256 == compute_sha256(content)


class TestCompliance:
    def test_normalize_document_type(self):
        """Test underscores, apostrophes and case are normalized"""
        assert normalize_document_type("Driver's_License") == "drivers license"

    def test_exact_match(self):
        """Test identical types after normalization score 1.0"""
        result = check_compliance("drivers_license", "Driver's License")
        assert result.score == 1.0
        assert result.matches is True

    def test_synonym_match(self):
        """Test synonyms score 0.9"""
        assert check_compliance("id_card", "National ID").score == pytest.approx(0.9)
        assert check_compliance("passport", "travel document").score == pytest.approx(0.9)

    def test_mismatch(self):
        """Test a different type scores zero"""
        result = check_compliance("visa", "passport")
        assert result.score == 0.0
        assert result.matches is False

    def test_no_requested_type(self):
        """Test documents without a requested type are compliant"""
        result = check_compliance("visa", None)
        assert result.score == 1.0
        assert result.matches is True
