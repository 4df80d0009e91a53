"""Unit tests for worker payload handling and tenant validation"""

import base64

import pytest

from docintake.workers.base import validate_org_id
from docintake.workers.intake_worker import message_from_payload


class TestMessageFromPayload:
    def test_full_payload(self):
        """Test a serialized message is rebuilt with decoded attachments"""
        message = message_from_payload({
            "from_address": "jane.doe@acme.com",
            "from_name": "Jane Doe",
            "to": ["hr@acme.com"],
            "subject": "Re: Passport copy",
            "received_at": "2025-03-01T08:30:00",
            "message_id": "<m1@acme.com>",
            "attachments": [
                {"filename": "passport.pdf", "content_b64": base64.b64encode(b"%PDF-1.4").decode(), "mime_type": "application/pdf"},
            ],
        })

        assert message.from_address == "jane.doe@acme.com"
        assert message.to == ["hr@acme.com"]
        assert message.received_at.day == 1
        assert message.attachments[0].content == b"%PDF-1.4"
        assert message.attachments[0].mime_type == "application/pdf"

    def test_minimal_payload(self):
        """Test optional fields default sensibly"""
        message = message_from_payload({
            "from_address": "jane.doe@acme.com",
            "attachments": [{"filename": "scan.bin", "content_b64": ""}],
        })

        assert message.subject == ""
        assert message.received_at is None
        assert message.attachments[0].mime_type == "application/octet-stream"


class TestValidateOrgId:
    def test_malformed_org_id(self):
        """Test a non-UUID org_id is rejected before any lookup"""
        with pytest.raises(ValueError, match="Invalid org_id format"):
            validate_org_id("acme")
