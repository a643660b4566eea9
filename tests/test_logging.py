import logging
import pytest

from quota_drugs.core.utils import LoggerMixin, render_event


class _Auditor(LoggerMixin):
    pass


@pytest.mark.unit
class TestRenderEvent:
    def test_event_name_first(self):
        line = render_event({"event": "enrollment_created", "drug_id": "d1", "active": True})

        assert line == "enrollment_created drug_id=d1 active=True"

    def test_plain_string(self):
        assert render_event("startup") == "startup"

    def test_audit_prefix(self, caplog):
        with caplog.at_level(logging.WARNING, logger="quota_drugs"):
            _Auditor().log_audit_event({"event": "drug_deleted", "drug_id": "d1"})

        assert caplog.records[0].name == "quota_drugs._Auditor"
        assert caplog.records[0].getMessage() == "AUDIT EVENT: drug_deleted drug_id=d1"
