"""
Tests for logging utilities.
"""

import logging

from rawdesk.utils.logging import BatchStats, StructuredLogger


class TestBatchStats:
    """Test batch statistics."""

    def test_counts(self):
        stats = BatchStats(3)
        stats.add_result("a.NEF", True)
        stats.add_result("b.NEF", False, "Unsupported file")

        summary = stats.get_summary()
        assert summary['processed_files'] == 2
        assert summary['succeeded_files'] == 1
        assert summary['failed_files'] == 1
        assert stats.errors[0]['error'] == "Unsupported file"
        assert not stats.all_succeeded

    def test_all_succeeded_needs_every_item(self):
        stats = BatchStats(2)
        stats.add_result("a.NEF", True)
        assert not stats.all_succeeded
        stats.add_result("b.NEF", True)
        assert stats.all_succeeded

    def test_print_summary(self, capsys):
        stats = BatchStats(1)
        stats.add_result("a.NEF", False)
        stats.print_summary()
        out = capsys.readouterr().out
        assert "EXPORT SUMMARY" in out
        assert "a.NEF: unknown error" in out


class TestStructuredLogger:
    """Test metadata formatting."""

    def test_metadata_appended(self, caplog):
        log = StructuredLogger("rawdesk.test", {"batch": 1})
        with caplog.at_level(logging.INFO, logger="rawdesk.test"):
            log.info("Exported", photo="a.NEF")
        assert caplog.records[0].getMessage() == 'Exported | {"batch": 1, "photo": "a.NEF"}'
