"""Tests for log redaction and the error envelope."""
import logging

from marketplace.errors import (
    AccessDenied, Conflict, PackagingError, PackagingTimeout, SourceMissing, error_envelope
)
from marketplace.logging_config import RedactPasswordSwitchFilter, _resolve_level


def _record(msg, *args):
    return logging.LogRecord("test", logging.INFO, __file__, 1, msg, args, None)


def test_filter_masks_password_switch():
    record = _record("running %s", "7z a -tzip -mem=AES256 -pdeadbeef -y out.zip data.csv")

    RedactPasswordSwitchFilter().filter(record)

    assert "deadbeef" not in record.getMessage()
    assert "-p***" in record.getMessage()
    assert "-mem=AES256" in record.getMessage()


def test_filter_leaves_other_messages_alone():
    record = _record("Download of %s completed", "markets-x.zip")
    RedactPasswordSwitchFilter().filter(record)
    assert record.getMessage() == "Download of markets-x.zip completed"


def test_resolve_level():
    assert _resolve_level("debug") == logging.DEBUG
    assert _resolve_level(logging.ERROR) == logging.ERROR
    assert _resolve_level("nonsense") == logging.INFO
    assert _resolve_level(None) == logging.INFO


def test_envelope_omits_empty_detail():
    assert error_envelope("conflict", "Conflict") == {"kind": "conflict", "message": "Conflict"}
    assert Conflict("In use", detail={"purchase_count": 2}).to_envelope()["detail"] == {"purchase_count": 2}


def test_server_side_errors_keep_diagnostics_out_of_envelope():
    error = PackagingError(diagnostics="7z exited with code 2: /srv/datasets/x.csv")
    envelope = error.to_envelope()

    assert error.status_code == 500
    assert "/srv/datasets" not in str(envelope)
    assert envelope["message"] == SourceMissing().message


def test_status_codes():
    assert AccessDenied.status_code == 403
    assert PackagingTimeout.status_code == 504
    assert issubclass(PackagingTimeout, PackagingError)
