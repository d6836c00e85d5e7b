import json

from unittest.mock import MagicMock, patch

import app.observability.metrics as metrics
from app.observability.logging import log
from app.settings import settings


def test_log_redacts_sensitive_fields(capsys):
    with patch.object(settings, "ENABLE_PII_REDACTION", True):
        log(event="email_dev_mode", email="a@b.co", kind="continuation", props={"token": "abc", "flow": "intake"})
    line = json.loads(capsys.readouterr().out.strip())
    assert line["event"] == "email_dev_mode"
    assert line["email"] == "[REDACTED:6chars]"
    assert line["kind"] == "continuation"
    assert line["props"] == {"token": "[REDACTED:3chars]", "flow": "intake"}


def test_log_passthrough_when_redaction_disabled(capsys):
    with patch.object(settings, "ENABLE_PII_REDACTION", False):
        log(event="email_dev_mode", email="a@b.co")
    assert json.loads(capsys.readouterr().out.strip())["email"] == "a@b.co"


@patch("app.observability.metrics.get_redis")
def test_metric_writes_are_best_effort(mock_get_redis):
    mock_get_redis.return_value.incr.side_effect = ConnectionError("redis down")
    metrics.increment_step1()
    metrics.record_token_rejected("expired")


@patch("app.observability.metrics.get_redis")
def test_intake_snapshot(mock_get_redis):
    store = {
        "metrics:step1:submitted": "5",
        "metrics:step2:submitted": "2",
        "metrics:token:rejected:expired": "1",
        "metrics:email:sent": "3",
        "metrics:email:failed": "1",
    }
    r = MagicMock()
    r.get.side_effect = lambda key: store.get(key)
    r.lrange.return_value = ["100", "200", "300", "x"]
    mock_get_redis.return_value = r

    snap = metrics.get_intake_snapshot()
    assert snap["step1_submitted"] == 5
    assert snap["step2_submitted"] == 2
    assert snap["token_rejected"] == {"malformed_token": 0, "signature_mismatch": 0, "expired": 1}
    assert snap["email"]["sent"] == 3
    assert snap["email_delivery_success_rate"] == 75.0
    assert snap["p95_email_latency_ms"] == 300.0


def test_log_redacts_dev_email_preview(capsys):
    with patch.object(settings, "ENABLE_PII_REDACTION", True):
        log(event="email_dev_mode", kind="continuation", devPreview="Continue: https://example.com/details?t=p.s")
    line = json.loads(capsys.readouterr().out.strip())
    assert line["devPreview"].startswith("[REDACTED:")
    assert "t=p.s" not in json.dumps(line)
