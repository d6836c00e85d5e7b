import pytest
from unittest.mock import patch, MagicMock
from app.queue.jobs import send_email_job
from app.queue.rq_conn import get_queue
from app.settings import settings


def _payload(**extra):
    body = {"to": "a@b.co", "subject": "s", "html": "<p>h</p>", "text": "h", "kind": "continuation", "step1Id": "lead-1"}
    body.update(extra)
    return body


@patch("app.queue.jobs.log")
@patch("app.queue.jobs.deliver", return_value="sent")
def test_send_email_job(mock_deliver, mock_log):
    assert send_email_job(_payload()) == "sent"
    msg = mock_deliver.call_args.args[0]
    assert msg.to == "a@b.co"
    assert msg.step1Id == "lead-1"
    mock_log.assert_called_once()
    assert mock_log.call_args.kwargs["event"] == "email_job_start"


@patch("app.queue.jobs.log")
@patch("app.queue.jobs.deliver", return_value="sent")
def test_send_email_job_ignores_unknown_fields(mock_deliver, mock_log):
    send_email_job(_payload(legacyField=True))
    assert mock_deliver.called


@patch("app.queue.jobs.log")
@patch("app.queue.jobs.deliver", return_value="failed")
def test_send_email_job_raises_so_rq_retries(mock_deliver, mock_log):
    with pytest.raises(RuntimeError, match="Email delivery failed"):
        send_email_job(_payload())


@patch("app.queue.rq_conn.Queue")
@patch("app.queue.rq_conn.get_redis")
def test_get_queue_uses_binary_connection(mock_get_redis, mock_queue_class):
    get_queue()
    mock_get_redis.assert_called_once_with(binary=True)
    assert mock_queue_class.call_args.args[0] == settings.RQ_QUEUE_NAME
