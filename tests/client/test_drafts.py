import os

from app.client.analytics import Analytics
from app.client.drafts import FileDraftStore, MemoryDraftStore, default_draft_dir
from unittest.mock import patch


def test_file_store_round_trip(tmp_path):
    store = FileDraftStore(str(tmp_path / "drafts"))
    assert store.load("step1_data") is None

    store.save("step1_data", {"selectedCategories": ["Cancel something"], "email": "a@b.co"})
    assert store.load("step1_data") == {"selectedCategories": ["Cancel something"], "email": "a@b.co"}
    assert os.listdir(tmp_path / "drafts") == ["step1_data.json"]

    store.delete("step1_data")
    store.delete("step1_data")
    assert store.load("step1_data") is None


def test_file_store_sanitizes_keys(tmp_path):
    store = FileDraftStore(str(tmp_path))
    store.save("../escape", {"a": 1})
    assert os.listdir(tmp_path) == ["escape.json"]


def test_memory_store():
    store = MemoryDraftStore()
    store.save("k", {"a": 1})
    assert store.load("k") == {"a": 1}
    store.delete("k")
    assert store.load("k") is None


def test_default_draft_dir_honours_xdg():
    with patch.dict("os.environ", {"XDG_STATE_HOME": "/tmp/state"}):
        assert default_draft_dir() == os.path.join("/tmp/state", "lead-intake")


@patch("app.client.analytics.log")
def test_analytics_only_records_while_enabled(mock_log):
    analytics = Analytics("test")
    analytics.track("category_view")
    mock_log.assert_not_called()

    analytics.init()
    analytics.identify("a@b.co")
    analytics.track("category_view", flow="intake")
    last = mock_log.call_args.kwargs
    assert last["event"] == "analytics"
    assert last["name"] == "category_view"
    assert last["identified"] is True

    analytics.shutdown()
    mock_log.reset_mock()
    analytics.track("email_view")
    mock_log.assert_not_called()
