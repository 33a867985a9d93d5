from unittest.mock import MagicMock, patch

import pytest
import requests

from src.bom_core import process_input_data
from src.bom_core.loader import read_source_text

CSV = "Reference,Value\nR1-R2,10k\n"


class MockFile:
    """Fake file object standing in for a Streamlit upload."""

    def __init__(self, name, content):
        self.name = name
        self.content = content.encode("utf-8")

    def getvalue(self):
        return self.content


def test_paste_text():
    items, stats = process_input_data("Paste Text", CSV, "Pasted")
    assert [i.reference for i in items] == ["R1", "R2"]
    assert stats["errors"] == []


def test_upload_file_with_signature():
    items, _ = process_input_data("Upload File", MockFile("bom.csv", "\ufeff" + CSV), "bom.csv")
    assert [i.reference for i in items] == ["R1", "R2"]


def test_invalid_upload_is_reported():
    items, stats = process_input_data("Upload File", "not a file", "Broken")
    assert items == []
    assert stats["errors"] == ["Invalid file object provided."]


def test_empty_input_is_not_an_error():
    items, stats = process_input_data("Paste Text", "", "Empty")
    assert items == []
    assert stats["errors"] == []


def test_url_fetch():
    response = MagicMock(content=CSV.encode("utf-8"))
    with patch("src.bom_core.loader.requests.get", return_value=response) as get:
        items, _ = process_input_data("From URL", " https://example.com/bom.csv ", "URL")

    get.assert_called_once_with("https://example.com/bom.csv", timeout=10)
    assert len(items) == 2


def test_url_failure_is_reported_not_raised():
    """A dead link ends up in stats['errors'] instead of crashing the app."""
    with patch(
        "src.bom_core.loader.requests.get",
        side_effect=requests.ConnectionError("Simulated outage"),
    ):
        items, stats = process_input_data("From URL", "https://example.com/x.csv", "URL")

    assert items == []
    assert len(stats["errors"]) == 1
    assert "Simulated outage" in stats["errors"][0]
    assert stats["rows_read"] == 0


def test_unknown_method():
    with pytest.raises(ValueError):
        read_source_text("Carrier Pigeon", "R1")
    _, stats = process_input_data("Carrier Pigeon", "R1", "Bird")
    assert stats["errors"] == ["Unknown input method: Carrier Pigeon"]
