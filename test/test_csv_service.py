import asyncio

import pytest

from sentiscope.errors import AppError
from sentiscope.services import csv_service


def _write(tmp_path, content):
    path = tmp_path / "data.csv"
    path.write_text(content, encoding="utf-8")
    return str(path)


def test_read_rows_keeps_blank_cells_as_strings(tmp_path):
    columns, rows = csv_service.read_rows(_write(tmp_path, "id, Review\n1,Bagus sekali\n2,\n"))

    assert columns == ["id", "Review"]
    assert rows == [{"id": "1", "Review": "Bagus sekali"}, {"id": "2", "Review": ""}]


def test_read_rows_empty_file(tmp_path):
    with pytest.raises(AppError) as excinfo:
        csv_service.read_rows(_write(tmp_path, ""))
    assert excinfo.value.status_code == 400


@pytest.mark.parametrize(
    "columns,requested,expected",
    [
        (["id", "comment"], "comment", "comment"),
        (["id", "Comment"], "comment", "Comment"),
        (["id", "user_feedback_text"], "feedback", "user_feedback_text"),
        (["id", "isi_ulasan"], None, "isi_ulasan"),
        (["id", "Customer Review"], "notes", "Customer Review"),
        (["context_id", "review"], None, "review"),
        (["id", "reviewText"], None, "reviewText"),
    ],
)
def test_column_matching(columns, requested, expected):
    assert asyncio.run(csv_service.find_text_column(columns, [], requested)) == expected


def test_unknown_column_falls_back_to_first():
    column = asyncio.run(csv_service.find_text_column(["body", "stars"], [{"body": "x", "stars": "5"}], "opinion"))
    assert column == "body"


def test_ai_detection_failure_falls_back_to_first(monkeypatch):
    async def broken_detect(columns, rows):
        raise ValueError("Invalid column detected: nope")

    monkeypatch.setattr("sentiscope.config.OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr("sentiscope.services.openai_service.detect_text_column", broken_detect)

    assert asyncio.run(csv_service.find_text_column(["body", "stars"], [], "opinion")) == "body"


def test_ai_detection_used_when_no_name_matches(monkeypatch):
    async def detect(columns, rows):
        return "stars"

    monkeypatch.setattr("sentiscope.config.OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr("sentiscope.services.openai_service.detect_text_column", detect)

    assert asyncio.run(csv_service.find_text_column(["body", "stars"], [], None)) == "stars"


def test_extract_texts_skips_blanks_and_caps():
    rows = [{"text": "  one "}, {"text": ""}, {"text": "two"}, {"text": "three"}]
    assert csv_service.extract_texts(rows, "text", limit=2) == ["one", "two"]
