import os

from sentiscope import config
from sentiscope.services import analysis_db_service


def _upload_dir_files():
    if not os.path.isdir(config.UPLOAD_DIR):
        return []
    return os.listdir(config.UPLOAD_DIR)


def _fail_if_called(*args, **kwargs):
    raise AssertionError("external service must not be called")


def test_csv_upload_analyzes_matching_column(client, auth_headers, fake_classifier, user_id):
    content = b"id,Review Text\n1,I love this\n2,I hate this\n3,\n4,It's fine\n"
    response = client.post(
        "/api/analysis/csv",
        files={"file": ("reviews.csv", content, "text/csv")},
        data={"column": "review", "generateInsights": "false"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["column"] == "Review Text"
    assert data["totalRows"] == 4
    assert [r["sentiment"]["label"] for r in data["results"]] == ["positive", "negative", "neutral"]
    stored = analysis_db_service.get_analysis_by_id(data["analysisId"], user_id)
    assert stored["inputType"] == "csv"
    assert stored["filePath"] is None
    assert _upload_dir_files() == []


def test_csv_unknown_column_uses_first_column(client, auth_headers, fake_classifier):
    content = b"body,stars\nI love this,5\nawful,1\n"
    response = client.post(
        "/api/analysis/csv",
        files={"file": ("reviews.csv", content, "text/csv")},
        data={"column": "opinion", "saveToDb": "false"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["column"] == "body"
    assert data["analysisId"] is None


def test_oversized_upload_rejected_before_external_calls(monkeypatch, client, auth_headers):
    monkeypatch.setattr("sentiscope.services.sentiment_service._classify", _fail_if_called)
    monkeypatch.setattr("sentiscope.services.ocr_service.extract_text", _fail_if_called)
    monkeypatch.setattr("sentiscope.services.storage_service.upload_file", _fail_if_called)

    big = b"text\n" + b"a" * (10 * 1024 * 1024)
    csv_response = client.post(
        "/api/analysis/csv", files={"file": ("big.csv", big, "text/csv")}, headers=auth_headers
    )
    image_response = client.post(
        "/api/analysis/image", files={"file": ("big.png", big, "image/png")}, headers=auth_headers
    )

    assert csv_response.status_code == 413
    assert image_response.status_code == 413
    assert _upload_dir_files() == []


def test_wrong_extension_rejected_before_external_calls(monkeypatch, client, auth_headers):
    monkeypatch.setattr("sentiscope.services.sentiment_service._classify", _fail_if_called)
    monkeypatch.setattr("sentiscope.services.ocr_service.extract_text", _fail_if_called)

    csv_response = client.post(
        "/api/analysis/csv", files={"file": ("data.xlsx", b"a,b\n1,2\n", "application/octet-stream")}, headers=auth_headers
    )
    image_response = client.post(
        "/api/analysis/image", files={"file": ("photo.pdf", b"%PDF-1.4", "application/pdf")}, headers=auth_headers
    )

    assert csv_response.status_code == 400
    assert csv_response.json()["message"] == "Only CSV files are allowed"
    assert image_response.status_code == 400


def test_image_upload_splits_ocr_lines(monkeypatch, client, auth_headers, fake_classifier, user_id):
    monkeypatch.setattr(
        "sentiscope.services.ocr_service.extract_text",
        lambda path: "I love this\nok\nI hate this\n",
    )

    response = client.post(
        "/api/analysis/image",
        files={"file": ("shot.png", b"\x89PNG fake bytes", "image/png")},
        headers=auth_headers,
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert [r["text"] for r in data["results"]] == ["I love this", "I hate this"]
    assert data["commentsParsed"] is False
    assert analysis_db_service.get_analysis_by_id(data["analysisId"], user_id)["inputType"] == "image"
    assert _upload_dir_files() == []


def test_image_upload_with_parsed_comments(monkeypatch, client, auth_headers, fake_classifier):
    monkeypatch.setattr("sentiscope.config.OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr("sentiscope.services.ocr_service.extract_text", lambda path: "budi 2 days ago great app")

    async def fake_parse(ocr_text):
        return [{"username": "budi", "timestamp": "2 days ago", "comment": "great app"}]

    monkeypatch.setattr("sentiscope.services.openai_service.parse_comments_from_ocr", fake_parse)

    response = client.post(
        "/api/analysis/image",
        files={"file": ("shot.jpg", b"fake jpeg", "image/jpeg")},
        data={"generateInsights": "false", "saveToDb": "false"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    result = response.json()["data"]["results"][0]
    assert result["username"] == "budi"
    assert result["sentiment"]["label"] == "positive"


def test_image_without_text(monkeypatch, client, auth_headers):
    monkeypatch.setattr("sentiscope.services.ocr_service.extract_text", lambda path: "")

    response = client.post(
        "/api/analysis/image", files={"file": ("blank.png", b"fake", "image/png")}, headers=auth_headers
    )

    assert response.status_code == 400
    assert _upload_dir_files() == []
