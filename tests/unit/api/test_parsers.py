"""Tests for the title parser endpoints."""

import pytest
from fastapi.testclient import TestClient

from app.models.raw_item import ParseStatus

PARSER_BODY = {
    "name": "general",
    "priority": 50,
    "condition_regex": ".+",
    "parse_regex": r"(.+) - (\d+)",
    "anime_title_source": "regex",
    "anime_title_value": "$1",
    "episode_no_source": "regex",
    "episode_no_value": "$2",
    "resolution_source": "static",
    "resolution_value": "1080p",
}


@pytest.mark.unit
class TestParserEndpoints:
    """Tests for /api/v1/parsers."""

    def test_create_returns_reparse_stats(self, client: TestClient, fake_store, make_item):
        fake_store.add_item(make_item(1, "Show - 07"))
        fake_store.add_item(make_item(2, "no episode"))

        response = client.post("/api/v1/parsers", json=PARSER_BODY)

        assert response.status_code == 201
        data = response.json()
        assert data["parser"]["resolution_value"] == "1080p"
        assert data["parser"]["season_source"] is None
        assert data["reparse"] == {
            "parsed": 1,
            "no_match": 0,
            "failed": 1,
            "total": 2,
            "queued": False,
        }

    def test_create_invalid(self, client: TestClient):
        body = {**PARSER_BODY, "episode_no_value": "$5"}

        response = client.post("/api/v1/parsers", json=body)

        assert response.status_code == 422
        assert response.json()["error"]["context"]["field"] == "episode_no_value"

    def test_get_and_list(self, client: TestClient, fake_store, make_parser):
        fake_store.add_parser(make_parser(1, priority=10))
        fake_store.add_parser(make_parser(2, priority=90))

        assert [p["parser_id"] for p in client.get("/api/v1/parsers").json()] == [2, 1]
        assert client.get("/api/v1/parsers/1").json()["priority"] == 10
        assert client.get("/api/v1/parsers/3").status_code == 404

    def test_update(self, client: TestClient, fake_store, make_parser):
        fake_store.add_parser(make_parser(1))

        response = client.put("/api/v1/parsers/1", json={**PARSER_BODY, "name": "renamed"})

        assert response.status_code == 200
        assert response.json()["parser"]["name"] == "renamed"

    def test_delete(self, client: TestClient, fake_store, make_parser, make_item):
        fake_store.add_parser(make_parser(1))
        fake_store.add_item(make_item(1, "Show - 07"), status=ParseStatus.PARSED, parser_id=1)

        response = client.delete("/api/v1/parsers/1")

        assert response.status_code == 200
        assert response.json()["reparse"]["no_match"] == 1
        assert fake_store.items[1].status == ParseStatus.NO_MATCH

    def test_reparse_unresolved(self, client: TestClient, fake_store, make_parser, make_item):
        fake_store.add_parser(make_parser(1))
        fake_store.add_item(make_item(1, "Show - 07"), status=ParseStatus.NO_MATCH)

        response = client.post("/api/v1/parsers/reparse")

        assert response.json() == {
            "parsed": 1,
            "no_match": 0,
            "failed": 0,
            "total": 1,
            "queued": False,
        }


@pytest.mark.unit
class TestParserPreviewEndpoint:
    """Tests for /api/v1/parsers/preview."""

    def test_preview(self, client: TestClient, fake_store, make_item):
        fake_store.add_item(make_item(1, "Show - 07"))
        body = {k: v for k, v in PARSER_BODY.items() if k != "name"}

        response = client.post("/api/v1/parsers/preview", json=body)

        assert response.status_code == 200
        (row,) = response.json()["results"]
        assert row["after_matched_by"] == "(current)"
        assert row["is_newly_matched"] is True
        assert row["parse_result"]["episode_no"] == 7
        assert row["parse_result"]["resolution"] == "1080p"

    def test_preview_bad_regex(self, client: TestClient):
        body = {**PARSER_BODY, "parse_regex": "(("}

        data = client.post("/api/v1/parsers/preview", json=body).json()

        assert data["parse_regex_valid"] is False
        assert data["regex_error"].startswith("parse_regex: ")
