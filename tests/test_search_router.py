"""Tests for the search API endpoints."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from cms_backend.config import settings
from cms_backend.routers import search_router
from cms_backend.services.search.bulk_sync import BulkSynchronizer
from cms_backend.services.search.errors import SearchIndexUnavailable
from cms_backend.services.search.normalizer import normalize
from cms_backend.services.search.orchestrator import SyncOrchestrator, SyncState
from cms_backend.services.search.schema import CollectionSchemaManager
from cms_backend.services.search.variants import ContentVariant

from .conftest import (
    PUBLISHED_MILLIS,
    FakeContentRepository,
    FakeIndexClient,
    blog_record,
    news_record,
    report_record,
)

REPORT = ContentVariant.REPORT
BLOG = ContentVariant.BLOG
NEWS = ContentVariant.NEWS_ARTICLE


@pytest.fixture
def index() -> FakeIndexClient:
    index = FakeIndexClient()
    index.collection_exists = True
    records = [
        (REPORT, report_record(1, title="Oncology drugs market")),
        (REPORT, report_record(2, title="Wind turbines", publishedAt="2024-05-01T00:00:00Z")),
        (BLOG, blog_record(1, title="Ten oncology trends")),
        (NEWS, news_record(1, publishedAt="2024-06-01T00:00:00Z")),
        (NEWS, news_record(2, "de")),
    ]
    for variant, record in records:
        document = normalize(record, variant).to_index()
        index.documents[document["id"]] = document
    return index


@pytest.fixture
def content() -> FakeContentRepository:
    content = FakeContentRepository()
    content.add(REPORT, report_record(1))
    content.add(BLOG, blog_record(1))
    return content


@pytest.fixture
def app(index, content) -> FastAPI:
    app = FastAPI()
    app.include_router(search_router)
    schema_manager = CollectionSchemaManager(index, index.schema)
    synchronizer = BulkSynchronizer(index, content)
    orchestrator = SyncOrchestrator(index, content, schema_manager, synchronizer)
    orchestrator.state = SyncState.UP_TO_DATE
    app.state.index_client = index
    app.state.schema_manager = schema_manager
    app.state.synchronizer = synchronizer
    app.state.orchestrator = orchestrator
    return app


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def admin_token(monkeypatch) -> str:
    monkeypatch.setattr(settings, "search_admin_token", "s3cret")
    return "s3cret"


class TestSearch:
    def test_lists_locale_by_date(self, client):
        response = client.get("/api/search")

        assert response.status_code == 200
        body = response.json()
        assert [item["id"] for item in body["data"]] == [
            "1_news_en", "2_report_en", "1_report_en", "1_blog_en",
        ]
        assert body["meta"]["pagination"] == {
            "page": 1,
            "pageSize": 10,
            "pageCount": 1,
            "total": 4,
            "allCounts": {"all": 4, REPORT.value: 2, BLOG.value: 1, NEWS.value: 1},
        }

    def test_result_item_shape(self, client):
        body = client.get("/api/search", params={"q": "oncology drugs"}).json()

        [item] = body["data"]
        assert item == {
            "id": "1_report_en",
            "originalId": "1",
            "title": "Oncology drugs market",
            "shortDescription": "Summary of report 1",
            "slug": "report-1",
            "entity": REPORT.value,
            "locale": "en",
            "highlightImageUrl": "/uploads/report-1.png",
            "publishedAt": "2024-03-01T09:30:00.000Z",
            "industries": [{"name": "Healthcare"}],
        }

    def test_tab_filters_results_but_not_counts(self, client):
        body = client.get("/api/search", params={"q": "oncology", "tab": "blogs"}).json()

        assert [item["id"] for item in body["data"]] == ["1_blog_en"]
        assert body["meta"]["pagination"]["total"] == 1
        assert body["meta"]["pagination"]["allCounts"] == {
            "all": 2, REPORT.value: 1, BLOG.value: 1, NEWS.value: 0,
        }

    def test_single_character_query_lists_everything(self, client):
        body = client.get("/api/search", params={"q": "x"}).json()
        assert body["meta"]["pagination"]["total"] == 4

    def test_other_locale(self, client):
        body = client.get("/api/search", params={"locale": "de"}).json()
        assert [item["id"] for item in body["data"]] == ["2_news_de"]

    def test_pagination(self, client):
        body = client.get("/api/search", params={"page": 2, "pageSize": 3}).json()

        assert [item["id"] for item in body["data"]] == ["1_blog_en"]
        assert body["meta"]["pagination"]["pageCount"] == 2

    def test_legacy_sort_field(self, client):
        body = client.get("/api/search", params={"sort": "oldPublishedAt:asc"}).json()
        assert body["data"][0]["id"] == "1_report_en"
        assert body["data"][0]["publishedAt"] is not None

    def test_unknown_sort_rejected(self, client):
        assert client.get("/api/search", params={"sort": "slug:desc"}).status_code == 400

    def test_index_unavailable_returns_503(self, client, index):
        index.search_error = SearchIndexUnavailable("connection refused")
        assert client.get("/api/search").status_code == 503


class TestHealth:
    def test_healthy(self, client):
        response = client.get("/api/search/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "state": "up_to_date", "documents": 5}

    def test_degraded(self, client, app):
        app.state.orchestrator.state = SyncState.DEGRADED
        response = client.get("/api/search/health")

        assert response.status_code == 503
        assert response.json()["status"] == "degraded"

    def test_engine_down(self, client, index):
        index.healthy = SearchIndexUnavailable("connection refused")
        assert client.get("/api/search/health").status_code == 503


class TestAdmin:
    def test_sync_requires_token(self, client, admin_token):
        assert client.post("/api/search/sync").status_code == 403
        assert client.post("/api/search/sync", headers={"X-Admin-Token": "wrong"}).status_code == 403

    def test_unset_token_disables_admin(self, client, monkeypatch):
        monkeypatch.setattr(settings, "search_admin_token", "")
        response = client.post("/api/search/sync", headers={"X-Admin-Token": ""})
        assert response.status_code == 403

    def test_sync(self, client, admin_token):
        response = client.post("/api/search/sync", headers={"X-Admin-Token": admin_token})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["synced"] == 2
        assert body["results"][REPORT.value]["synced"] == 1

    def test_recreate(self, client, index, admin_token):
        response = client.post("/api/search/recreate", headers={"X-Admin-Token": admin_token})

        assert response.status_code == 200
        assert response.json()["recreated"] is True
        assert set(index.documents) == {"1_report_en", "1_blog_en"}
        assert index.collection_exists


def test_service_health_endpoint():
    from cms_backend.main import app as main_app

    response = TestClient(main_app).get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
