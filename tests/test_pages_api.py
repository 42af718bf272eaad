"""Tests for the /pages endpoints.

The page service is swapped for one backed by an in-memory store, so the
tests run without any external object store.
"""

from unittest.mock import AsyncMock

import httpx
import pytest
from fastapi.testclient import TestClient

from lingopages.dependencies import get_locale_service, get_page_service
from lingopages.main import app
from lingopages.services.blocks import BlockService
from lingopages.services.page_service import PageService

client = TestClient(app)

_FR_DOC = {"type": "page", "nodes": [{"type": "paragraph", "text": "Bonjour"}]}


@pytest.fixture(autouse=True)
def wired_app(service, locales):
    """Point the app at the test service and clear rate-limit counters."""
    app.state.limiter._storage.reset()
    app.dependency_overrides[get_page_service] = lambda: service
    app.dependency_overrides[get_locale_service] = lambda: locales
    yield
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _create(permalink: str = "/about", title: str = "About", locale: str = "en-us") -> dict:
    resp = client.post(
        "/pages",
        json={"permalink": permalink, "title": title, "description": "About us"},
        headers={"X-Locale": locale},
    )
    assert resp.status_code == 201
    return resp.json()


def _page_id(page: dict) -> str:
    return page["key"].split("/", 1)[1]


class TestCreateAndRead:
    def test_create_returns_resolved_view(self):
        page = _create()
        assert page["title"] == "About"
        assert page["permalink"] == "/about"
        assert page["contentKey"].startswith("files/")

    def test_get_by_permalink(self):
        _create()
        resp = client.get("/pages/by-permalink", params={"permalink": "/about"})
        assert resp.status_code == 200
        assert resp.json()["title"] == "About"

    def test_unknown_permalink_is_404(self):
        resp = client.get("/pages/by-permalink", params={"permalink": "/missing"})
        assert resp.status_code == 404

    def test_create_uses_locale_header(self, storage):
        page = _create(locale="fr-fr")

        record = storage.snapshot()["pages"][_page_id(page)]
        assert list(record["locales"]) == ["fr-fr"]

    def test_get_by_id_falls_back_to_default_locale(self):
        page = _create()
        resp = client.get(f"/pages/{_page_id(page)}", headers={"X-Locale": "fr-fr"})
        assert resp.status_code == 200
        assert resp.json()["title"] == "About"

    def test_unknown_id_is_404(self):
        assert client.get("/pages/nope").status_code == 404

    def test_search_with_pattern(self):
        _create()
        _create("/contact", "Contact")
        resp = client.get("/pages", params={"pattern": "cont"})
        assert [p["title"] for p in resp.json()] == ["Contact"]

    def test_uninstalled_locale_header_is_400(self):
        resp = client.get("/pages", headers={"X-Locale": "xx-xx"})
        assert resp.status_code == 400

    def test_missing_title_is_422(self):
        resp = client.post("/pages", json={"permalink": "/about"})
        assert resp.status_code == 422


class TestContent:
    def test_translating_a_locale(self):
        page = _create()
        page_id = _page_id(page)

        resp = client.put(f"/pages/{page_id}/content", params={"locale": "fr-fr"}, json=_FR_DOC)
        assert resp.status_code == 204

        fr = client.get(f"/pages/{page_id}/content", params={"locale": "fr-fr"}).json()
        en = client.get(f"/pages/{page_id}/content", params={"locale": "en-us"}).json()
        assert fr == _FR_DOC
        assert en != _FR_DOC

    def test_content_of_unknown_page_is_404(self):
        assert client.get("/pages/nope/content").status_code == 404

    def test_content_round_trips_unchanged(self):
        page_id = _page_id(_create())
        doc = {"caption": None, "data": {"k": 1}}

        client.put(f"/pages/{page_id}/content", json=doc)

        assert client.get(f"/pages/{page_id}/content").json() == doc


class TestUpdateAndDelete:
    def test_update_page_record(self):
        page = _create()
        stored = client.get(f"/pages/{_page_id(page)}").json()
        body = {
            "key": page["key"],
            "locales": {
                "en-us": {
                    "title": "About us",
                    "description": stored["description"],
                    "permalink": "/about",
                    "contentKey": stored["contentKey"],
                }
            },
        }
        resp = client.put(f"/pages/{_page_id(page)}", json=body)

        assert resp.status_code == 204
        assert client.get(f"/pages/{_page_id(page)}").json()["title"] == "About us"

    def test_update_with_mismatched_key_is_400(self):
        page = _create()
        body = {"key": "pages/other", "locales": {"en-us": {"title": "x", "permalink": "/x"}}}
        assert client.put(f"/pages/{_page_id(page)}", json=body).status_code == 400

    def test_delete_locale_keeps_default(self):
        page = _create()
        page_id = _page_id(page)
        client.put(f"/pages/{page_id}/content", params={"locale": "fr-fr"}, json=_FR_DOC)

        resp = client.delete(f"/pages/{page_id}", params={"locale": "fr-fr"})

        assert resp.status_code == 204
        assert client.get(f"/pages/{page_id}").status_code == 200
        fr = client.get(f"/pages/{page_id}/content", params={"locale": "fr-fr"}).json()
        assert fr != _FR_DOC

    def test_delete_last_locale_removes_page(self):
        page = _create()
        page_id = _page_id(page)

        assert client.delete(f"/pages/{page_id}").status_code == 204
        assert client.get(f"/pages/{page_id}").status_code == 404

    def test_delete_default_locale_with_translations_is_400(self):
        page_id = _page_id(_create())
        client.put(f"/pages/{page_id}/content", params={"locale": "fr-fr"}, json=_FR_DOC)

        assert client.delete(f"/pages/{page_id}").status_code == 400
        assert client.get(f"/pages/{page_id}", params={"locale": "fr-fr"}).status_code == 200

    def test_delete_unknown_page_is_404(self):
        assert client.delete("/pages/nope").status_code == 404


class TestStoreFailures:
    def test_transport_error_is_502(self, locales):
        storage = AsyncMock()
        storage.get_object.side_effect = httpx.ConnectError("store down")
        app.dependency_overrides[get_page_service] = lambda: PageService(storage, BlockService(storage), locales)

        resp = client.get("/pages/abc")

        assert resp.status_code == 502


class TestHealth:
    def test_root(self):
        assert client.get("/").json() == {"message": "Hello from Lingopages"}
