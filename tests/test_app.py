"""Route tests through Flask's test client, backed by the in-memory store."""

import pytest

import app as app_module
from capture_pipeline import CapturePipeline
from conftest import make_record
from sync_controller import ITEM_NOT_FOUND_ERROR, REQUIRED_FIELDS_ERROR


@pytest.fixture
def client(monkeypatch, controller):
    monkeypatch.setattr(app_module, "_controller", None)
    monkeypatch.setattr(app_module, "_pipeline", None)
    pipeline = CapturePipeline(controller, classify=lambda pixels: [{"label": "banana", "confidence": 0.9}])
    app_module.set_controller(controller, pipeline)
    app_module.app.config["TESTING"] = True
    with app_module.app.test_client() as client:
        yield client


@pytest.fixture
def stocked(store, controller):
    store.docs = {f"id-{i:02d}": make_record(f"item {i}", quantity=i + 1) for i in range(7)}
    store.emit()
    return store


class TestHtmlRoutes:
    def test_index_renders_first_page(self, client, stocked):
        response = client.get("/")
        body = response.get_data(as_text=True)
        assert response.status_code == 200
        assert "item 6" in body
        assert "item 1" not in body
        assert 'href="/?page=2"' in body

    def test_index_second_page(self, client, stocked):
        body = client.get("/?page=2").get_data(as_text=True)
        assert "item 1" in body
        assert "item 6" not in body

    def test_add_redirects_and_creates(self, client, store):
        response = client.post("/add", data={"item": "rice", "quantity": "2", "weight": "1", "weightUnit": "kg"})
        assert response.status_code == 302
        assert store.store_calls("create")[0][1]["item"] == "rice"

    def test_add_missing_fields_shows_error(self, client, store):
        client.post("/add", data={"item": "rice", "quantity": "", "weight": "1", "weightUnit": "kg"})
        body = client.get("/").get_data(as_text=True)
        assert REQUIRED_FIELDS_ERROR in body
        assert store.store_calls("create") == []

    def test_increment(self, client, stocked):
        client.post("/update/id-03", data={"quantity": "5"})
        assert stocked.store_calls("update") == [("update", "id-03", {"quantity": 5})]

    def test_delete(self, client, stocked, controller):
        client.post("/delete/id-03")
        assert controller.state.find_active("id-03") is None

    def test_search_and_reset(self, client, stocked, controller):
        client.post("/search", data={"searchTerm": "item 3"})
        body = client.get("/").get_data(as_text=True)
        assert "item 3" in body
        assert "item 4" not in body
        assert "Reset" in body

        client.post("/reset")
        assert not controller.state.is_searching

    def test_camera_and_capture(self, client, controller, photo_data_uri):
        client.post("/camera/open")
        assert "camera-video" in client.get("/").get_data(as_text=True)

        client.post("/capture", data={"photo": photo_data_uri})
        assert controller.state.item == "banana"
        assert not controller.state.is_camera_open

    def test_unknown_route_is_404(self, client):
        assert client.get("/no-such-page").status_code == 404


class TestApi:
    def test_get_inventory_paginates(self, client, stocked):
        data = client.get("/api/inventory?page=2").get_json()
        assert data["success"]
        assert data["page"] == 2
        assert data["total_pages"] == 2
        assert data["total_items"] == 7
        assert [item["id"] for item in data["items"]] == ["id-01", "id-00"]

    def test_add(self, client, store):
        response = client.post("/api/inventory", json={"item": "rice", "quantity": 2, "weight": 0.5, "weightUnit": "kg"})
        assert response.status_code == 201
        record = store.docs[response.get_json()["id"]]
        assert record["quantity"] == 2
        assert record["weight"] == 0.5

    def test_add_missing_fields(self, client):
        response = client.post("/api/inventory", json={"item": "rice"})
        assert response.status_code == 400
        assert response.get_json()["error"] == REQUIRED_FIELDS_ERROR

    def test_add_null_fields_are_blank(self, client, store):
        response = client.post("/api/inventory", json={"item": None, "quantity": 1, "weight": 1, "weightUnit": None})
        assert response.status_code == 400
        assert response.get_json()["error"] == REQUIRED_FIELDS_ERROR
        assert store.store_calls("create") == []

    def test_search_null_term_matches_blank_name(self, client, store):
        client.post("/api/inventory/search", json={"searchTerm": None})
        assert store.store_calls("query") == [("query", "item", "")]

    def test_add_invalid_body(self, client):
        assert client.post("/api/inventory", data="nope").status_code == 400

    def test_add_store_failure(self, client, store):
        store.fail.add("create")
        response = client.post("/api/inventory", json={"item": "rice", "quantity": 1, "weight": 1, "weightUnit": "kg"})
        assert response.status_code == 500
        assert response.get_json()["error"] == "Failed to add item."

    def test_update(self, client, stocked):
        response = client.patch("/api/inventory/id-02", json={"quantity": 10})
        assert response.status_code == 200
        assert stocked.docs["id-02"]["quantity"] == 10

    def test_update_unknown(self, client, stocked):
        response = client.patch("/api/inventory/missing", json={"quantity": 1})
        assert response.status_code == 404
        assert response.get_json()["error"] == ITEM_NOT_FOUND_ERROR

    def test_update_requires_integer(self, client, stocked):
        assert client.patch("/api/inventory/id-02", json={"quantity": "ten"}).status_code == 400

    def test_delete(self, client, stocked):
        assert client.delete("/api/inventory/id-02").status_code == 200
        assert "id-02" not in stocked.docs

    def test_search(self, client, stocked):
        data = client.post("/api/inventory/search", json={"searchTerm": "item 2"}).get_json()
        assert data["count"] == 1
        assert data["items"][0]["id"] == "id-02"

    def test_classify(self, client, photo_data_uri):
        data = client.post("/api/classify", json={"photo": photo_data_uri}).get_json()
        assert data == {"success": True, "classification": "banana", "item": "banana"}

    def test_classify_bad_photo(self, client):
        response = client.post("/api/classify", json={"photo": "data:image/png;base64,aGVsbG8="})
        assert response.status_code == 500
        assert response.get_json()["error"] == "Failed to process image."

    def test_classify_without_photo(self, client):
        assert client.post("/api/classify", json={}).status_code == 400

    def test_health(self, client, stocked):
        data = client.get("/api/health").get_json()
        assert data["status"] == "healthy"
        assert data["pantry_items"] == 7

    def test_cors_headers(self, client):
        response = client.get("/api/health")
        assert response.headers["Access-Control-Allow-Origin"] == "*"
