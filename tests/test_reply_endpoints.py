from __future__ import annotations

from fastapi.testclient import TestClient

from dependencies.services import get_hitoko_adapter, get_hitoko_api_service
from main import app
from schemas.events import ReplyContext
from schemas.reply import ReplyMessage, ReplyResult
from services.hitoko_api import HitokoApiError


class FakeAdapter:
    def __init__(self, result: ReplyResult | None = None) -> None:
        self.sent: list[tuple[ReplyContext, ReplyMessage]] = []
        self._result = result or ReplyResult(success=True, status=200, data={"code": 0})

    def send_reply(self, context: ReplyContext, reply: ReplyMessage) -> ReplyResult:
        self.sent.append((context, reply))
        return self._result


class FakeApiService:
    async def get_shops(self) -> dict:
        return {"code": 0, "data": [{"marketplaceShopId": "1640619651"}]}

    async def get_session_list(self, shop_id: str, page: int = 1, size: int = 30) -> dict:
        if shop_id == "missing":
            raise HitokoApiError("Hitoko API returned 404", status_code=404)
        return {"code": 0, "total": 1, "page": page, "size": size, "data": [{"sessionId": "s-1"}]}


def _client(adapter: FakeAdapter) -> TestClient:
    app.dependency_overrides[get_hitoko_adapter] = lambda: adapter
    app.dependency_overrides[get_hitoko_api_service] = lambda: FakeApiService()
    return TestClient(app)


def teardown_function() -> None:
    app.dependency_overrides.clear()


def test_healthz() -> None:
    response = TestClient(app).get("/healthz")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_reply_text_sends_to_adapter() -> None:
    adapter = FakeAdapter()
    response = _client(adapter).post(
        "/api/reply/text",
        json={"sessionId": "s-1", "shopId": 1640619651, "buyerId": "555", "text": "thanks"},
    )

    assert response.status_code == 200
    assert response.json()["success"] is True
    context, reply = adapter.sent[0]
    assert context.shop_id == "1640619651"
    assert context.marketplace_code == "00"
    assert reply.text == "thanks"


def test_reply_requires_ids() -> None:
    adapter = FakeAdapter()
    response = _client(adapter).post("/api/reply", json={"text": "hi", "shopId": "1"})

    assert response.status_code == 400
    assert response.json()["detail"] == "Missing required fields: sessionId, buyerId"
    assert adapter.sent == []


def test_reply_requires_text_or_image() -> None:
    response = _client(FakeAdapter()).post(
        "/api/reply",
        json={"sessionId": "s-1", "shopId": "1", "buyerId": "b"},
    )
    assert response.status_code == 400


def test_reply_image_defaults_dimensions() -> None:
    adapter = FakeAdapter()
    response = _client(adapter).post(
        "/api/reply/image",
        json={"sessionId": "s-1", "shopId": "1", "buyerId": "b", "imgUrl": "https://cdn.example/a.png"},
    )

    assert response.status_code == 200
    _, reply = adapter.sent[0]
    assert (reply.width, reply.height) == (300, 300)


def test_reply_surfaces_vendor_status() -> None:
    adapter = FakeAdapter(ReplyResult(success=False, status=401, error="unauthorized"))
    response = _client(adapter).post(
        "/api/reply/text",
        json={"sessionId": "s-1", "shopId": "1", "buyerId": "b", "text": "hi"},
    )
    assert response.status_code == 401
    assert response.json()["detail"] == "unauthorized"


def test_sessions_passes_paging() -> None:
    response = _client(FakeAdapter()).get("/api/sessions/1640619651", params={"page": 2, "size": 5})
    assert response.status_code == 200
    assert response.json()["page"] == 2
    assert response.json()["size"] == 5


def test_sessions_maps_vendor_errors() -> None:
    response = _client(FakeAdapter()).get("/api/sessions/missing")
    assert response.status_code == 404


def test_shops_lists_vendor_shops() -> None:
    response = _client(FakeAdapter()).get("/api/shops")
    assert response.json()["data"][0]["marketplaceShopId"] == "1640619651"
