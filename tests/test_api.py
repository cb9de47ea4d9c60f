import json

import pytest
from httpx import AsyncClient, ASGITransport

import main
from gemini_client import GeminiClient
from main import app
from models import SuggestionResponse

from conftest import make_photo_bytes


@pytest.fixture
def output_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(main.settings, "poster_output_dir", str(tmp_path))
    return tmp_path


def client():
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


def photo_files(*sizes):
    return [
        ("images", (f"photo{i}.png", make_photo_bytes(w, h, fmt="PNG"), "image/png"))
        for i, (w, h) in enumerate(sizes)
    ]


@pytest.mark.asyncio
async def test_health():
    async with client() as c:
        response = await c.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_options():
    async with client() as c:
        response = await c.get("/poster/options")

    assert response.status_code == 200
    data = response.json()
    assert data["canvas"] == {"width": 1600, "height": 1000}
    assert data["max_photos"] == 4
    assert {t["id"] for t in data["themes"]} == {"light", "dark"}
    assert "AED" in data["currencies"]


@pytest.mark.asyncio
async def test_layout_endpoint():
    async with client() as c:
        response = await c.post("/poster/layout", json={"aspect_ratios": [1.0, 1.78]})

    assert response.status_code == 200
    data = response.json()
    assert len(data["layouts"]) == 2
    for rect in data["layouts"]:
        assert rect["x"] >= 0 and rect["x"] + rect["width"] <= 1 + 1e-6
        assert rect["y"] >= 0 and rect["y"] + rect["height"] <= 1 + 1e-6
    assert 250 <= data["description_max_length"] <= 500


@pytest.mark.asyncio
async def test_layout_endpoint_validation():
    async with client() as c:
        response = await c.post("/poster/layout", json={"aspect_ratios": [1.0] * 5})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_typography_endpoint():
    async with client() as c:
        response = await c.post("/poster/typography", json={
            "fields": {"title": "Road bike", "price": "1,200", "description": "Recently serviced."},
            "photo_area_width": 800,
            "preview_width": 800,
            "preview_height": 500,
        })

    assert response.status_code == 200
    data = response.json()
    assert data["scale"] == pytest.approx(0.5)
    assert data["price"]["label"] == "AED 1,200"
    assert data["title"]["fit"]["lines"]
    assert data["location"]["is_placeholder"] is True


@pytest.mark.asyncio
async def test_generate_poster(output_dir):
    async with client() as c:
        response = await c.post(
            "/poster/generate",
            files=photo_files((400, 400), (600, 300)),
            data={"title": "Oak desk", "price": "250", "description": "Solid oak.", "theme": "dark"},
        )

    assert response.status_code == 200
    assert response.headers["content-type"] == "image/jpeg"
    assert response.content[:2] == b"\xff\xd8"
    assert list(output_dir.glob("poster_*.jpg"))


@pytest.mark.asyncio
async def test_generate_with_custom_layouts(output_dir):
    layouts = [
        {"x": 0, "y": 0, "width": 0.5, "height": 0.5},
        {"x": 0.5, "y": 0.5, "width": 0.5, "height": 0.5},
    ]
    async with client() as c:
        response = await c.post(
            "/poster/generate",
            files=photo_files((400, 400), (400, 400)),
            data={"title": "Chairs", "layouts": json.dumps(layouts), "photo_area_width": "900"},
        )
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_generate_clamps_out_of_range_layouts(output_dir):
    layouts = [
        {"x": -0.5, "y": 0.2, "width": 3.0, "height": 1.5},
        {"x": 0.9, "y": 0.95, "width": 0.3, "height": 0.2},
    ]
    async with client() as c:
        response = await c.post(
            "/poster/generate",
            files=photo_files((400, 400), (600, 300)),
            data={"title": "Lamps", "layouts": json.dumps(layouts)},
        )
    assert response.status_code == 200
    assert response.content[:2] == b"\xff\xd8"


@pytest.mark.asyncio
async def test_generate_rejects_bad_layouts(output_dir):
    async with client() as c:
        wrong_count = await c.post(
            "/poster/generate",
            files=photo_files((400, 400)),
            data={"layouts": "[]"},
        )
        not_json = await c.post(
            "/poster/generate",
            files=photo_files((400, 400)),
            data={"layouts": "not json"},
        )

    assert wrong_count.status_code == 400
    assert not_json.status_code == 400


@pytest.mark.asyncio
async def test_generate_rejects_unreadable_photo(output_dir):
    async with client() as c:
        response = await c.post(
            "/poster/generate",
            files=[("images", ("bad.jpg", b"garbage", "image/jpeg"))],
            data={"title": "Broken"},
        )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_listing_details_endpoint():
    async with client() as c:
        response = await c.post("/listing/details", json={
            "fields": {"title": "Oak desk", "price": "0", "description": "Solid oak.", "location": "Deira, Dubai"},
            "locale": "en",
        })

    assert response.status_code == 200
    assert response.json()["text"] == "Oak desk\n\nPrice: FREE\n\nSolid oak.\n\nLocation: Deira, Dubai"


@pytest.mark.asyncio
async def test_suggest_without_key_is_unavailable(monkeypatch):
    monkeypatch.setattr(main, "gemini_client", GeminiClient(api_keys=[]))
    async with client() as c:
        response = await c.post("/suggest/title", json={"locale": "en", "max_length": 60})
    assert response.status_code == 503


@pytest.mark.asyncio
async def test_suggest_title_uses_client(monkeypatch):
    class FakeClient:
        def with_key(self, api_key):
            assert api_key == "user-key"
            return self

        async def suggest_title(self, request):
            return SuggestionResponse(text="Oak writing desk", max_length=request.max_length, model="fake")

    monkeypatch.setattr(main, "gemini_client", FakeClient())
    async with client() as c:
        response = await c.post(
            "/suggest/title",
            json={"locale": "en", "current_title": "desk"},
            headers={"X-Gemini-Api-Key": "user-key"},
        )

    assert response.status_code == 200
    assert response.json()["text"] == "Oak writing desk"
