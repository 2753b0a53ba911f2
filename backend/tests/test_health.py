import asyncio

import httpx
from fastapi import status
from httpx import ASGITransport

from dermascan.main import app


async def test_health_endpoint() -> None:
    async with httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/health")
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "ok"}


def test_health_sync() -> None:
    asyncio.run(test_health_endpoint())


async def test_index_page_served() -> None:
    async with httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/")
    assert response.status_code == status.HTTP_200_OK
    assert response.headers["content-type"].startswith("text/html")
    assert "/api/v1/sessions" in response.text


async def _index_page() -> str:
    async with httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/")
    return response.text


async def test_index_page_renders_model_text_as_text() -> None:
    page = await _index_page()
    assert "innerHTML" not in page
    assert "insertAdjacentHTML" not in page
    assert "textContent" in page


async def test_index_page_keeps_a_file_input_after_upload() -> None:
    page = await _index_page()
    assert 'id="file"' in page
    assert 'id="change"' in page
    assert "Change Photo" in page
    assert 'for (const id of ["file", "change"])' in page


async def test_index_page_updates_selection_in_place() -> None:
    page = await _index_page()
    assert "function applySelection(view)" in page
    assert "classList.toggle(\"active\"" in page
    assert "if (resultKey !== shownResult)" in page


async def test_index_page_closes_its_session() -> None:
    page = await _index_page()
    assert '"pagehide"' in page
    assert 'method: "DELETE", keepalive: true' in page
