"""Shared fixtures: a small frontend build output and a client against it."""

import pytest
from httpx import AsyncClient, ASGITransport

from web_server.main import create_app
from web_server.resources import ResourceTable

INDEX_HTML = b"<h1>Hi</h1>"
APP_JS = b"console.log(1)"
STYLE_CSS = b"body { margin: 0; }"
LOGO_PNG = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR"


@pytest.fixture
def dist_dir(tmp_path):
    dist = tmp_path / "dist"
    (dist / "assets").mkdir(parents=True)
    (dist / "docs").mkdir()
    (dist / "index.html").write_bytes(INDEX_HTML)
    (dist / "app.js").write_bytes(APP_JS)
    (dist / "assets" / "style.css").write_bytes(STYLE_CSS)
    (dist / "assets" / "logo.png").write_bytes(LOGO_PNG)
    (dist / "docs" / "index.html").write_bytes(b"<h1>Docs</h1>")
    return dist


@pytest.fixture
def table(dist_dir):
    return ResourceTable.from_directory(dist_dir)


@pytest.fixture
async def client(table):
    transport = ASGITransport(app=create_app(table))
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
