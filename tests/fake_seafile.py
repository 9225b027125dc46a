"""In-process fake Seafile server for integration tests."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

from aiohttp import web
from aiohttp.test_utils import TestServer

USERNAME = "user@example.com"
PASSWORD = "secret"


@dataclass
class ReceivedUpload:
    parent_dir: str
    filename: str
    content: bytes
    field_order: list[str]
    content_type: str


@dataclass
class FakeSeafile:
    libraries: list[dict[str, Any]] = field(
        default_factory=lambda: [
            {"id": "lib-1", "name": "My Library", "owner": USERNAME, "permission": "rw", "size": 10},
            {"id": "lib-2", "name": "Photos", "owner": "other@example.com", "permission": "r", "size": 0},
        ]
    )
    entries: list[dict[str, Any]] = field(
        default_factory=lambda: [
            {"id": "d1", "name": "docs", "type": "dir", "mtime": 1700000000},
            {"id": "f1", "name": "a.txt", "type": "file", "size": 3, "mtime": 1700000000},
        ]
    )
    valid_tokens: set[str] = field(default_factory=set)
    ping_status: int = 200
    ping_body: str = "pong"
    forbid_next: int = 0
    upload_status: int = 200
    login_count: int = 0
    requests: list[tuple[str, str]] = field(default_factory=list)
    dir_params: list[str] = field(default_factory=list)
    uploads: list[ReceivedUpload] = field(default_factory=list)

    def issue_token(self) -> str:
        token = f"token-{len(self.valid_tokens) + 1}"
        self.valid_tokens.add(token)
        return token

    def _authorized(self, request: web.Request) -> bool:
        if self.forbid_next > 0:
            self.forbid_next -= 1
            return False
        header = request.headers.get("Authorization", "")
        return header.startswith("Token ") and header[len("Token ") :] in self.valid_tokens

    @web.middleware
    async def _record(self, request: web.Request, handler: Any) -> web.StreamResponse:
        self.requests.append((request.method, request.path))
        return await handler(request)

    def _forbidden(self) -> web.Response:
        return web.json_response({"detail": "Invalid token"}, status=403)

    async def ping(self, request: web.Request) -> web.Response:
        if self.ping_status != 200:
            return web.Response(status=self.ping_status, text="busy")
        return web.json_response(self.ping_body)

    async def auth_ping(self, request: web.Request) -> web.Response:
        if not self._authorized(request):
            return self._forbidden()
        return web.json_response("pong")

    async def auth_token(self, request: web.Request) -> web.Response:
        form = await request.post()
        if form.get("username") != USERNAME or form.get("password") != PASSWORD:
            return web.json_response(
                {"non_field_errors": ["Unable to login with provided credentials."]},
                status=400,
            )
        self.login_count += 1
        return web.json_response({"token": self.issue_token()})

    async def repos(self, request: web.Request) -> web.Response:
        if not self._authorized(request):
            return self._forbidden()
        return web.json_response(self.libraries)

    def _find(self, repo_id: str) -> dict[str, Any] | None:
        return next((lib for lib in self.libraries if lib["id"] == repo_id), None)

    async def repo(self, request: web.Request) -> web.Response:
        if not self._authorized(request):
            return self._forbidden()
        library = self._find(request.match_info["repo_id"])
        if library is None:
            return web.json_response({"error_msg": "Library not found."}, status=404)
        detail = {k: v for k, v in library.items() if k != "id"}
        return web.json_response(detail)

    async def owner(self, request: web.Request) -> web.Response:
        if not self._authorized(request):
            return self._forbidden()
        library = self._find(request.match_info["repo_id"])
        if library is None:
            return web.json_response({"error_msg": "Library not found."}, status=404)
        return web.json_response({"owner": library["owner"]})

    async def directory(self, request: web.Request) -> web.Response:
        if not self._authorized(request):
            return self._forbidden()
        self.dir_params.append(request.query.get("p", ""))
        return web.json_response(self.entries)

    async def upload_link(self, request: web.Request) -> web.Response:
        if not self._authorized(request):
            return self._forbidden()
        return web.json_response(f"{request.scheme}://{request.host}/seafhttp/upload-api/one-time-key")

    async def upload(self, request: web.Request) -> web.Response:
        reader = await request.multipart()
        fields: dict[str, bytes] = {}
        order: list[str] = []
        async for part in reader:
            name = part.name or ""
            order.append(name)
            fields[name] = await part.read()
        self.uploads.append(
            ReceivedUpload(
                parent_dir=fields.get("parent_dir", b"").decode(),
                filename=fields.get("filename", b"").decode(),
                content=fields.get("file", b""),
                field_order=order,
                content_type=request.headers.get("Content-Type", ""),
            )
        )
        if self.upload_status != 200:
            return web.Response(status=self.upload_status, text="upload rejected")
        return web.Response(text="f1e2d3c4")

    def build_app(self) -> web.Application:
        app = web.Application(middlewares=[self._record], client_max_size=64 * 1024 * 1024)
        app.router.add_get("/api2/ping/", self.ping)
        app.router.add_get("/api2/auth/ping/", self.auth_ping)
        app.router.add_post("/api2/auth-token/", self.auth_token)
        app.router.add_get("/api2/repos/", self.repos)
        app.router.add_get("/api2/repos/{repo_id}/", self.repo)
        app.router.add_get("/api2/repos/{repo_id}/owner/", self.owner)
        app.router.add_get("/api2/repos/{repo_id}/dir/", self.directory)
        app.router.add_get("/api2/repos/{repo_id}/upload-link/", self.upload_link)
        app.router.add_post("/seafhttp/upload-api/{key}", self.upload)
        return app


@asynccontextmanager
async def running(fake: FakeSeafile) -> AsyncIterator[str]:
    """Serve *fake* on a local port and yield its base URL."""
    server = TestServer(fake.build_app())
    await server.start_server()
    try:
        yield str(server.make_url("")).rstrip("/")
    finally:
        await server.close()
