from __future__ import annotations

import base64
import hashlib
import json
import os
import sys
from typing import Any, Dict, List, Set, Tuple

import httpx
import pytest


def pytest_configure():
    # Ensure `src/` is importable as top-level for `ghfs.*` imports
    root = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
    src_path = os.path.join(root, "src")
    if src_path not in sys.path:
        sys.path.insert(0, src_path)


API_BASE = "https://api.github.test"
OWNER = "octo"
REPO = "vault"


class FakeGitHub:
    """In-memory stand-in for the contents endpoint of one repository.

    Enforces GitHub's sha preconditions: updating or deleting an existing
    file needs its current sha (409 when stale, 422 when missing).
    """

    def __init__(self) -> None:
        self.files: Dict[str, Tuple[str, str]] = {}  # path -> (content_b64, sha)
        self.requests: List[Tuple[str, str, Any]] = []
        self.oversized: Set[str] = set()  # files served without an inline payload
        self._commits = 0

    # -------- helpers for tests --------
    def seed(self, path: str, raw: bytes) -> str:
        content = base64.b64encode(raw).decode("ascii")
        sha = hashlib.sha1(raw + path.encode()).hexdigest()
        self.files[path] = (content, sha)
        return sha

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=API_BASE, transport=httpx.MockTransport(self))

    # -------- transport handler --------
    def __call__(self, request: httpx.Request) -> httpx.Response:
        prefix = f"/repos/{OWNER}/{REPO}/contents/"
        if not request.url.path.startswith(prefix):
            return httpx.Response(404, json={"message": "Not Found"})
        path = request.url.path[len(prefix):]
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, path, body))

        if request.method == "GET":
            return self._get(path)
        if request.method == "PUT":
            return self._put(path, body)
        if request.method == "DELETE":
            return self._delete(path, body)
        return httpx.Response(405, json={"message": "Method Not Allowed"})

    def _file_json(self, path: str) -> Dict[str, Any]:
        content, sha = self.files[path]
        if path in self.oversized:
            # Contents API omits blobs above 1 MB
            return {
                "type": "file",
                "encoding": "none",
                "size": len(base64.b64decode(content)),
                "name": path.rsplit("/", 1)[-1],
                "path": path,
                "sha": sha,
                "content": "",
            }
        return {
            "type": "file",
            "encoding": "base64",
            "size": len(base64.b64decode(content)),
            "name": path.rsplit("/", 1)[-1],
            "path": path,
            "sha": sha,
            # GitHub wraps base64 payloads at 60 columns
            "content": "\n".join(content[i:i + 60] for i in range(0, len(content), 60)),
        }

    def _get(self, path: str) -> httpx.Response:
        path = path.rstrip("/")
        if path in self.files:
            return httpx.Response(200, json=self._file_json(path))

        prefix = f"{path}/" if path else ""
        children: Dict[str, str] = {}
        for key in self.files:
            if not key.startswith(prefix):
                continue
            rest = key[len(prefix):]
            name, _, tail = rest.partition("/")
            children[name] = "dir" if tail else "file"
        if not children:
            return httpx.Response(404, json={"message": "Not Found"})
        listing = [
            {"name": name, "path": f"{prefix}{name}", "type": kind, "sha": "x"}
            for name, kind in sorted(children.items())
        ]
        return httpx.Response(200, json=listing)

    def _commit(self) -> Dict[str, Any]:
        self._commits += 1
        return {"sha": f"commit-{self._commits}"}

    def _put(self, path: str, body: Dict[str, Any]) -> httpx.Response:
        existing = self.files.get(path)
        if existing is not None:
            if "sha" not in body:
                return httpx.Response(
                    422, json={"message": "Invalid request.\n\n\"sha\" wasn't supplied."}
                )
            if body["sha"] != existing[1]:
                return httpx.Response(
                    409, json={"message": f"{path} does not match {body['sha']}"}
                )
        raw = base64.b64decode(body["content"])
        sha = hashlib.sha1(raw + path.encode()).hexdigest()
        self.files[path] = (body["content"], sha)
        status = 200 if existing is not None else 201
        return httpx.Response(
            status, json={"content": self._file_json(path), "commit": self._commit()}
        )

    def _delete(self, path: str, body: Dict[str, Any]) -> httpx.Response:
        existing = self.files.get(path)
        if existing is None:
            return httpx.Response(404, json={"message": "Not Found"})
        if body.get("sha") != existing[1]:
            return httpx.Response(409, json={"message": f"{path} does not match"})
        del self.files[path]
        return httpx.Response(200, json={"content": None, "commit": self._commit()})


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()
