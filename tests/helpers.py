"""Fake registry backends served by aiohttp for client tests."""

import base64
import json

from aiohttp import web

CONFIG_DIGEST = "sha256:" + "c" * 64
AMD64_DIGEST = "sha256:" + "a" * 64
ARM64_DIGEST = "sha256:" + "b" * 64

DOCKER_MANIFEST_V2 = "application/vnd.docker.distribution.manifest.v2+json"
OCI_INDEX_V1 = "application/vnd.oci.image.index.v1+json"


def image_manifest(config_digest: str = CONFIG_DIGEST, sizes=(10, 20)) -> dict:
    """Single-platform manifest with the given layer sizes."""
    return {
        "schemaVersion": 2,
        "mediaType": DOCKER_MANIFEST_V2,
        "config": {"digest": config_digest, "size": 100},
        "layers": [{"digest": f"sha256:{i}", "size": size} for i, size in enumerate(sizes)],
    }


def image_index() -> dict:
    """Multi-platform index pointing at an arm64 and an amd64 manifest."""
    return {
        "schemaVersion": 2,
        "mediaType": OCI_INDEX_V1,
        "manifests": [
            {
                "digest": ARM64_DIGEST,
                "mediaType": DOCKER_MANIFEST_V2,
                "platform": {"os": "linux", "architecture": "arm64"},
            },
            {
                "digest": AMD64_DIGEST,
                "mediaType": DOCKER_MANIFEST_V2,
                "platform": {"os": "linux", "architecture": "amd64"},
            },
        ],
    }


def image_config() -> dict:
    """Config blob with two layer-producing steps and one empty step."""
    return {
        "architecture": "amd64",
        "os": "linux",
        "history": [
            {"created": "2024-01-01T00:00:00Z", "created_by": "ADD rootfs.tar /"},
            {"created": "2024-01-02T00:00:00.123456789Z", "created_by": "RUN apk add curl "},
            {
                "created": "2024-01-03T00:00:00Z",
                "created_by": 'CMD ["sh"]',
                "comment": " buildkit ",
                "empty_layer": True,
            },
        ],
    }


class FakeRegistry:
    """Docker Registry V2 API guarded by bearer tokens.

    Unauthenticated requests get a 401 with a bearer challenge pointing at
    ``/token`` on the same server. The token endpoint accepts GET (anonymous)
    and POST (form grants) and records every call.
    """

    def __init__(
        self,
        token: str = "secret-token",
        service: str = "registry.test",
        challenge_scope: str = "",
        refresh_token: str = "",
        require_auth: bool = True,
    ):
        self.token = token
        self.service = service
        self.challenge_scope = challenge_scope
        self.refresh_token = refresh_token
        self.require_auth = require_auth
        self.catalog: list[str] = []
        self.tags: dict[str, list[str]] = {}
        self.manifests: dict[tuple[str, str], dict] = {}
        self.blobs: dict[tuple[str, str], dict] = {}
        self.token_requests: list[dict] = []
        self.unauthorized = 0
        self.reject_tokens = False

    def add_image(self, name: str, tags: list[str]) -> None:
        self.catalog.append(name)
        self.tags[name] = list(tags)

    def challenge(self, request: web.Request) -> str:
        realm = str(request.url.with_path("/token").with_query(None))
        value = f'Bearer realm="{realm}",service="{self.service}"'
        if self.challenge_scope:
            value += f',scope="{self.challenge_scope}"'
        return value

    def authorized(self, request: web.Request) -> bool:
        if not self.require_auth:
            return True
        if self.reject_tokens:
            return False
        return request.headers.get("Authorization") == f"Bearer {self.token}"

    def unauthorized_response(self, request: web.Request) -> web.Response:
        self.unauthorized += 1
        return web.json_response(
            {"errors": [{"code": "UNAUTHORIZED"}]},
            status=401,
            headers={"WWW-Authenticate": self.challenge(request)},
        )

    async def handle_token(self, request: web.Request) -> web.Response:
        form = dict(await request.post()) if request.method == "POST" else {}
        self.token_requests.append(
            {"method": request.method, "query": dict(request.query), "form": form}
        )
        payload = {"token": self.token, "expires_in": 300}
        if self.refresh_token:
            payload["refresh_token"] = self.refresh_token
        return web.json_response(payload)

    async def handle_catalog(self, request: web.Request) -> web.Response:
        if not self.authorized(request):
            return self.unauthorized_response(request)
        return web.json_response({"repositories": self.catalog})

    async def handle_tags(self, request: web.Request) -> web.Response:
        if not self.authorized(request):
            return self.unauthorized_response(request)
        name = request.match_info["name"]
        if name not in self.tags:
            return web.json_response({"errors": [{"code": "NAME_UNKNOWN"}]}, status=404)
        return web.json_response({"name": name, "tags": self.tags[name]})

    async def handle_manifest(self, request: web.Request) -> web.Response:
        if not self.authorized(request):
            return self.unauthorized_response(request)
        key = (request.match_info["name"], request.match_info["reference"])
        if key not in self.manifests:
            return web.json_response({"errors": [{"code": "MANIFEST_UNKNOWN"}]}, status=404)
        manifest = self.manifests[key]
        return web.Response(
            text=json.dumps(manifest),
            content_type="application/json",
            headers={"Docker-Content-Type": manifest.get("mediaType", "")},
        )

    async def handle_blob(self, request: web.Request) -> web.Response:
        if not self.authorized(request):
            return self.unauthorized_response(request)
        key = (request.match_info["name"], request.match_info["digest"])
        if key not in self.blobs:
            return web.json_response({"errors": [{"code": "BLOB_UNKNOWN"}]}, status=404)
        return web.json_response(self.blobs[key])

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_route("*", "/token", self.handle_token)
        app.router.add_get("/v2/_catalog", self.handle_catalog)
        app.router.add_get("/v2/{name:.+}/tags/list", self.handle_tags)
        app.router.add_get("/v2/{name:.+}/manifests/{reference}", self.handle_manifest)
        app.router.add_get("/v2/{name:.+}/blobs/{digest}", self.handle_blob)
        return app


def basic_credentials(request: web.Request) -> tuple[str, str] | None:
    """Decode the basic auth header of a request."""
    header = request.headers.get("Authorization", "")
    if not header.startswith("Basic "):
        return None
    username, _, password = base64.b64decode(header[6:]).decode().partition(":")
    return username, password
