from urllib.parse import parse_qs

import httpx
import pytest
from fastapi.testclient import TestClient

from commentboard.config import Settings
from commentboard.main import create_app
from commentboard.proxy import create_proxy_app
from commentboard.storage import CommentStore, MemoryObjectStore

SECRET = "s3cret"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        auth_key_secret=SECRET,
        store_backend="memory",
        store_data_dir=tmp_path,
        proxy_url="http://testserver/comments.json",
        turnstile_secret_key="turnstile-secret",
        turnstile_site_key="site-key",
        session_secret="test-session",
        write_attempts=5,
    )


@pytest.fixture
def object_store():
    return MemoryObjectStore()


@pytest.fixture
def comment_store(object_store, settings):
    return CommentStore(object_store, settings.store_key, settings.write_attempts)


@pytest.fixture
def proxy(settings, comment_store):
    return TestClient(create_proxy_app(settings, comment_store))


@pytest.fixture
def auth():
    return {"X-Custom-Auth-Key": SECRET}


@pytest.fixture
def verify_requests():
    return []


@pytest.fixture
def verify_http(verify_requests):
    def siteverify(request):
        verify_requests.append(request)
        form = parse_qs(request.content.decode())
        if form.get("response") == ["good-token"]:
            return httpx.Response(200, json={"success": True, "hostname": "example.com"})
        return httpx.Response(200, json={"success": False, "error-codes": ["invalid-input-response"]})

    return httpx.Client(transport=httpx.MockTransport(siteverify))


@pytest.fixture
def site(settings, proxy, verify_http):
    app = create_app(settings, proxy_http=proxy, verify_http=verify_http, serve_proxy=False)
    return TestClient(app)


@pytest.fixture
def verified_site(site):
    resp = site.post("/verify", data={"cf-turnstile-response": "good-token"})
    assert resp.status_code == 200
    return site
