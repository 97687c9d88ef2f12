"""Tests for request handlers and the HTTP server."""

import json
import socket
import xml.etree.ElementTree as ET
from http import HTTPStatus
from urllib.error import HTTPError
from urllib.parse import parse_qs, urlencode, urlparse
from urllib.request import HTTPRedirectHandler, Request, build_opener

import pytest

from podverify.app import handle_feed, handle_health, handle_verify
from podverify.feed import PODCAST_NAMESPACE
from podverify.keys import encrypt_challenge
from podverify.server import VerificationServer

RETURN_URL = "https://aggregator.example/callback"


class TestFeedHandler:
    """Test GET /feed/<slug>."""

    def test_every_registered_slug(self, ctx, registry, keys):
        for podcast in registry:
            response = handle_feed(ctx, podcast.slug)

            assert response.status == HTTPStatus.OK
            assert response.content_type.startswith("application/xml")
            root = ET.fromstring(response.body)
            verify = root.find(f"channel/{{{PODCAST_NAMESPACE}}}verify")
            assert verify.get("publicKey") == keys.public_key_encoded()

    def test_unknown_slug(self, ctx):
        assert handle_feed(ctx, "unknown").status == HTTPStatus.NOT_FOUND


class TestVerifyHandler:
    """Test GET and POST /feed/<slug>/verify."""

    def test_missing_return_url(self, ctx):
        response = handle_verify(ctx, "morning-show", {"challengeToken": "t"})

        assert response.status == HTTPStatus.BAD_REQUEST
        assert b"returnUrl" in response.body

    def test_invalid_return_url(self, ctx):
        response = handle_verify(ctx, "morning-show", {"challengeToken": "t", "returnUrl": "not a url"})
        assert response.status == HTTPStatus.BAD_REQUEST

    @pytest.mark.parametrize("return_url", [
        "javascript://x/%0Aalert(document.cookie)",
        "data:text/html,<script>alert(1)</script>",
    ])
    def test_script_return_url_not_redirected_to(self, ctx, return_url):
        response = handle_verify(ctx, "unknown", {"challengeToken": "t", "returnUrl": return_url})
        body = response.body.decode()

        assert response.status == HTTPStatus.BAD_REQUEST
        assert "<script>" not in body
        assert "window.location" not in body
        assert "javascript:" not in body

    def test_unknown_slug_redirects_back(self, ctx):
        response = handle_verify(ctx, "unknown", {"challengeToken": "t", "returnUrl": RETURN_URL})

        assert response.status == HTTPStatus.NOT_FOUND
        assert f'href="{RETURN_URL}"'.encode() in response.body

    def test_missing_token_names_podcast(self, ctx):
        response = handle_verify(ctx, "night-show", {"returnUrl": RETURN_URL})

        assert response.status == HTTPStatus.BAD_REQUEST
        assert "Night Show".encode() in response.body

    def test_valid_request_lists_all_owners(self, ctx):
        response = handle_verify(ctx, "night-show", {"challengeToken": "t", "returnUrl": RETURN_URL})
        body = response.body.decode()

        assert response.status == HTTPStatus.OK
        assert body.count('value="alice@example.com"') == 1
        assert body.count('value="bob@example.com"') == 1

    def test_post_verified_redirects_with_proof(self, ctx, keys):
        token = encrypt_challenge(keys.public_key_encoded(), "nonce-7")
        response = handle_verify(
            ctx,
            "night-show",
            {"challengeToken": token, "returnUrl": RETURN_URL},
            {"email": "alice@example.com", "password": "password123"},
        )

        assert response.status == HTTPStatus.SEE_OTHER
        location = response.headers["Location"]
        assert parse_qs(urlparse(location).query)["decryptedString"] == ["nonce-7"]

    def test_post_wrong_password(self, ctx):
        response = handle_verify(
            ctx,
            "night-show",
            {"challengeToken": "t", "returnUrl": RETURN_URL},
            {"email": "alice@example.com", "password": "nope"},
        )
        assert response.status == HTTPStatus.UNAUTHORIZED
        assert b'name="password"' in response.body

    def test_post_bad_token(self, ctx):
        response = handle_verify(
            ctx,
            "night-show",
            {"challengeToken": "opaque", "returnUrl": RETURN_URL},
            {"email": "alice@example.com", "password": "password123"},
        )
        assert response.status == HTTPStatus.BAD_REQUEST
        assert b"invalid challenge token" in response.body
        assert f'href="{RETURN_URL}"'.encode() in response.body


def test_health(ctx):
    response = handle_health(ctx)
    assert response.status == HTTPStatus.OK
    assert json.loads(response.body) == {"status": "ok", "podcasts": 3}


class _NoRedirect(HTTPRedirectHandler):
    def redirect_request(self, req, fp, code, msg, headers, newurl):
        return None


@pytest.fixture
def live_server(ctx):
    """Server on a free port in a background thread."""
    server = VerificationServer(ctx, port=0)
    server.start_background()
    yield server
    server.stop()


def fetch(url: str, data: bytes = None):
    """Return (status, headers, body) without following redirects."""
    opener = build_opener(_NoRedirect)
    try:
        with opener.open(Request(url, data=data), timeout=10) as response:
            return response.status, response.headers, response.read()
    except HTTPError as e:
        return e.code, e.headers, e.read()


class TestLiveServer:
    """End-to-end over HTTP."""

    def test_feed(self, live_server):
        status, headers, body = fetch(f"{live_server.url}/feed/morning-show")

        assert status == 200
        assert headers["Content-Type"].startswith("application/xml")
        assert b"/feed/morning-show/verify" in body

    def test_feed_not_found(self, live_server):
        status, _, _ = fetch(f"{live_server.url}/feed/unknown")
        assert status == 404

    def test_unknown_path(self, live_server):
        status, _, _ = fetch(f"{live_server.url}/nothing/here")
        assert status == 404

    def test_health(self, live_server):
        status, _, body = fetch(f"{live_server.url}/health")
        assert status == 200
        assert json.loads(body)["status"] == "ok"

    def test_verify_get(self, live_server):
        query = urlencode({"challengeToken": "t", "returnUrl": RETURN_URL})
        status, headers, body = fetch(f"{live_server.url}/feed/evening-show/verify?{query}")

        assert status == 200
        assert headers["Content-Type"].startswith("text/html")
        assert b"Evening Show" in body

    def test_full_handshake(self, live_server):
        """Aggregator reads the feed key, encrypts a nonce, owner logs in."""
        _, _, feed = fetch(f"{live_server.url}/feed/evening-show")
        verify = ET.fromstring(feed).find(f"channel/{{{PODCAST_NAMESPACE}}}verify")
        token = encrypt_challenge(verify.get("publicKey"), "aggregator-nonce")

        query = urlencode({"challengeToken": token, "returnUrl": RETURN_URL + "?state=s1"})
        form = urlencode({"email": "bob@example.com", "password": "password456"}).encode()
        status, headers, _ = fetch(f"{live_server.url}{verify.get('verifyUrl')}?{query}", data=form)

        assert status == 303
        redirect = urlparse(headers["Location"])
        assert f"{redirect.scheme}://{redirect.netloc}{redirect.path}" == RETURN_URL
        assert parse_qs(redirect.query) == {"state": ["s1"], "decryptedString": ["aggregator-nonce"]}

    def test_post_to_feed_not_allowed(self, live_server):
        status, _, _ = fetch(f"{live_server.url}/feed/evening-show", data=b"")
        assert status == 404


def raw_get(server: VerificationServer, path: str) -> bytes:
    """Everything the server writes for one GET, until it closes the connection."""
    with socket.create_connection((server.host, server.port), timeout=10) as sock:
        sock.sendall(f"GET {path} HTTP/1.0\r\nHost: {server.host}\r\n\r\n".encode())
        chunks = []
        while True:
            chunk = sock.recv(65536)
            if not chunk:
                break
            chunks.append(chunk)
    return b"".join(chunks)


class TestServerFailures:
    """A failing handler yields exactly one 500 response and the server keeps serving."""

    @pytest.fixture
    def broken_health(self, monkeypatch):
        def boom(ctx):
            raise RuntimeError("health check exploded")

        monkeypatch.setattr("podverify.server.handle_health", boom)

    def test_single_500_response(self, broken_health, live_server):
        raw = raw_get(live_server, "/health")

        assert raw.count(b"HTTP/1.0 ") == 1
        assert raw.startswith(b"HTTP/1.0 500")
        assert b"Internal Server Error" in raw

    def test_keeps_serving_after_failure(self, broken_health, live_server):
        raw_get(live_server, "/health")

        status, _, _ = fetch(f"{live_server.url}/feed/evening-show")
        assert status == 200
