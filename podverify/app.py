# podverify/app.py
"""
Request handlers.

Handlers are plain functions of an AppContext and the parsed request. The
context is built once at startup and passed to every call; nothing here
reads module-level state.
"""

import json
import logging
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Dict, Mapping, Optional

from .errors import PodcastNotFoundError
from .feed import publish_feed
from .keys import KeyPair
from .registry import OwnershipRegistry
from .verification import (
    RETURN_URL_PARAM,
    Verified,
    challenge_from_params,
    submit_credentials,
    validate_request,
)
from .view import render_verification

logger = logging.getLogger(__name__)

HTML = "text/html; charset=utf-8"
XML = "application/xml; charset=utf-8"
JSON = "application/json"


@dataclass(frozen=True)
class AppContext:
    """Immutable startup state shared by all requests."""
    registry: OwnershipRegistry
    keys: KeyPair
    base_url: str = ""
    public_key_encoded: str = field(init=False)

    def __post_init__(self):
        # Encoded once; the keypair never changes.
        object.__setattr__(self, "public_key_encoded", self.keys.public_key_encoded())


@dataclass
class Response:
    """A response ready to be written by the server."""
    status: HTTPStatus
    body: bytes = b""
    content_type: str = HTML
    headers: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def html(cls, status: HTTPStatus, text: str) -> "Response":
        return cls(status=status, body=text.encode("utf-8"))

    @classmethod
    def json(cls, data, status: HTTPStatus = HTTPStatus.OK) -> "Response":
        return cls(status=status, body=json.dumps(data).encode("utf-8"), content_type=JSON)

    @classmethod
    def redirect(cls, location: str) -> "Response":
        return cls(status=HTTPStatus.SEE_OTHER, headers={"Location": location})

    @classmethod
    def not_found(cls) -> "Response":
        return cls.html(HTTPStatus.NOT_FOUND, "<h1>Not Found</h1>")


def handle_feed(ctx: AppContext, slug: str) -> Response:
    """GET /feed/<slug>"""
    try:
        document = publish_feed(ctx.registry, slug, ctx.public_key_encoded, ctx.base_url)
    except PodcastNotFoundError:
        logger.info(f"Feed {slug}: not found")
        return Response.not_found()
    return Response(status=HTTPStatus.OK, body=document.encode("utf-8"), content_type=XML)


def handle_verify(
    ctx: AppContext,
    slug: str,
    query: Mapping[str, str],
    form: Optional[Mapping[str, str]] = None,
) -> Response:
    """
    GET or POST /feed/<slug>/verify

    Args:
        ctx: Startup state
        slug: Podcast slug from the path
        query: First value of each query parameter
        form: Submitted form fields for POST, None for GET
    """
    challenge_token = challenge_from_params(query)
    return_url = query.get(RETURN_URL_PARAM)

    if form is None:
        outcome = validate_request(ctx.registry, slug, challenge_token, return_url)
    else:
        outcome = submit_credentials(
            ctx.registry,
            ctx.keys,
            slug,
            challenge_token,
            return_url,
            form.get("email"),
            form.get("password"),
        )
        if isinstance(outcome, Verified):
            return Response.redirect(outcome.redirect_url)

    status, page = render_verification(outcome)
    return Response.html(status, page)


def handle_health(ctx: AppContext) -> Response:
    """GET /health"""
    return Response.json({"status": "ok", "podcasts": len(ctx.registry)})
