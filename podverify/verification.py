# podverify/verification.py
"""
Ownership verification requests.

An aggregator sends the owner to /feed/<slug>/verify with a challenge token
and a return URL. validate_request() runs the checks in a fixed order and
stops at the first failure, keeping whatever it had already resolved so the
error page can still send the browser back to the aggregator:

    1. returnUrl present
    2. returnUrl is an absolute http(s) URL
    3. returnUrl has a host
    4. slug is a registered podcast     (error keeps the return URL)
    5. challenge token present          (error keeps podcast and return URL)

submit_credentials() handles the form post that follows a Neutral outcome.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from http import HTTPStatus
from typing import Optional, Tuple, Union
from urllib.parse import ParseResult, parse_qsl, urlencode, urlparse, urlunparse

from .errors import InvalidChallengeError
from .keys import KeyPair
from .registry import OwnershipRegistry, Podcast

logger = logging.getLogger(__name__)

CHALLENGE_PARAM = "challengeToken"
CHALLENGE_PARAM_ALIASES = ("encryptedString",)
RETURN_URL_PARAM = "returnUrl"
PROOF_PARAM = "decryptedString"

RETURN_URL_SCHEMES = ("http", "https")


class ErrorKind(Enum):
    """Why a verification request failed."""
    MISSING_PARAMETER = "missing_parameter"
    INVALID_RETURN_URL = "invalid_return_url"
    INVALID_CHALLENGE = "invalid_challenge"
    PODCAST_NOT_FOUND = "podcast_not_found"

    @property
    def status(self) -> HTTPStatus:
        if self is ErrorKind.PODCAST_NOT_FOUND:
            return HTTPStatus.NOT_FOUND
        return HTTPStatus.BAD_REQUEST


@dataclass(frozen=True)
class Neutral:
    """Request is valid: show the login form."""
    podcast: Podcast
    all_podcasts: Tuple[Podcast, ...]
    return_scheme: str
    return_host: str
    return_url: str


@dataclass(frozen=True)
class Error:
    """Request failed. podcast and return_url hold whatever was resolved first."""
    kind: ErrorKind
    message: str
    podcast: Optional[Podcast] = None
    return_url: Optional[str] = None

    @property
    def status(self) -> HTTPStatus:
        return self.kind.status


VerificationOutcome = Union[Neutral, Error]


@dataclass(frozen=True)
class Verified:
    """Owner logged in and the challenge decrypted: redirect with proof."""
    podcast: Podcast
    redirect_url: str


@dataclass(frozen=True)
class Rejected:
    """Credentials did not match the podcast owner: show the form again."""
    form: Neutral
    message: str

    @property
    def status(self) -> HTTPStatus:
        return HTTPStatus.UNAUTHORIZED


SubmissionOutcome = Union[Verified, Rejected, Error]


def _present(value: Optional[str]) -> Optional[str]:
    if value is None or value == "":
        return None
    return value


def _parse_absolute_url(value: str) -> Optional[ParseResult]:
    """Parse an absolute http(s) URL, or return None."""
    if any(ch.isspace() or ord(ch) < 0x20 for ch in value):
        return None
    try:
        parsed = urlparse(value)
    except ValueError:
        return None
    # http(s) only: the URL is rendered as a link and a script redirect.
    if parsed.scheme.lower() not in RETURN_URL_SCHEMES:
        return None
    return parsed


def _host_port(parsed: ParseResult) -> Optional[str]:
    """host[:port] of a parsed URL, or None if it has no usable host."""
    try:
        hostname = parsed.hostname
        port = parsed.port
    except ValueError:
        return None
    if not hostname:
        return None
    if ":" in hostname:
        hostname = f"[{hostname}]"
    return f"{hostname}:{port}" if port is not None else hostname


def challenge_from_params(params: dict) -> Optional[str]:
    """Challenge token from query params, accepting the legacy name."""
    token = _present(params.get(CHALLENGE_PARAM))
    if token is None:
        for alias in CHALLENGE_PARAM_ALIASES:
            token = _present(params.get(alias))
            if token is not None:
                break
    return token


def validate_request(
    registry: OwnershipRegistry,
    slug: str,
    challenge_token: Optional[str],
    return_url: Optional[str],
) -> VerificationOutcome:
    """
    Turn raw verification parameters into an outcome.

    Args:
        registry: Registry to resolve the slug against
        slug: Podcast slug from the path
        challenge_token: Opaque token from the aggregator (presence only)
        return_url: Where to send the browser back to

    Returns:
        Neutral if every check passed, otherwise the first Error
    """
    return_url = _present(return_url)
    if return_url is None:
        logger.info(f"Verify {slug}: returnUrl missing")
        return Error(ErrorKind.MISSING_PARAMETER, f"{RETURN_URL_PARAM} required")

    parsed = _parse_absolute_url(return_url)
    if parsed is None:
        logger.info(f"Verify {slug}: returnUrl {return_url!r} is not absolute")
        return Error(ErrorKind.INVALID_RETURN_URL, f"invalid {RETURN_URL_PARAM}")

    host = _host_port(parsed)
    if host is None:
        logger.info(f"Verify {slug}: returnUrl {return_url!r} has no host")
        return Error(ErrorKind.INVALID_RETURN_URL, f"invalid {RETURN_URL_PARAM}")

    podcast = registry.get(slug)
    if podcast is None:
        logger.info(f"Verify {slug}: podcast not found")
        return Error(ErrorKind.PODCAST_NOT_FOUND, "podcast not found", return_url=return_url)

    if _present(challenge_token) is None:
        logger.info(f"Verify {slug}: challenge token missing")
        return Error(
            ErrorKind.MISSING_PARAMETER,
            "challenge token required",
            podcast=podcast,
            return_url=return_url,
        )

    logger.debug(f"Verify {slug}: request valid, returning to {host}")
    return Neutral(
        podcast=podcast,
        all_podcasts=registry.list(),
        return_scheme=parsed.scheme,
        return_host=host,
        return_url=return_url,
    )


def append_proof(return_url: str, proof: str) -> str:
    """Add decryptedString to a return URL, keeping its existing query."""
    parsed = urlparse(return_url)
    query = parse_qsl(parsed.query, keep_blank_values=True)
    query.append((PROOF_PARAM, proof))
    return urlunparse(parsed._replace(query=urlencode(query)))


def submit_credentials(
    registry: OwnershipRegistry,
    keys: KeyPair,
    slug: str,
    challenge_token: Optional[str],
    return_url: Optional[str],
    email: Optional[str],
    password: Optional[str],
) -> SubmissionOutcome:
    """
    Complete verification from the login form.

    The request is validated exactly as for GET. The credentials must belong
    to the owner of this podcast; only then is the challenge decrypted and
    handed back to the aggregator on the return URL.
    """
    outcome = validate_request(registry, slug, challenge_token, return_url)
    if isinstance(outcome, Error):
        return outcome

    podcast = outcome.podcast
    if not email or not password or not podcast.owner.matches(email, password):
        logger.warning(f"Verify {slug}: rejected credentials for {email!r}")
        return Rejected(form=outcome, message="Incorrect email or password.")

    try:
        proof = keys.decrypt_challenge(_present(challenge_token))
    except InvalidChallengeError as e:
        logger.warning(f"Verify {slug}: {e}")
        return Error(
            ErrorKind.INVALID_CHALLENGE,
            "invalid challenge token",
            podcast=podcast,
            return_url=outcome.return_url,
        )

    logger.info(f"Verify {slug}: ownership confirmed for {outcome.return_host}")
    return Verified(podcast=podcast, redirect_url=append_proof(outcome.return_url, proof))
