# podverify/view.py
"""
HTML pages for the verification endpoint.

Neutral renders the login form; Error renders the message and, when a
return URL is known, a client-side countdown back to it.
"""

from http import HTTPStatus
from pathlib import Path
from typing import Tuple, Union

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .registry import owner_emails
from .verification import Error, Neutral, Rejected, VerificationOutcome

REDIRECT_SECONDS = 10

_TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

_env = Environment(
    loader=FileSystemLoader(str(_TEMPLATES_DIR)),
    autoescape=select_autoescape(["html", "xml"]),
)


def _form_page(form: Neutral, action: str, message: str = "") -> str:
    title = f"Log in to verify ownership of “{form.podcast.title}” to {form.return_host}"
    return _env.get_template("verify_form.html").render(
        page_title=title,
        podcast=form.podcast,
        return_scheme=form.return_scheme,
        return_host=form.return_host,
        # Every owner across the registry, not just this podcast's.
        emails=owner_emails(form.all_podcasts),
        action=action,
        message=message,
    )


def _error_page(error: Error) -> str:
    if error.podcast is not None:
        heading = f"Verify ownership of “{error.podcast.title}”"
    else:
        heading = "Verify ownership"
    status = error.status
    return _env.get_template("verify_error.html").render(
        page_title=f"Error: {status.value} {status.phrase}",
        heading=heading,
        message=error.message,
        return_url=error.return_url,
        countdown=REDIRECT_SECONDS,
    )


def render_verification(
    outcome: Union[VerificationOutcome, Rejected],
    action: str = "",
) -> Tuple[HTTPStatus, str]:
    """
    Render a verification outcome.

    Args:
        outcome: Neutral, Error, or Rejected (form shown again with a message)
        action: Form target; empty posts back to the current URL

    Returns:
        (status, html)
    """
    if isinstance(outcome, Neutral):
        return HTTPStatus.OK, _form_page(outcome, action)
    if isinstance(outcome, Rejected):
        return outcome.status, _form_page(outcome.form, action, outcome.message)
    if isinstance(outcome, Error):
        return outcome.status, _error_page(outcome)
    raise TypeError(f"Unknown verification outcome: {outcome!r}")
