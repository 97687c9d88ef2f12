# podverify/registry/registry.py
"""
Ownership registry.

Maps podcast slugs to the podcast record and the customer who owns it.
Built once at startup and never mutated, so request handlers share it
without locking.
"""

import hmac
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

import yaml

from ..errors import PodcastNotFoundError, RegistryConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Customer:
    """
    A hosting customer.

    Attributes:
        email: Login email, also offered as a form suggestion
        credential: Password in cleartext (demo data only, never do this for real)
    """
    email: str
    credential: str

    def matches(self, email: str, credential: str) -> bool:
        """Constant-time credential check."""
        email_ok = hmac.compare_digest(email.strip().lower().encode(), self.email.lower().encode())
        credential_ok = hmac.compare_digest(credential.encode(), self.credential.encode())
        return email_ok and credential_ok

    def __repr__(self) -> str:
        return f"Customer(email={self.email!r})"


@dataclass(frozen=True)
class Podcast:
    """A hosted podcast. The slug is its unique key."""
    title: str
    slug: str
    owner: Customer

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Podcast":
        try:
            owner = data["owner"]
            return cls(
                title=str(data["title"]),
                slug=str(data["slug"]),
                owner=Customer(email=str(owner["email"]), credential=str(owner["password"])),
            )
        except (KeyError, TypeError) as e:
            raise RegistryConfigError(f"Invalid podcast entry {data!r}: missing {e}") from e


def owner_emails(podcasts: Iterable[Podcast]) -> List[str]:
    """Owner emails without duplicates, first occurrence wins."""
    seen = set()
    emails = []
    for podcast in podcasts:
        email = podcast.owner.email
        if email.lower() not in seen:
            seen.add(email.lower())
            emails.append(email)
    return emails


class OwnershipRegistry:
    """
    Read-only slug -> Podcast mapping.

    Usage:
        registry = OwnershipRegistry([podcast_a, podcast_b])
        registry.get("alice-podcast")
    """

    def __init__(self, podcasts: Iterable[Podcast]):
        self._podcasts: Dict[str, Podcast] = {}
        for podcast in podcasts:
            if not podcast.slug:
                raise ValueError(f"Podcast {podcast.title!r} has an empty slug")
            if podcast.slug in self._podcasts:
                raise ValueError(f"Duplicate podcast slug {podcast.slug!r}")
            self._podcasts[podcast.slug] = podcast
        self._ordered: Tuple[Podcast, ...] = tuple(self._podcasts.values())

    def get(self, slug: str) -> Optional[Podcast]:
        """Get a podcast by slug."""
        return self._podcasts.get(slug)

    def require(self, slug: str) -> Podcast:
        """Get a podcast by slug or raise PodcastNotFoundError."""
        podcast = self._podcasts.get(slug)
        if podcast is None:
            raise PodcastNotFoundError(slug)
        return podcast

    def list(self) -> Tuple[Podcast, ...]:
        """All podcasts in registration order."""
        return self._ordered

    def __contains__(self, slug: str) -> bool:
        return slug in self._podcasts

    def __len__(self) -> int:
        return len(self._podcasts)

    def __iter__(self) -> Iterator[Podcast]:
        return iter(self._ordered)

    @classmethod
    def from_yaml(cls, yaml_content: str) -> "OwnershipRegistry":
        """
        Build a registry from YAML.

        Expected layout:
            podcasts:
              - title: Alice's Podcast
                slug: alice-podcast
                owner:
                  email: alice@example.com
                  password: password123
        """
        try:
            data = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise RegistryConfigError(f"Invalid podcasts YAML: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("podcasts"), list):
            raise RegistryConfigError("Podcasts YAML must contain a 'podcasts' list")

        podcasts = [Podcast.from_dict(entry) for entry in data["podcasts"]]
        try:
            return cls(podcasts)
        except ValueError as e:
            raise RegistryConfigError(str(e)) from e

    @classmethod
    def from_file(cls, path: Path | str) -> "OwnershipRegistry":
        """Load a registry from a YAML file."""
        path = Path(path)
        with open(path) as f:
            registry = cls.from_yaml(f.read())
        logger.info(f"Loaded {len(registry)} podcasts from {path}")
        return registry


def demo_registry() -> OwnershipRegistry:
    """The two demo customers the service ships with."""
    alice = Customer(email="alice@example.com", credential="password123")
    bob = Customer(email="bob@example.com", credential="password456")
    return OwnershipRegistry([
        Podcast(title="Alice's Podcast", slug="alice-podcast", owner=alice),
        Podcast(title="Bob's Podcast", slug="bob-podcast", owner=bob),
    ])
