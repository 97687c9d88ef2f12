# podverify/feed.py
"""
Public podcast feed.

Each feed carries a <podcast:verify> element telling aggregators where to
send owners for verification and which key to encrypt challenges with.
"""

import xml.etree.ElementTree as ET

from .registry import OwnershipRegistry, Podcast

PODCAST_NAMESPACE = "https://podcastindex.org/namespace/1.0"

ET.register_namespace("podcast", PODCAST_NAMESPACE)


def verify_path(slug: str) -> str:
    """Path of the verification endpoint for a podcast."""
    return f"/feed/{slug}/verify"


def render_feed(podcast: Podcast, public_key_encoded: str, base_url: str = "") -> str:
    """
    Render a podcast's RSS feed.

    Args:
        podcast: The podcast to publish
        public_key_encoded: Service public key without PEM framing
        base_url: Prefix for verifyUrl (empty for a relative URL)

    Returns:
        XML document as a string
    """
    rss = ET.Element("rss", {"version": "2.0"})
    channel = ET.SubElement(rss, "channel")
    ET.SubElement(channel, "title").text = podcast.title
    ET.SubElement(
        channel,
        f"{{{PODCAST_NAMESPACE}}}verify",
        {
            "verifyUrl": base_url.rstrip("/") + verify_path(podcast.slug),
            "publicKey": public_key_encoded,
        },
    )
    ET.indent(rss)
    return ET.tostring(rss, encoding="UTF-8", xml_declaration=True).decode("utf-8")


def publish_feed(
    registry: OwnershipRegistry,
    slug: str,
    public_key_encoded: str,
    base_url: str = "",
) -> str:
    """Render the feed for a slug. Raises PodcastNotFoundError if unknown."""
    return render_feed(registry.require(slug), public_key_encoded, base_url)
