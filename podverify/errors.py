# podverify/errors.py
"""Exceptions raised by podverify."""


class PodverifyError(Exception):
    """Base class for podverify errors."""


class PodcastNotFoundError(PodverifyError, LookupError):
    """No podcast is registered under the requested slug."""

    def __init__(self, slug: str):
        super().__init__(f"No podcast with slug {slug!r}")
        self.slug = slug


class KeyGenerationError(PodverifyError):
    """The service keypair could not be generated or loaded. Fatal."""


class InvalidChallengeError(PodverifyError, ValueError):
    """A challenge token could not be decoded or decrypted."""


class RegistryConfigError(PodverifyError, ValueError):
    """A podcasts file is malformed."""
