# podverify - Podcast hosting service with feed ownership verification
#
# A hosting company proves to a third-party aggregator that one of its
# customers owns a podcast feed. The feed publishes the service's public key;
# the aggregator sends the owner to the verify endpoint with an encrypted
# challenge and a return URL; the owner logs in and is sent back with the
# decrypted challenge.
#
# Core concepts:
# - KeyPair: The service's RSA keypair, fixed for the process lifetime
# - OwnershipRegistry: Podcasts by slug, each with one owning customer
# - Feed: RSS document carrying <podcast:verify>
# - Outcome: Neutral (show login form) or Error (show message, redirect back)

from .errors import (
    PodverifyError,
    PodcastNotFoundError,
    KeyGenerationError,
    InvalidChallengeError,
    RegistryConfigError,
)
from .keys import KeyPair, pem_to_base64, base64_to_pem, encrypt_challenge
from .registry import Customer, Podcast, OwnershipRegistry, demo_registry
from .feed import render_feed, publish_feed
from .verification import (
    ErrorKind,
    Neutral,
    Error,
    Verified,
    Rejected,
    validate_request,
    submit_credentials,
)
from .view import render_verification
from .app import AppContext, Response, handle_feed, handle_verify

__all__ = [
    # Errors
    "PodverifyError",
    "PodcastNotFoundError",
    "KeyGenerationError",
    "InvalidChallengeError",
    "RegistryConfigError",
    # Keys
    "KeyPair",
    "pem_to_base64",
    "base64_to_pem",
    "encrypt_challenge",
    # Registry
    "Customer",
    "Podcast",
    "OwnershipRegistry",
    "demo_registry",
    # Feed
    "render_feed",
    "publish_feed",
    # Verification
    "ErrorKind",
    "Neutral",
    "Error",
    "Verified",
    "Rejected",
    "validate_request",
    "submit_credentials",
    "render_verification",
    # Handlers
    "AppContext",
    "Response",
    "handle_feed",
    "handle_verify",
]

__version__ = "0.1.0"
