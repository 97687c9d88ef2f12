#!/usr/bin/env python3
"""
podverify CLI

Commands:
  podverify serve     - Run the hosting service
  podverify keygen    - Write a new service private key
  podverify feed      - Print a podcast's feed
  podverify challenge - Encrypt a challenge for a feed's public key (aggregator side)

Usage:
  podverify serve [--host H] [--port P] [--base-url URL] [--podcasts FILE] [--key-file FILE]
  podverify keygen <path>
  podverify feed <slug> [--podcasts FILE] [--key-file FILE]
  podverify challenge <public-key> <plaintext>
"""

import argparse
import logging
import sys
from pathlib import Path

from .app import AppContext
from .errors import KeyGenerationError, PodcastNotFoundError, RegistryConfigError
from .feed import publish_feed
from .keys import KeyPair, encrypt_challenge
from .registry import OwnershipRegistry, demo_registry

logger = logging.getLogger(__name__)


def load_registry(path) -> OwnershipRegistry:
    """Registry from a YAML file, or the demo registry when no file is given."""
    if path:
        return OwnershipRegistry.from_file(Path(path))
    logger.info("No podcasts file given, using demo registry")
    return demo_registry()


def load_keys(path) -> KeyPair:
    """Keypair from a PEM file, or a freshly generated one."""
    if path:
        return KeyPair.load(Path(path))
    return KeyPair.generate()


def build_context(args) -> AppContext:
    """Startup state. Raises KeyGenerationError or RegistryConfigError."""
    registry = load_registry(args.podcasts)
    keys = load_keys(args.key_file)
    return AppContext(registry=registry, keys=keys, base_url=getattr(args, "base_url", "") or "")


def cmd_serve(args):
    """Run the HTTP service."""
    from .server import VerificationServer

    ctx = build_context(args)
    base = ctx.base_url or f"http://{args.host}:{args.port}"
    for podcast in ctx.registry:
        logger.info(f"Hosting {podcast.title}: {base}/feed/{podcast.slug}")

    server = VerificationServer(ctx, host=args.host, port=args.port)
    server.start()


def cmd_keygen(args):
    """Generate and save a private key."""
    path = Path(args.path)
    if path.exists() and not args.force:
        print(f"Error: {path} exists (use --force to overwrite)", file=sys.stderr)
        sys.exit(1)
    keys = KeyPair.generate(key_size=args.bits)
    keys.save(path)
    print(f"Private key written to: {path}")
    print(f"Public key: {keys.public_key_encoded()}")


def cmd_feed(args):
    """Print the feed for a slug."""
    ctx = build_context(args)
    try:
        print(publish_feed(ctx.registry, args.slug, ctx.public_key_encoded, ctx.base_url))
    except PodcastNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def cmd_challenge(args):
    """Encrypt a challenge with a feed's publicKey attribute."""
    try:
        print(encrypt_challenge(args.public_key, args.plaintext))
    except ValueError as e:
        print(f"Error: invalid public key: {e}", file=sys.stderr)
        sys.exit(1)


def _add_state_args(subparser):
    subparser.add_argument("--podcasts", help="Podcasts YAML file (default: demo podcasts)")
    subparser.add_argument("--key-file", help="PEM private key (default: generate at startup)")
    subparser.add_argument("--base-url", default="",
                           help="Absolute prefix for verifyUrl in feeds (default: relative)")


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="podverify",
        description="Podcast hosting service with feed ownership verification",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Run the hosting service")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    serve_parser.add_argument("--port", type=int, default=8081, help="Port to bind to")
    _add_state_args(serve_parser)

    # keygen command
    keygen_parser = subparsers.add_parser("keygen", help="Write a new private key")
    keygen_parser.add_argument("path", help="Output PEM file")
    keygen_parser.add_argument("--bits", type=int, default=2048, help="RSA key size")
    keygen_parser.add_argument("--force", action="store_true", help="Overwrite existing file")

    # feed command
    feed_parser = subparsers.add_parser("feed", help="Print a podcast feed")
    feed_parser.add_argument("slug", help="Podcast slug")
    _add_state_args(feed_parser)

    # challenge command
    challenge_parser = subparsers.add_parser("challenge", help="Encrypt a challenge token")
    challenge_parser.add_argument("public_key", help="publicKey attribute from a feed")
    challenge_parser.add_argument("plaintext", help="String the service must decrypt")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    commands = {
        "serve": cmd_serve,
        "keygen": cmd_keygen,
        "feed": cmd_feed,
        "challenge": cmd_challenge,
    }
    command = commands.get(args.command)
    if command is None:
        parser.print_help()
        sys.exit(1)

    try:
        command(args)
    except KeyGenerationError as e:
        # No key, no service.
        logger.critical(str(e))
        sys.exit(1)
    except (RegistryConfigError, OSError) as e:
        logger.error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
