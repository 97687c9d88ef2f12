# podverify/registry/__init__.py
"""
Ownership registry.

Maps podcast slugs to podcasts and their owning customers.

Example:
    registry = OwnershipRegistry.from_file("podcasts.yaml")
    podcast = registry.get("alice-podcast")
    podcast.owner.email
"""

from .registry import Customer, Podcast, OwnershipRegistry, demo_registry, owner_emails

__all__ = ["Customer", "Podcast", "OwnershipRegistry", "demo_registry", "owner_emails"]
