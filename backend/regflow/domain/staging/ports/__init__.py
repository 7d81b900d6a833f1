"""Ports for the staging domain (hexagonal architecture)."""

from .canonical_store_port import CanonicalStorePort
from .staging_store_port import IMMUTABLE_FIELDS, StagingStorePort

__all__ = ["CanonicalStorePort", "StagingStorePort", "IMMUTABLE_FIELDS"]
