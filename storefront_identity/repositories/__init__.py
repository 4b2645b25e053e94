"""
Repository Layer Package.

Data-access abstractions over the Supabase RPC channel.  Services never
call ``db.supabase`` directly.

Usage:
    from storefront_identity.repositories.profile_repository import RemoteProfileStore
"""

from storefront_identity.repositories.base_repository import BaseRepository
from storefront_identity.repositories.profile_repository import (
    RemoteProfileStore,
    row_to_profile,
)

__all__ = [
    "BaseRepository",
    "RemoteProfileStore",
    "row_to_profile",
]
