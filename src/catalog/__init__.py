"""Learning catalog module.

Provides:
- Subject, video and playlist metadata
- Batch lookups used for progress enrichment
"""

from .models import (
    CATALOG_TABLES_CQL,
    Playlist,
    PlaylistVideo,
    Subject,
    Video,
)


__all__ = [
    "CATALOG_TABLES_CQL",
    "Playlist",
    "PlaylistVideo",
    "Subject",
    "Video",
]
