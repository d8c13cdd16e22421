"""Video watch progress module.

Provides:
- Idempotent per-(user, video) progress records with sticky completion
- Playlist completion toggles
- Per-user counters and learning statistics
"""

from .models import (
    COMPLETION_THRESHOLD,
    PROGRESS_TABLES_CQL,
    ProgressReport,
    UserLearningStats,
    WatchProgress,
    WatchProgressStatus,
)


__all__ = [
    "COMPLETION_THRESHOLD",
    "PROGRESS_TABLES_CQL",
    "ProgressReport",
    "UserLearningStats",
    "WatchProgress",
    "WatchProgressStatus",
]
