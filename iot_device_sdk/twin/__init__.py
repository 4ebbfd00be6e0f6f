"""Twin property synchronization."""

from .merge import get_at_path, iter_paths, merge_patch, prune_nulls
from .twin import DESIRED_PATH, ReportedPropertiesUpdater, Twin, TwinProperties

__all__ = [
    "DESIRED_PATH",
    "Twin",
    "TwinProperties",
    "ReportedPropertiesUpdater",
    "merge_patch",
    "prune_nulls",
    "iter_paths",
    "get_at_path",
]
