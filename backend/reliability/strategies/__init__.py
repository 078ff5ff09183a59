from .base import RepairStrategy, VISUAL_METADATA_MISSING_TITLE
from .job_retry import JobRetryStrategy
from .thumbnail import ThumbnailRetryStrategy
from .visual_metadata import VisualMetadataStrategy

__all__ = [
    "RepairStrategy",
    "VISUAL_METADATA_MISSING_TITLE",
    "VisualMetadataStrategy",
    "ThumbnailRetryStrategy",
    "JobRetryStrategy",
]
