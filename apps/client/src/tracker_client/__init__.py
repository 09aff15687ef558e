from tracker_client.cache import CacheEntry, CacheStore
from tracker_client.frames import FrameDecoder, iter_frames
from tracker_client.ingest import IngestionOrchestrator, IngestionRun, IngestionState
from tracker_client.resources import Job, StatusEntry, normalize_job

__all__ = [
    "CacheEntry",
    "CacheStore",
    "FrameDecoder",
    "IngestionOrchestrator",
    "IngestionRun",
    "IngestionState",
    "Job",
    "StatusEntry",
    "iter_frames",
    "normalize_job",
]
