"""Orchestrator package - coordinates bulk image uploads."""
from .core import UploadOrchestrator
from .pool import DEFAULT_POOL_WIDTH, TaskOutcome, WorkerPool
from .product_upload import ProductUploadHandler
from .results import generate_summary
from .upload_task import FileUploadAttempt, UploadPhase

__all__ = [
    "UploadOrchestrator",
    "ProductUploadHandler",
    "FileUploadAttempt",
    "UploadPhase",
    "WorkerPool",
    "TaskOutcome",
    "DEFAULT_POOL_WIDTH",
    "generate_summary",
]
