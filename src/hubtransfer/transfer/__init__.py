"""Transfer module - Planning, resumable downloads, snapshots and extraction."""

from hubtransfer.transfer.download import FileDownloader
from hubtransfer.transfer.extract import (
    ArchiveKind,
    ExtractionResult,
    UnsupportedArchive,
    default_extract_path,
    detect_archive_kind,
    extract,
    extract_cached,
)
from hubtransfer.transfer.planner import PlanKind, TransferPlan, TransferPlanner
from hubtransfer.transfer.pool import TaskOutcome, WorkerPool
from hubtransfer.transfer.snapshot import SnapshotDownloader, SnapshotResult
from hubtransfer.transfer.state import TransferState, load_state, save_state
from hubtransfer.transfer.types import (
    DownloadRequest,
    DownloadResult,
    DownloadStatus,
    ProgressCallback,
    RemoteFile,
)

__all__ = [
    # Download
    "DownloadRequest",
    "DownloadResult",
    "DownloadStatus",
    "FileDownloader",
    "ProgressCallback",
    "RemoteFile",
    # Planning
    "PlanKind",
    "TransferPlan",
    "TransferPlanner",
    "TransferState",
    "load_state",
    "save_state",
    # Snapshot
    "SnapshotDownloader",
    "SnapshotResult",
    "TaskOutcome",
    "WorkerPool",
    # Extraction
    "ArchiveKind",
    "ExtractionResult",
    "UnsupportedArchive",
    "default_extract_path",
    "detect_archive_kind",
    "extract",
    "extract_cached",
]
