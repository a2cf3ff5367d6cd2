"""hubtransfer - Storage and transfer engine for a model/dataset hub.

Moves files between local disk and the hub: a bounded content store,
resumable validated downloads and a large-object upload pipeline.
"""

from hubtransfer.cache import ContentStore
from hubtransfer.client import HTTPClient, resolve_token
from hubtransfer.core import (
    HubConfig,
    HubTransferError,
    RepoScope,
    RepoType,
    RetentionPolicy,
)
from hubtransfer.transfer import (
    DownloadRequest,
    DownloadResult,
    DownloadStatus,
    FileDownloader,
    RemoteFile,
    SnapshotDownloader,
    SnapshotResult,
)
from hubtransfer.upload import LfsUploader, UploadBatchResult, UploadUnit, plan_folder

__version__ = "0.1.0"

__all__ = [
    "ContentStore",
    "DownloadRequest",
    "DownloadResult",
    "DownloadStatus",
    "FileDownloader",
    "HTTPClient",
    "HubConfig",
    "HubTransferError",
    "LfsUploader",
    "RemoteFile",
    "RepoScope",
    "RepoType",
    "RetentionPolicy",
    "SnapshotDownloader",
    "SnapshotResult",
    "UploadBatchResult",
    "UploadUnit",
    "plan_folder",
    "resolve_token",
]
