"""Upload module - Large-object batch protocol and folder planning."""

from hubtransfer.upload.folder import FolderPlan, RegularFile, plan_folder
from hubtransfer.upload.lfs import (
    ObjectActions,
    PartState,
    UploadAction,
    UploadInfo,
    UploadMode,
    UploadStatus,
    UploadUnit,
)
from hubtransfer.upload.pipeline import LfsUploader, UploadBatchResult

__all__ = [
    "FolderPlan",
    "LfsUploader",
    "ObjectActions",
    "PartState",
    "RegularFile",
    "UploadAction",
    "UploadBatchResult",
    "UploadInfo",
    "UploadMode",
    "UploadStatus",
    "UploadUnit",
    "plan_folder",
]
