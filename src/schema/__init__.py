from schema.chat import (
    ChatHistory,
    ChatMessage,
    Citation,
    CredentialInput,
    GroundingMetadata,
    MessageRole,
    ResponseFragment,
    ServiceInfo,
    StreamInput,
)
from schema.files import FileStatus, ListFilesResponse, UploadableFile, UploadResult
from schema.index import IndexHandle, IndexOperation, StoreInfo

__all__ = [
    "ChatHistory",
    "ChatMessage",
    "Citation",
    "CredentialInput",
    "GroundingMetadata",
    "MessageRole",
    "ResponseFragment",
    "ServiceInfo",
    "StreamInput",
    "FileStatus",
    "UploadableFile",
    "UploadResult",
    "ListFilesResponse",
    "IndexHandle",
    "IndexOperation",
    "StoreInfo",
]
