from insight.chat import ChatSession, ChatSessionManager, SessionState
from insight.context import InsightContext
from insight.conversation import Conversation
from insight.credentials import CredentialHolder
from insight.errors import (
    ConfigurationError,
    FileValidationError,
    IndexingFailedError,
    IndexingTimeoutError,
    InsightError,
    RateLimitError,
    SessionExpiredError,
)
from insight.files import FileManager
from insight.gateway import GeminiBackend, IndexBackend
from insight.pipeline import IndexingPipeline, PollState
from insight.relay import StreamingRelay
from insight.retry import with_retry
from insight.single_flight import SingleFlight
from insight.stores import IndexStoreManager

__all__ = [
    "ChatSession",
    "ChatSessionManager",
    "SessionState",
    "InsightContext",
    "Conversation",
    "CredentialHolder",
    "ConfigurationError",
    "FileValidationError",
    "IndexingFailedError",
    "IndexingTimeoutError",
    "InsightError",
    "RateLimitError",
    "SessionExpiredError",
    "FileManager",
    "GeminiBackend",
    "IndexBackend",
    "IndexingPipeline",
    "PollState",
    "StreamingRelay",
    "with_retry",
    "SingleFlight",
    "IndexStoreManager",
]
