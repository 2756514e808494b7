from __future__ import annotations

import logging

from insight.chat import ChatSessionManager
from insight.gateway import IndexBackend
from insight.pipeline import FileCallback, IndexingPipeline
from schema.chat import Citation
from schema.files import UploadableFile

logger = logging.getLogger(__name__)


class FileManager:
    """The user-visible file list, kept in the order files were added."""

    def __init__(
        self,
        backend: IndexBackend,
        pipeline: IndexingPipeline,
        sessions: ChatSessionManager,
    ) -> None:
        self.backend = backend
        self.pipeline = pipeline
        self.sessions = sessions
        self._files: dict[str, UploadableFile] = {}
        self._queue: set[str] = set()

    @property
    def files(self) -> list[UploadableFile]:
        return list(self._files.values())

    @property
    def active_count(self) -> int:
        return sum(1 for f in self._files.values() if f.status == "active")

    @property
    def is_uploading(self) -> bool:
        return bool(self._queue)

    def get(self, file_id: str) -> UploadableFile | None:
        return self._files.get(file_id)

    def _update(self, doc: UploadableFile) -> None:
        # a file removed while it was indexing stays removed
        if doc.id not in self._files:
            return
        if doc.status in ("active", "error"):
            doc = doc.model_copy(update={"content": None})
        self._files[doc.id] = doc

    async def add_files(
        self, new_files: list[UploadableFile], on_update: FileCallback | None = None
    ) -> list[UploadableFile]:
        if not new_files:
            return []
        self.pipeline.credentials.require()
        for f in new_files:
            self._files[f.id] = f
            self._queue.add(f.id)

        def track(doc: UploadableFile) -> None:
            self._update(doc)
            if on_update is not None:
                on_update(doc)

        results: list[UploadableFile] = []
        try:
            for f in new_files:
                result = await self.pipeline.index(f, track)
                self._queue.discard(f.id)
                if f.id not in self._files:
                    # removed while indexing; whatever reached the backend goes too
                    logger.info("File removed during indexing", extra={"file_id": f.id, "file_name": f.name})
                    await self._delete_remote(result)
                results.append(result)
        finally:
            self._queue.difference_update(f.id for f in new_files)

        failed = [r for r in results if r.status == "error"]
        for r in failed:
            logger.error("Failed to index file", extra={"file_id": r.id, "file_name": r.name, "error": r.error})

        if any(r.status == "active" and r.id in self._files for r in results):
            # new sessions must see the newly imported files
            try:
                await self.sessions.ensure_session(refresh=True)
            except Exception as e:
                logger.error("Failed to refresh chat session after upload", extra={"error": str(e)})
                self.sessions.invalidate()
        return results

    async def _delete_remote(self, doc: UploadableFile) -> None:
        if doc.document_ref:
            try:
                await self.backend.delete_document(doc.document_ref)
            except Exception as e:
                logger.warning("Failed to delete document from store", extra={"file_id": doc.id, "error": str(e)})
        if doc.remote_ref:
            try:
                await self.backend.delete_file(doc.remote_ref)
            except Exception as e:
                logger.warning("Failed to delete file from Gemini", extra={"file_id": doc.id, "error": str(e)})

    async def remove_file(self, file_id: str) -> UploadableFile | None:
        doc = self._files.pop(file_id, None)
        if doc is None:
            return None
        self._queue.discard(file_id)
        await self._delete_remote(doc)
        self.sessions.invalidate()
        logger.info("File removed", extra={"file_id": file_id, "file_name": doc.name})
        return doc

    def resolve(self, citation: Citation) -> UploadableFile | None:
        """Map a retrieved-document citation back to the uploaded file."""
        for f in self._files.values():
            refs = [r for r in (f.document_ref, f.remote_ref) if r]
            if citation.uri and any(citation.uri == r or citation.uri.endswith(r) for r in refs):
                return f
        if citation.title:
            for f in self._files.values():
                if f.name == citation.title:
                    return f
        return None

    def clear(self) -> None:
        self._files.clear()
        self._queue.clear()
