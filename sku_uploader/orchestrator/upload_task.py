"""Per-file staged upload state machine."""
from enum import Enum
from typing import List, Optional, Tuple
import logging

from ..models import ParsedFile, ProductRecord, StagedUploadTarget, UploadSettings
from ..protocols import IMediaTransport

logger = logging.getLogger(__name__)


class UploadPhase(Enum):
    """Progress of one file through the staged upload protocol."""
    REQUESTED = "requested"
    STAGED_TARGET_READY = "staged_target_ready"
    BYTES_UPLOADED = "bytes_uploaded"
    MEDIA_REGISTERED = "media_registered"
    ERROR = "error"


_NEXT_PHASE = {
    UploadPhase.REQUESTED: UploadPhase.STAGED_TARGET_READY,
    UploadPhase.STAGED_TARGET_READY: UploadPhase.BYTES_UPLOADED,
    UploadPhase.BYTES_UPLOADED: UploadPhase.MEDIA_REGISTERED,
}


class FileUploadAttempt:
    """
    One file's single attempt at becoming product media.

    REQUESTED -> STAGED_TARGET_READY -> BYTES_UPLOADED -> MEDIA_REGISTERED,
    or ERROR from any step. Holds no state shared with other files.
    """

    def __init__(
        self,
        parsed: ParsedFile,
        product: ProductRecord,
        settings: UploadSettings,
        transport: IMediaTransport,
    ):
        self.parsed = parsed
        self.product = product
        self._settings = settings
        self._transport = transport
        self.phase = UploadPhase.REQUESTED
        self.history: List[UploadPhase] = [UploadPhase.REQUESTED]
        self.target: Optional[StagedUploadTarget] = None
        self.media_id: Optional[str] = None
        self.failed_in: Optional[UploadPhase] = None

    @property
    def finished(self) -> bool:
        return self.phase in (UploadPhase.MEDIA_REGISTERED, UploadPhase.ERROR)

    def _advance(self) -> None:
        self.phase = _NEXT_PHASE[self.phase]
        self.history.append(self.phase)

    def _fail(self) -> None:
        self.failed_in = self.phase
        self.phase = UploadPhase.ERROR
        self.history.append(UploadPhase.ERROR)

    async def run(self) -> str:
        """Run all three steps; returns the new media id. Re-raises on failure."""
        if self.phase is not UploadPhase.REQUESTED:
            raise RuntimeError(f"Upload attempt for {self.parsed.original_filename} already ran")

        parsed = self.parsed
        try:
            self.target = await self._transport.create_target(
                parsed.original_filename, parsed.mime_type, parsed.size
            )
            self._advance()

            await self._transport.upload(
                self.target, parsed.data, parsed.original_filename, parsed.mime_type
            )
            self._advance()

            alt_text = self._settings.alt_text_for(self.product.title, parsed.sort_order)
            self.media_id = await self._transport.register_media(
                self.product.id, self.target.resource_url, alt_text
            )
            self._advance()
        except Exception:
            self._fail()
            raise

        logger.info(f"Uploaded {parsed.original_filename} -> {self.product.id} ({self.media_id})")
        return self.media_id


def split_attempts(attempts: List[FileUploadAttempt]) -> Tuple[List[FileUploadAttempt], List[FileUploadAttempt]]:
    """(registered, failed) preserving input order."""
    registered = [a for a in attempts if a.phase is UploadPhase.MEDIA_REGISTERED]
    failed = [a for a in attempts if a.phase is UploadPhase.ERROR]
    return registered, failed
