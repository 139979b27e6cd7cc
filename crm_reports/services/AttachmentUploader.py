"""Uploads report attachments and reports an outcome for every file."""

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool

from crm_reports.schemas.reportSchema import Attachment, FileOutcome

logger = logging.getLogger(__name__)


def attachment_path(author_email: str, report_id: str, filename: str, timestamp_ms: Optional[int] = None) -> str:
    """Storage key: {author_email}/{report_id}/{timestamp}_{original_name}."""
    stamp = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    return f"{author_email}/{report_id}/{stamp}_{filename}"


@dataclass
class UploadResult:
    outcomes: List[FileOutcome] = field(default_factory=list)

    @property
    def uploaded(self) -> List[Attachment]:
        return [o.attachment for o in self.outcomes if o.ok and o.attachment]

    @property
    def failed(self) -> List[FileOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def all_failed(self) -> bool:
        return bool(self.outcomes) and not self.uploaded


async def upload_attachments(
    storage,
    files: Sequence[UploadFile],
    report_id: str,
    author_email: str,
) -> UploadResult:
    """
    Upload each file under the report's folder.

    A failing file is recorded as a failed outcome and the loop moves on;
    nothing is retried. No files means no storage calls at all.
    """
    result = UploadResult()
    files = [f for f in files or [] if f is not None and f.filename]
    if not files:
        return result

    try:
        await run_in_threadpool(storage.ensure_bucket)
    except Exception as e:
        logger.warning(f"Could not ensure attachments bucket: {e}")

    for upload in files:
        path = attachment_path(author_email, report_id, upload.filename)
        try:
            await run_in_threadpool(storage.upload, path, upload.file, upload.content_type)
            url = storage.public_url(path)
        except Exception as e:
            logger.error(f"Attachment upload failed for {path}: {e}", exc_info=True)
            result.outcomes.append(FileOutcome(name=upload.filename, ok=False, error=str(e)))
            continue
        result.outcomes.append(
            FileOutcome(
                name=upload.filename,
                ok=True,
                attachment=Attachment(path=path, url=url, name=upload.filename),
            )
        )

    if result.all_failed:
        logger.warning(f"No attachments stored for report {report_id} ({len(files)} provided)")
    return result
