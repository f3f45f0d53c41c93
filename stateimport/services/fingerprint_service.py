"""
stateimport/services/fingerprint_service.py

Content fingerprinting and duplicate-upload classification.
"""

from __future__ import annotations

import hashlib
import logging

from db.models.csv_import import IN_FLIGHT_STATUSES, RETRYABLE_STATUSES, ImportStatus
from db.repositories.csv_import_repository import CSVImportRepository
from stateimport.domain.csv_import import DuplicateCheckResult

logger = logging.getLogger(__name__)

_BOM = "\ufeff"


def decode_content(content: bytes | str) -> str:
    """
    Decode upload bytes as UTF-8. Raises UnicodeDecodeError on bad input.
    """

    if isinstance(content, str):
        return content
    return content.decode("utf-8")


def normalize_content(text: str) -> str:
    """
    Canonical form used for fingerprinting.

    Byte-order marks are removed, line endings become ``\\n`` and lines
    that are empty or whitespace-only are dropped.
    """

    unified = text.replace(_BOM, "").replace("\r\n", "\n").replace("\r", "\n")
    return "\n".join(line for line in unified.split("\n") if line.strip())


def compute_fingerprint(content: bytes | str) -> str:
    normalized = normalize_content(decode_content(content))
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


class FingerprintGuard:
    """
    Classifies an upload fingerprint against earlier attempts.
    """

    def __init__(self, repository: CSVImportRepository) -> None:
        self._repository = repository

    def check(self, fingerprint: str) -> DuplicateCheckResult:
        published = self._repository.latest_by_fingerprint(fingerprint, status=ImportStatus.PUBLISHED)
        if published is not None:
            uploaded_at = published.uploaded_at
            return DuplicateCheckResult(
                is_duplicate=True,
                can_retry=False,
                reason=(
                    f"This file was already imported as import #{published.id} "
                    f"({published.filename}) on {uploaded_at.isoformat() if uploaded_at else 'unknown date'}"
                ),
                original_import_id=published.id,
                original_uploaded_at=uploaded_at,
                original_status=published.status,
            )

        latest = self._repository.latest_by_fingerprint(fingerprint)
        if latest is None:
            return DuplicateCheckResult(is_duplicate=False, can_retry=True)

        status = latest.import_status
        if status in RETRYABLE_STATUSES:
            reason = f"Previous import #{latest.id} ended as {status.value}; a new attempt is allowed"
        elif status in IN_FLIGHT_STATUSES:
            logger.warning(
                "Fingerprint overlaps an in-flight import fingerprint=%s import_id=%s status=%s",
                fingerprint,
                latest.id,
                status.value,
            )
            reason = f"Import #{latest.id} with the same content is still {status.value}"
        else:
            reason = f"Import #{latest.id} with the same content was {status.value}"

        return DuplicateCheckResult(
            is_duplicate=True,
            can_retry=True,
            reason=reason,
            original_import_id=latest.id,
            original_uploaded_at=latest.uploaded_at,
            original_status=latest.status,
        )
