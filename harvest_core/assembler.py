"""
Result Assembler - builds the one output record of a connector run.

Every record carries the same envelope (platform, version, timestamp,
exportSummary) on top of a site-specific payload. Only the connector's
anchor field is mandatory; every other field is best effort.
"""

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExportSummary:
    count: int
    label: str

    def to_dict(self) -> Dict[str, Any]:
        return {"count": self.count, "label": self.label}


def summary_label(count: int, singular: str, plural: str) -> str:
    return singular if count == 1 else plural


@dataclass(frozen=True)
class ExtractionRecord:
    """Immutable output envelope."""
    platform: str
    version: str
    export_summary: ExportSummary
    payload: Mapping[str, Any]
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        data = copy.deepcopy(dict(self.payload))
        data.update({
            "exportSummary": self.export_summary.to_dict(),
            "timestamp": self.timestamp,
            "version": self.version,
            "platform": self.platform,
        })
        return data


@dataclass(frozen=True)
class RunOutcome:
    """Terminal status of a run: {success: true, data} or {success: false, error}."""
    success: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, record: ExtractionRecord) -> "RunOutcome":
        return cls(success=True, data=record.to_dict())

    @classmethod
    def failed(cls, error: str) -> "RunOutcome":
        return cls(success=False, error=error)

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            return {"success": True, "data": self.data}
        return {"success": False, "error": self.error}


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


class ResultAssembler:
    """
    Args:
        platform: Fixed platform tag
        version: Engine/schema version string
        anchor_field: Field whose absence fails the run
        collection_field: Primary collection counted in exportSummary
        singular: Label when the collection holds exactly one item
        plural: Label otherwise
    """

    def __init__(
        self,
        platform: str,
        version: str,
        anchor_field: str,
        collection_field: str,
        singular: str,
        plural: str,
    ):
        self.platform = platform
        self.version = version
        self.anchor_field = anchor_field
        self.collection_field = collection_field
        self.singular = singular
        self.plural = plural

    def assemble(self, *sections: Optional[Mapping[str, Any]]) -> Optional[ExtractionRecord]:
        """
        Merge sections left to right (later keys win) into a record.

        Returns:
            The record, or None when the anchor field is missing
        """
        payload: Dict[str, Any] = {}
        for section in sections:
            if section:
                payload.update(section)

        if not _present(payload.get(self.anchor_field)):
            logger.warning(f"{self.platform}: anchor field '{self.anchor_field}' is missing")
            return None

        collection = payload.get(self.collection_field)
        if collection is None:
            collection = []
            payload[self.collection_field] = collection
        count = len(collection)
        summary = ExportSummary(count=count, label=summary_label(count, self.singular, self.plural))

        return ExtractionRecord(
            platform=self.platform,
            version=self.version,
            export_summary=summary,
            payload=MappingProxyType(copy.deepcopy(payload)),
        )
