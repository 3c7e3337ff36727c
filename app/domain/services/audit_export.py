"""
Audit Export
Compliance exports of decision records in JSON, CSV and Markdown.

Output is deterministic for a given record set; only `exportedAt` varies.
"""

from __future__ import annotations

import csv
import hashlib
import io
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from app.domain.errors import ValidationError
from app.domain.models import DecisionRecord
from app.domain.services.decision_analytics import compute_statistics, risk_analysis_lines
from app.utils.time import datetime_to_iso, ms_to_iso, now_utc

logger = logging.getLogger(__name__)

HASH_ALGORITHM = "SHA-256"
GENESIS_HASH = "0" * 64

CSV_COLUMNS = [
    "id",
    "timestamp",
    "type",
    "confidence",
    "executed",
    "error",
    "protocols",
    "assets",
    "riskChange",
    "apyImpact",
    "reasoning",
]

# Decision log entries rendered in a markdown report
MARKDOWN_LOG_LIMIT = 100


class ExportFormat(str, Enum):
    JSON = "json"
    CSV = "csv"
    MARKDOWN = "markdown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ExportFormat":
        normalized = (value or "json").lower()
        if normalized == "md":
            return cls.MARKDOWN
        try:
            return cls(normalized)
        except ValueError:
            raise ValidationError("format must be one of: json, csv, markdown")


_MEDIA_TYPES = {
    ExportFormat.JSON: "application/json",
    ExportFormat.CSV: "text/csv; charset=utf-8",
    ExportFormat.MARKDOWN: "text/markdown; charset=utf-8",
}
_EXTENSIONS = {
    ExportFormat.JSON: "json",
    ExportFormat.CSV: "csv",
    ExportFormat.MARKDOWN: "md",
}


@dataclass(frozen=True)
class AuditExport:
    """Rendered export plus the metadata the HTTP layer needs"""
    content: str
    format: ExportFormat
    record_count: int
    chain_hash: str

    @property
    def media_type(self) -> str:
        return _MEDIA_TYPES[self.format]

    @property
    def extension(self) -> str:
        return _EXTENSIONS[self.format]


def _sha256(message: str) -> str:
    return hashlib.sha256(message.encode("utf-8")).hexdigest()


def canonical_json(data: Any) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def record_hash(record: DecisionRecord) -> str:
    """SHA-256 of the record's canonical JSON form"""
    return _sha256(canonical_json(record.to_dict()))


def chain_hash(hashes: Sequence[str], previous: Optional[str] = None) -> str:
    return _sha256((previous or GENESIS_HASH) + "".join(hashes))


def merkle_root(hashes: Sequence[str]) -> str:
    """Pairwise SHA-256 tree; an odd node is paired with itself"""
    if not hashes:
        return GENESIS_HASH
    level = list(hashes)
    while len(level) > 1:
        level = [
            _sha256(level[i] + (level[i + 1] if i + 1 < len(level) else level[i]))
            for i in range(0, len(level), 2)
        ]
    return level[0]


class AuditExporter:
    """Export decision records in compliance-ready formats.

    Records are exported in the order given (newest-first from the store).
    """

    def __init__(
        self,
        records: Sequence[DecisionRecord],
        version: str = "1.0.0",
        compliance: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize exporter with records.

        Args:
            records: Decision records to export.
            version: Export envelope version string.
            compliance: Compliance metadata block for the JSON envelope.
        """
        self._records = list(records)
        self._version = version
        self._compliance = compliance
        self._hashes: Optional[List[str]] = None

    @property
    def records(self) -> List[DecisionRecord]:
        return self._records

    @property
    def record_hashes(self) -> List[str]:
        if self._hashes is None:
            self._hashes = [record_hash(r) for r in self._records]
        return self._hashes

    def integrity(self) -> Dict[str, Any]:
        return {
            "algorithm": HASH_ALGORITHM,
            "chainHash": chain_hash(self.record_hashes),
            "merkleRoot": merkle_root(self.record_hashes),
        }

    def date_range(self) -> Dict[str, str]:
        if not self._records:
            return {"start": "", "end": ""}
        first = min(self._records, key=lambda r: r.timestamp)
        last = max(self._records, key=lambda r: r.timestamp)
        return {"start": first.date, "end": last.date}

    def checksums(self) -> Dict[str, Any]:
        return {
            "recordCount": len(self._records),
            "firstId": self._records[0].id if self._records else "",
            "lastId": self._records[-1].id if self._records else "",
        }

    def build_document(self, exported_at: Optional[datetime] = None) -> Dict[str, Any]:
        """Assemble the JSON export envelope.

        Args:
            exported_at: Export time; defaults to now (UTC).

        Returns:
            Envelope dictionary.
        """
        document = {
            "exportedAt": datetime_to_iso(exported_at or now_utc()),
            "version": self._version,
            "totalRecords": len(self._records),
            "dateRange": self.date_range(),
            "records": [r.to_dict() for r in self._records],
            "statistics": compute_statistics(self._records).to_dict(),
            "checksums": self.checksums(),
            "integrity": self.integrity(),
        }
        if self._compliance is not None:
            document["compliance"] = self._compliance
        return document

    def export_json(self, exported_at: Optional[datetime] = None) -> str:
        """Export the envelope as pretty-printed JSON."""
        return json.dumps(
            self.build_document(exported_at), indent=2, ensure_ascii=False, allow_nan=False
        )

    def export_csv(self) -> str:
        """Export one row per record.

        Text cells are quoted (so reasoning always is); confidence is the
        unquoted percentage.

        Returns:
            CSV string with header row.
        """
        output = io.StringIO()
        writer = csv.DictWriter(
            output,
            fieldnames=CSV_COLUMNS,
            quoting=csv.QUOTE_NONNUMERIC,
            lineterminator="\n",
        )
        writer.writeheader()

        for record in self._records:
            writer.writerow({
                "id": record.id,
                "timestamp": ms_to_iso(record.timestamp),
                "type": record.type.value,
                "confidence": record.confidence_pct,
                "executed": "true" if record.executed else "false",
                "error": "true" if record.has_error else "false",
                "protocols": ";".join(record.protocols),
                "assets": ";".join(record.assets),
                "riskChange": record.risk_change.value,
                "apyImpact": f"{record.apy_impact:.2f}",
                "reasoning": record.reasoning_preview,
            })

        return output.getvalue()

    def export_markdown(self, exported_at: Optional[datetime] = None) -> str:
        """Human-readable compliance report.

        Metadata table, per-type breakdown and a decision log capped at
        MARKDOWN_LOG_LIMIT entries.
        """
        stats = compute_statistics(self._records)
        period = self.date_range()
        total = len(self._records)

        lines = [
            "# Decision Audit Trail",
            "",
            f"> **Compliance Export** - Generated {datetime_to_iso(exported_at or now_utc())}",
            "",
            "## Export Metadata",
            "",
            "| Field | Value |",
            "|-------|-------|",
            f"| Version | {self._version} |",
            f"| Period | {period['start'] or '-'} to {period['end'] or '-'} |",
            f"| Total Records | {total} |",
            "| Timezone | UTC |",
            f"| Chain Hash | `{self.integrity()['chainHash']}` |",
            "",
            "## Record Breakdown",
            "",
        ]
        for type_name, count in stats.by_type.items():
            if count:
                lines.append(f"- **{type_name}**: {count} ({count / total * 100:.1f}%)")
        lines += ["", "---", "", "## Decision Log", ""]

        for record in self._records[:MARKDOWN_LOG_LIMIT]:
            lines.append(f"### {record.type.value.upper()} - {ms_to_iso(record.timestamp)}")
            lines.append("")
            lines.append(f"**ID:** `{record.id}`")
            lines.append("")
            lines.append(f"**Confidence:** {record.confidence_pct}%")
            lines.append("")
            if record.protocols or record.assets:
                lines.append(
                    f"**Protocols:** {', '.join(record.protocols) or '-'}"
                    f" | **Assets:** {', '.join(record.assets) or '-'}"
                )
                lines.append("")
            lines.append("**Reasoning:**")
            lines.append(f"> {record.reasoning_preview}")
            lines.append("")
            if record.risk_analysis:
                lines.append("**Risk Analysis:**")
                lines.extend(risk_analysis_lines(record.risk_analysis))
                lines.append("")
            if record.executed:
                lines.append("**Execution:** Confirmed")
                lines.append(f"- Transaction(s): {', '.join(record.tx_ids)}")
                lines.append("")
            lines += ["---", ""]

        if total > MARKDOWN_LOG_LIMIT:
            lines.append(
                f"*... and {total - MARKDOWN_LOG_LIMIT} more records. "
                "Download the JSON export for complete data.*"
            )
            lines.append("")

        return "\n".join(lines)


def export_records(
    records: Sequence[DecisionRecord],
    fmt: ExportFormat,
    version: str = "1.0.0",
    exported_at: Optional[datetime] = None,
    compliance: Optional[Dict[str, Any]] = None,
) -> AuditExport:
    """Render records in the requested format."""
    exporter = AuditExporter(records, version=version, compliance=compliance)
    if fmt == ExportFormat.CSV:
        content = exporter.export_csv()
    elif fmt == ExportFormat.MARKDOWN:
        content = exporter.export_markdown(exported_at)
    else:
        content = exporter.export_json(exported_at)

    digest = exporter.integrity()["chainHash"]
    logger.info("Generated %s audit export: %d records, chain %s", fmt.value, len(records), digest[:16])
    return AuditExport(
        content=content,
        format=fmt,
        record_count=len(records),
        chain_hash=digest,
    )
