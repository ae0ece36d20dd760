"""
Import source parsing.

Classifies raw import text into a closed set of source kinds:
- id-list: one PMID or DOI per line (resolved later through the catalog)
- tabular: CSV/TSV with a header row, mapped onto record fields
"""

import csv
import io
import re
from pathlib import Path
from typing import Dict, List, Optional
import structlog

from litdedup.models.import_source import (
    IdListSource,
    IdType,
    ImportSource,
    TabularSource,
)
from litdedup.models.record import Record, RecordSource, utc_timestamp
from litdedup.utils.exceptions import SourceReadError, UnrecognizedFormatError

logger = structlog.get_logger()

PMID_PATTERN = re.compile(r"^\d+$")
DOI_PATTERN = re.compile(r"^10\.\d+")

TEXT_HINTS = {"txt", "text"}
DELIMITERS = {"csv": ",", "tsv": "\t"}

# Header name -> record field
COLUMN_MAPPING: Dict[str, str] = {
    "pmid": "pmid",
    "doi": "doi",
    "title": "title",
    "abstract": "abstract",
    "authors": "authors",
    "journal": "journal",
    "year": "publication_date",
    "publication_year": "publication_date",
    "date": "publication_date",
}


class ImportSourceReader:
    """Parse and validate import sources"""

    def parse(self, raw: str, hint: str, file_name: Optional[str] = None) -> ImportSource:
        """
        Classify and parse raw import content.

        Args:
            raw: File content
            hint: Format hint ("txt", "csv", "tsv") or a file name
            file_name: Original file name, kept for provenance

        Returns:
            IdListSource or TabularSource

        Raises:
            UnrecognizedFormatError: If the format cannot be determined
        """
        fmt = self._resolve_hint(hint)

        if not raw or not raw.strip():
            raise UnrecognizedFormatError("Import source is empty")

        if fmt in TEXT_HINTS:
            return self._parse_id_list(raw, file_name)

        return self._parse_tabular(raw, DELIMITERS[fmt], file_name)

    def read_file(self, path: Path) -> ImportSource:
        """
        Read and parse an import file, using its suffix as the format hint.

        Raises:
            SourceReadError: If the file cannot be read
            UnrecognizedFormatError: If the content cannot be classified
        """
        path = Path(path)
        try:
            raw = path.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            raise SourceReadError(f"Failed to read import source {path}: {e}")

        logger.info("import_source_loaded", path=str(path), size=len(raw))
        return self.parse(raw, hint=path.name, file_name=path.name)

    @staticmethod
    def _resolve_hint(hint: str) -> str:
        fmt = (hint or "").strip().lower()
        if "." in fmt:
            fmt = fmt.rsplit(".", 1)[-1]

        if fmt in TEXT_HINTS or fmt in DELIMITERS:
            return fmt

        raise UnrecognizedFormatError(
            f"Unsupported import format '{hint}'. Supported: .txt (PMIDs/DOIs), .csv, .tsv"
        )

    def _parse_id_list(self, raw: str, file_name: Optional[str]) -> IdListSource:
        lines = [line.strip() for line in raw.splitlines() if line.strip()]
        first = lines[0]

        if PMID_PATTERN.match(first):
            id_type, pattern = IdType.PMID, PMID_PATTERN
        elif DOI_PATTERN.match(first):
            id_type, pattern = IdType.DOI, DOI_PATTERN
        else:
            raise UnrecognizedFormatError(
                "File format not recognized. Expected PMIDs or DOIs."
            )

        ids = [line for line in lines if pattern.match(line)]
        dropped = len(lines) - len(ids)
        if dropped:
            logger.warning("id_list_lines_dropped", id_type=id_type.value, dropped=dropped)

        logger.info("id_list_parsed", id_type=id_type.value, count=len(ids))
        return IdListSource(id_type=id_type, ids=ids, file_name=file_name)

    def _parse_tabular(
        self, raw: str, delimiter: str, file_name: Optional[str]
    ) -> TabularSource:
        reader = csv.reader(io.StringIO(raw), delimiter=delimiter)
        try:
            header = next(reader)
        except (StopIteration, csv.Error) as e:
            raise UnrecognizedFormatError(f"Tabular source has no header row: {e}")

        fields: List[Optional[str]] = [
            COLUMN_MAPPING.get(name.strip().lower()) for name in header
        ]
        if not any(fields):
            raise UnrecognizedFormatError(
                "Tabular source has no recognized columns (expected e.g. title, doi, pmid)"
            )

        imported_at = utc_timestamp()
        records: List[Record] = []
        skipped = 0

        try:
            for row_number, row in enumerate(reader, start=1):
                record = self._row_to_record(fields, row, row_number, imported_at)
                if record is None:
                    skipped += 1
                    continue
                records.append(record)
        except csv.Error as e:
            raise UnrecognizedFormatError(f"Malformed tabular source: {e}")

        logger.info("tabular_source_parsed", records=len(records), skipped_rows=skipped)
        return TabularSource(records=records, file_name=file_name)

    @staticmethod
    def _row_to_record(
        fields: List[Optional[str]],
        row: List[str],
        row_number: int,
        imported_at: str,
    ) -> Optional[Record]:
        values: Dict[str, object] = {}

        for field, value in zip(fields, row):
            value = value.strip()
            if not field or not value:
                continue
            if field == "authors":
                values["authors"] = [a.strip() for a in value.split(";") if a.strip()]
            else:
                values[field] = value

        # Rows without a title cannot be imported
        if not values.get("title"):
            return None

        values["external_id"] = values.get("doi") or values.get("pmid") or f"row_{row_number}"

        return Record(
            **values,  # type: ignore[arg-type]
            source=RecordSource.FILE_IMPORT,
            metadata={
                "source": RecordSource.FILE_IMPORT.value,
                "imported_at": imported_at,
                "row": row_number,
            },
        )
