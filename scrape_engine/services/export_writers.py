"""File writers used by export jobs, keyed by export format."""
import csv
import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from ..exceptions import ExportError
from ..models import ExportFormat, ExportMetadata

Rows = List[Dict[str, Any]]
ExportWriter = Callable[[Rows, Path, ExportMetadata], int]


def format_name(export_format: Union[ExportFormat, str]) -> str:
    return export_format.value if isinstance(export_format, ExportFormat) else str(export_format)


def _columns(rows: Rows) -> List[str]:
    columns: List[str] = []
    for row in rows:
        for key in row:
            if key not in columns:
                columns.append(key)
    return columns


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


def write_json(rows: Rows, file_path: Path, metadata: ExportMetadata) -> int:
    with open(file_path, "w", encoding=metadata.encoding) as f:
        json.dump(rows, f, indent=2 if metadata.pretty else None, default=str)
    return file_path.stat().st_size


def write_csv(rows: Rows, file_path: Path, metadata: ExportMetadata) -> int:
    columns = _columns(rows)
    with open(file_path, "w", encoding=metadata.encoding, newline="") as f:
        writer = csv.writer(f, delimiter=metadata.delimiter)
        if metadata.include_headers:
            writer.writerow(columns)
        for row in rows:
            writer.writerow([_cell(row.get(column)) for column in columns])
    return file_path.stat().st_size


def write_markdown(rows: Rows, file_path: Path, metadata: ExportMetadata) -> int:
    columns = _columns(rows)
    lines = []
    if columns:
        lines.append("| " + " | ".join(columns) + " |")
        lines.append("| " + " | ".join("---" for _ in columns) + " |")
        for row in rows:
            cells = [_cell(row.get(column)).replace("|", "\\|") for column in columns]
            lines.append("| " + " | ".join(cells) + " |")
    with open(file_path, "w", encoding=metadata.encoding) as f:
        f.write("\n".join(lines) + "\n")
    return file_path.stat().st_size


def write_text(rows: Rows, file_path: Path, metadata: ExportMetadata) -> int:
    blocks = [
        "\n".join(f"{key}: {_cell(value)}" for key, value in row.items())
        for row in rows
    ]
    with open(file_path, "w", encoding=metadata.encoding) as f:
        f.write("\n\n".join(blocks) + "\n")
    return file_path.stat().st_size


class ExportWriterRegistry:
    """Maps an export format to the function that writes it."""

    def __init__(self):
        self._writers: Dict[ExportFormat, ExportWriter] = {
            ExportFormat.JSON: write_json,
            ExportFormat.CSV: write_csv,
            ExportFormat.MARKDOWN: write_markdown,
            ExportFormat.TEXT: write_text,
        }

    def register(self, export_format: ExportFormat, writer: ExportWriter) -> None:
        self._writers[ExportFormat(export_format)] = writer

    def get(self, export_format: Union[ExportFormat, str]) -> Optional[ExportWriter]:
        try:
            return self._writers.get(ExportFormat(export_format))
        except ValueError:
            return None

    def write(
        self,
        export_format: Union[ExportFormat, str],
        rows: Rows,
        file_path: Path,
        metadata: ExportMetadata,
    ) -> int:
        """Write rows to file_path and return the file size in bytes."""
        writer = self.get(export_format)
        if writer is None:
            raise ExportError(f"No writer registered for format {format_name(export_format)}")
        file_path.parent.mkdir(parents=True, exist_ok=True)
        return writer(rows, file_path, metadata)
