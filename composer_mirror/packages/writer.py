"""Static dump writer.

Writes a DumpResult to a directory laid out the way Composer clients
request it, so the files can be served by any static web server.
"""

from pathlib import Path
from typing import List

from ..common.logger import get_logger
from ..metadata.document import MetadataDocument
from .dumper import DumpResult

logger = get_logger("dump_writer")


class StaticDumpWriter:
    """Writes dump documents below an output directory."""

    def __init__(self, output_dir: str, gzip_level: int = 0):
        """
        Args:
            output_dir: Root directory of the published repository
            gzip_level: Also write ``.gz`` siblings at this level (0 disables)
        """
        self.output_dir = Path(output_dir)
        self.gzip_level = gzip_level

    def write(self, result: DumpResult) -> List[Path]:
        """Write every document of a dump.

        Returns:
            Paths of the written files (without ``.gz`` siblings)
        """
        written = [
            self._write_document("packages.json", result.root),
            self._write_document(result.provider_includes_path(), result.providers),
        ]

        for name, document in sorted(result.packages.items()):
            written.append(self._write_document(result.provider_path(name), document))
            written.append(self._write_document(f"p2/{name}.json", document))

        logger.info(f"Wrote {len(written)} metadata files to {self.output_dir}")
        return written

    def _write_document(self, relative_path: str, document: MetadataDocument) -> Path:
        path = self.output_dir / relative_path.lstrip("/")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(document.get_content())

        if self.gzip_level:
            gz_path = path.with_name(path.name + ".gz")
            gz_path.write_bytes(document.gzipped(self.gzip_level).raw_content())

        return path
