"""
Raw Snapshot Store

Archives collected records verbatim as JSON under
<base>/<STATE>/<county>/<year>/<STATE>_<county>_<year>_<MMDDYYYY>_<version>.json
"""
import json
import re
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from src.taxsale.collectors.errors import CollectionError, ErrorType
from src.taxsale.utils.logger import get_logger

logger = get_logger(__name__)


def path_component(value: str) -> str:
    """Make a region name safe for paths ("St. Mary's" -> "St_Marys")."""
    cleaned = re.sub(r"[^A-Za-z0-9\s_-]", "", value)
    return re.sub(r"\s+", "_", cleaned.strip())


class RawSnapshotStore:
    """
    Writes raw and enriched record snapshots to disk.

    Attributes:
        base_path: Root directory of the archive
    """

    def __init__(self, base_path: Union[str, Path]):
        self.base_path = Path(base_path)

    def folder_for(self, state: str, county: str, year: str) -> Path:
        return self.base_path / path_component(state.upper()) / path_component(county) / year

    def base_filename(self, state: str, county: str, year: str, version: str, on: Optional[date] = None) -> str:
        on = on or date.today()
        return (
            f"{path_component(state.upper())}_{path_component(county)}_{year}_"
            f"{on.strftime('%m%d%Y')}_{version}"
        )

    def save(
        self,
        records: List[Dict[str, Any]],
        state: str,
        county: str,
        year: str,
        version: str = "1.0",
        suffix: str = "",
        on: Optional[date] = None,
    ) -> Path:
        """
        Write records to a snapshot file.

        Args:
            records: Records to archive verbatim
            state: Two-letter state code
            county: County name
            year: Tax sale year
            version: Snapshot version label
            suffix: Appended to the base filename (e.g. "_enriched")
            on: Collection date (defaults to today)

        Returns:
            Path of the written file

        Raises:
            CollectionError: If the snapshot cannot be written
        """
        folder = self.folder_for(state, county, year)
        path = folder / f"{self.base_filename(state, county, year, version, on)}{suffix}.json"
        try:
            folder.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8") as fh:
                json.dump(records, fh, indent=2, default=str)
        except OSError as e:
            logger.error("snapshot_write_failed", path=str(path), error=str(e))
            raise CollectionError(
                f"Failed to write snapshot {path}: {e}",
                error_type=ErrorType.STORAGE,
                details={"path": str(path)},
            ) from e

        logger.info("snapshot_saved", path=str(path), record_count=len(records))
        return path

    @staticmethod
    def load(path: Union[str, Path]) -> List[Dict[str, Any]]:
        with Path(path).open("r", encoding="utf-8") as fh:
            return json.load(fh)
