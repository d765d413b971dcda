import os
import logging
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Dict

from .. import config
from ..models import ImageFile
from ..metadata.extract import MetadataExtractor


class AssetInventory:
    """
    The image files present on disk at scan time, in scan order.
    Lookups are by filename; paths stored on records are only hints.
    """

    def __init__(self, files: List[ImageFile]):
        self.files = list(files)
        self._by_name: Dict[str, ImageFile] = {}
        for f in self.files:
            self._by_name.setdefault(f.filename, f)

    def get(self, filename: str) -> Optional[ImageFile]:
        return self._by_name.get(filename)

    def usable(self) -> List[ImageFile]:
        return [f for f in self.files if f.is_usable]

    def __contains__(self, filename: object) -> bool:
        return filename in self._by_name

    def __iter__(self) -> Iterator[ImageFile]:
        return iter(self.files)

    def __len__(self) -> int:
        return len(self.files)


class AssetScanner:
    def __init__(self, extractor: Optional[MetadataExtractor] = None):
        self.metadata = extractor or MetadataExtractor()

    def scan(self, roots: Iterable[Path]) -> AssetInventory:
        """
        Builds the inventory for one or more directories.

        Roots are scanned in the order given; when the same filename appears
        in more than one root, the first one wins. Pass the serving directory
        first so staged copies never shadow served files.
        """
        files: List[ImageFile] = []
        seen: Dict[str, Path] = {}

        for root in roots:
            found = self.scan_dir(Path(root))
            for image in found:
                if image.filename in seen:
                    logging.debug(f"{image.filename} in {image.root} shadowed by copy in {seen[image.filename]}")
                    continue
                seen[image.filename] = image.root
                files.append(image)
            logging.info(f"Found {len(found)} image files in {root}")

        return AssetInventory(files)

    def scan_dir(self, root: Path) -> List[ImageFile]:
        """Image files directly inside root. A missing root yields an empty list."""
        if not root.is_dir():
            logging.warning(f"Image directory not found: {root} (treating as empty)")
            return []

        images = []
        for entry in self._iter_files(root):
            image = self._process_single_file(entry, root)
            if image:
                images.append(image)
        return images

    def _iter_files(self, root: Path) -> Iterator[os.DirEntry]:
        """Non-recursive listing, sorted by lower-cased name for a stable order."""
        try:
            with os.scandir(root) as it:
                entries = list(it)
        except (OSError, PermissionError):
            logging.warning(f"Permission denied: {root}")
            return

        entries.sort(key=lambda e: e.name.lower())
        for e in entries:
            if not e.is_file(follow_symlinks=True):
                continue
            if e.name.startswith("._"):
                continue
            if Path(e.name).suffix.lower() not in config.IMAGE_EXTS:
                continue
            yield e

    def _process_single_file(self, entry: os.DirEntry, root: Path) -> Optional[ImageFile]:
        path = Path(entry.path)
        try:
            size_bytes = entry.stat().st_size
        except OSError as e:
            logging.error(f"Failed to stat {path}: {e}")
            return None

        if size_bytes == 0:
            logging.warning(f"Empty image file: {path}")

        return ImageFile(
            filename=entry.name,
            path=path,
            root=root,
            size_bytes=size_bytes,
            timestamp=self.metadata.get_timestamp(path),
            is_corrupt=self.metadata.is_corrupt(path) if size_bytes > 0 else False,
        )
