import os
import shutil
import logging
from pathlib import Path
from typing import List

from tqdm import tqdm

from .. import config
from ..exceptions import FileOperationError
from ..models import ImageFile
from ..scanning.filesystem import AssetInventory
from ..scanning.hasher import FileHasher
from .paths import reference_filename

class AssetStager:
    """
    Moves images from staging directories into the serving directory.
    A copy counts only after it has been verified against its source.
    """

    def __init__(self, uploads_dir: Path, dry_run: bool = False):
        self.uploads_dir = uploads_dir
        self.dry_run = dry_run
        self.hasher = FileHasher()
        self.copied = 0

    def is_served(self, image: ImageFile) -> bool:
        return image.root.resolve() == self.uploads_dir.resolve()

    def ensure_served(self, images: List[str], inventory: AssetInventory) -> List[str]:
        """
        Makes sure every referenced file exists in the serving directory.
        References whose file cannot be staged are dropped and logged.
        """
        confirmed = []
        for ref in images:
            image = inventory.get(reference_filename(ref) or "")
            if image is None:
                logging.warning(f"No inventory entry for {ref}; dropping")
                continue
            if self.is_served(image):
                confirmed.append(ref)
                continue
            try:
                self.stage(image)
            except FileOperationError as e:
                logging.error(f"Dropping {ref}: {e}")
                continue
            confirmed.append(ref)
        return confirmed

    def stage(self, image: ImageFile) -> Path:
        """
        Copies one file into the serving directory and verifies it.
        An identical file already in place is left alone.
        """
        dest = self.uploads_dir / image.filename

        if dest.exists():
            if self.hasher.same_content(image.path, dest):
                return dest
            raise FileOperationError(f"{dest} exists with different content; refusing to overwrite")

        if self.dry_run:
            logging.info(f"[DRY RUN] Copy {image.path} -> {dest}")
            return dest

        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(str(image.path), str(dest))
            os.chmod(dest, config.STAGED_FILE_MODE)
        except OSError as e:
            raise FileOperationError(f"Failed to copy {image.path} -> {dest}: {e}") from e

        if not self.hasher.same_content(image.path, dest):
            try:
                dest.unlink()
            except OSError:
                logging.debug(f"Could not remove bad copy {dest}")
            raise FileOperationError(f"Copy of {image.path} failed verification")

        self.copied += 1
        logging.info(f"Copied {image.filename} to {self.uploads_dir}")
        return dest

    def stage_all(self, inventory: AssetInventory) -> int:
        """
        Copies every usable staging image that the serving directory lacks.
        Returns the number of files copied.
        """
        to_process = [
            img for img in inventory.usable()
            if not self.is_served(img) and not (self.uploads_dir / img.filename).exists()
        ]

        if not to_process:
            logging.info("No staging images need copying.")
            return 0

        logging.info(f"Staging {len(to_process)} images into {self.uploads_dir} (DryRun={self.dry_run})...")
        before = self.copied
        for image in tqdm(to_process, desc="Staging"):
            try:
                self.stage(image)
            except FileOperationError as e:
                logging.error(str(e))
        return self.copied - before
