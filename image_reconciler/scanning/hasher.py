import hashlib
from pathlib import Path
from .. import config

class FileHasher:
    def sha256(self, path: Path) -> str:
        """Reads entire file."""
        h = hashlib.sha256()
        with open(path, 'rb') as f:
            while chunk := f.read(config.HASH_CHUNK_SIZE):
                h.update(chunk)
        return h.hexdigest()

    def same_content(self, a: Path, b: Path) -> bool:
        """
        Size check first (cheap), then a full SHA-256 of both files.
        Missing files compare unequal.
        """
        try:
            if a.stat().st_size != b.stat().st_size:
                return False
        except FileNotFoundError:
            return False
        return self.sha256(a) == self.sha256(b)
