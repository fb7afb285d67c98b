from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path

from pararius_notifier.models import Listing


class ListingStore:
    """One JSON file per listing, named after its fingerprint."""

    def __init__(self, output_dir: str) -> None:
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, fingerprint: str) -> Path:
        return self.output_dir / f"{fingerprint}.json"

    def exists(self, fingerprint: str) -> bool:
        return self.path_for(fingerprint).is_file()

    def save(self, listing: Listing) -> Path:
        path = self.path_for(listing.fingerprint)
        payload = json.dumps(listing.to_record(), indent=2, ensure_ascii=False)
        write_atomic(path, payload)
        return path

    def load(self, fingerprint: str) -> dict:
        with self.path_for(fingerprint).open("r", encoding="utf-8") as handle:
            return json.load(handle)


def write_atomic(path: Path, content: str) -> None:
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
