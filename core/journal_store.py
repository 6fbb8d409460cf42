"""Write provisioning run reports to disk."""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from core.provisioner import ProvisionResult


@dataclass(slots=True)
class JournalStore:
    """Keep the report of the latest run for one device at a fixed path.

    The report is the journal of created subnets and reservations plus the
    skips and failures, so an operator can undo a run by hand. A half-written
    report would be worse than none, so it is staged next to the target and
    swapped in with ``os.replace``.
    """

    path: Path

    @classmethod
    def from_path(cls, path: str | os.PathLike[str]) -> "JournalStore":
        return cls(Path(path))

    def write(self, result: "ProvisionResult") -> Path:
        text = json.dumps(result.to_dict(), indent=4) + "\n"
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=self.path.parent,
            prefix=f".{self.path.name}.",
            delete=False,
        ) as staged:
            staged.write(text)
        try:
            os.replace(staged.name, self.path)
        except OSError:
            Path(staged.name).unlink(missing_ok=True)
            raise
        return self.path
