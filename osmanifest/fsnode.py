# SPDX-License-Identifier: LGPL-2.1-or-later

import dataclasses
import os
from pathlib import PurePosixPath
from typing import Optional


@dataclasses.dataclass(frozen=True)
class Directory:
    path: PurePosixPath
    mode: Optional[int] = None
    ensure_parents: bool = False

    def __post_init__(self) -> None:
        # Directories are created relative to the root of the tree, so only absolute paths make sense.
        if not self.path.is_absolute():
            raise ValueError(f"Directory path {os.fspath(self.path)!r} must be absolute")

        if self.mode is not None and not 0 <= self.mode <= 0o7777:
            raise ValueError(f"Directory mode {self.mode:o} is not a valid file mode")
