# SPDX-License-Identifier: LGPL-2.1-or-later

import dataclasses
from typing import Optional


@dataclasses.dataclass(frozen=True)
class SourceSpec:
    """A reference to a container image that still has to be resolved."""

    source: str
    name: str = ""
    tls_verify: Optional[bool] = None


@dataclasses.dataclass(frozen=True)
class Spec:
    """A container image resolved to a specific manifest digest."""

    source: str
    digest: str
    image_id: str
    local_name: str = ""
    list_digest: str = ""
    tls_verify: Optional[bool] = None
