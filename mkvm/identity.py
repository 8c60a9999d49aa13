"""Random hardware addresses and host names for new VMs."""

from __future__ import annotations

import json
import os
import random
from pathlib import Path
from typing import Callable, List, Optional

from mkvm.constants import NAMES_PATH
from mkvm.exceptions import EntropyUnavailable


def load_names(path: Path = NAMES_PATH) -> List[str]:
    try:
        names = json.loads(path.read_text())
    except (OSError, ValueError) as exc:
        raise EntropyUnavailable(f"can't read name list {path}: {exc}") from exc
    if not isinstance(names, list) or not all(isinstance(name, str) for name in names):
        raise EntropyUnavailable(f"{path}: name list should be a JSON array of strings")
    return names


class IdentityGenerator:
    def __init__(
        self,
        entropy: Callable[[int], bytes] = os.urandom,
        rng: Optional[random.Random] = None,
        names: Optional[List[str]] = None,
    ) -> None:
        self._entropy = entropy
        self._rng = rng or random.SystemRandom()
        self._names = names

    def random_mac(self) -> str:
        """Return a locally-administered unicast MAC, e.g. ``5e:0a:...``."""
        try:
            buf = bytearray(self._entropy(6))
        except (OSError, NotImplementedError) as exc:
            raise EntropyUnavailable(f"can't generate mac address: {exc}") from exc
        if len(buf) != 6:
            raise EntropyUnavailable(f"can't generate mac address: got {len(buf)} random bytes, need 6")
        buf[0] = (buf[0] | 0x02) & 0xFE
        return ":".join(f"{octet:02x}" for octet in buf)

    def random_name(self) -> str:
        if self._names is None:
            self._names = load_names(NAMES_PATH)
        if not self._names:
            raise EntropyUnavailable("name list is empty")
        try:
            return self._rng.choice(self._names)
        except (OSError, NotImplementedError) as exc:
            raise EntropyUnavailable(f"can't pick a name: {exc}") from exc
