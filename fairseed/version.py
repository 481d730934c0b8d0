"""
Version string for fairseed.

Looked up, in order, from the installed distribution metadata, from
``git describe`` when running out of a checkout, and finally from
:data:`BASE_VERSION`. Anything not coming from metadata is rendered as a
PEP 440 local version so transcripts produced by a dev tree are recognisable.
"""
from __future__ import annotations

import re
import subprocess
from functools import lru_cache
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _dist_version
from pathlib import Path
from typing import Optional

BASE_VERSION = "0.3.0"

_DESCRIBE = re.compile(r"^v(?P<tag>\d+\.\d+\.\d+)-(?P<ahead>\d+)-g(?P<sha>[0-9a-f]+)(?P<dirty>-dirty)?$")


def _from_git() -> Optional[str]:
    here = Path(__file__).resolve().parent
    if not any((p / ".git").exists() for p in (here, *here.parents)):
        return None
    try:
        out = subprocess.run(
            ["git", "-C", str(here), "describe", "--tags", "--long", "--dirty", "--match", "v*"],
            capture_output=True,
            text=True,
            check=True,
        ).stdout.strip()
    except (OSError, subprocess.CalledProcessError):
        return None
    m = _DESCRIBE.match(out)
    if m is None:
        return None
    if m["ahead"] == "0" and not m["dirty"]:
        return m["tag"]
    local = f"g{m['sha']}" + (".dirty" if m["dirty"] else "")
    return f"{m['tag']}.post{m['ahead']}+{local}"


@lru_cache(maxsize=1)
def get_version() -> str:
    try:
        return _dist_version("fairseed")
    except PackageNotFoundError:
        pass
    return _from_git() or f"{BASE_VERSION}+src"


__version__ = get_version()
__all__ = ["__version__", "get_version", "BASE_VERSION"]
