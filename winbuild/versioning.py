"""
Version strings for the installer.

The application is versioned from git (``6.8.3`` on a tag,
``6.8.3+12.g1a2b3c4`` twelve commits later). Two values are derived:

- ``version``: used in the installer file name and the Add/Remove Programs
  entry. Builds from a custom ref always carry a local part, so they never
  collide with the file name of a tagged release.
- ``vi_version``: the VIProductVersion of the installer executable, which
  must be purely numeric (``6.8.3.0`` / ``6.8.3.12``).
"""

import re
from importlib.metadata import PathDistribution
from pathlib import Path
from typing import NamedTuple, Optional, Tuple

from winbuild.errors import BuildError

_LEADING_DIGITS = re.compile(r'^\d+')


class VersionInfo(NamedTuple):
    versionstring: str
    version: str
    vi_version: str


def _canonical(name: str) -> str:
    return re.sub(r'[-_.]+', '-', name).lower()


def installed_version(pkgs: Path, appname: str) -> Tuple[str, Path]:
    """Version and dist-info directory of ``appname`` installed into ``pkgs``."""
    wanted = _canonical(appname)
    for distinfo in sorted(Path(pkgs).glob('*.dist-info')):
        dist = PathDistribution(distinfo)
        name = dist.metadata['Name'] if dist.metadata else None
        if name and _canonical(name) == wanted:
            return dist.version, distinfo
    raise BuildError(f'Failed to get package version of {appname} from {pkgs}')


def base_version(versionstring: str) -> str:
    return versionstring.split('+', 1)[0]


def release_version(versionstring: str, custom_ref: bool, commit: Optional[str]) -> str:
    if custom_ref and '+' not in versionstring:
        return f'{base_version(versionstring)}+0.g{commit}'
    return versionstring


def vi_version(versionstring: str) -> str:
    if '+' not in versionstring:
        return f'{base_version(versionstring)}.0'
    local = versionstring.rsplit('+', 1)[1]
    match = _LEADING_DIGITS.match(local)
    distance = match.group(0) if match else '0'
    return f'{base_version(versionstring)}.{distance}'


def derive(versionstring: str, custom_ref=False, commit=None) -> VersionInfo:
    if custom_ref and '+' not in versionstring and not commit:
        raise BuildError('A commit hash is required to version a custom-ref build')
    return VersionInfo(
        versionstring=versionstring,
        version=release_version(versionstring, custom_ref, commit),
        vi_version=vi_version(versionstring),
    )
