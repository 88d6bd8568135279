"""
Build settings.

Defaults live here as module constants; ``BuildSettings`` carries the values
chosen for one run and ``StagingDirs`` the run-scoped working tree. Stages
receive these objects explicitly instead of reading globals or the
environment.
"""

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

# --- Project Layout ---

ROOT        = Path(__file__).resolve().parent.parent
CONFIG_NAME = 'config.yml'
NSI_NAME    = 'installer.nsi'
CFG_NAME    = 'installer.cfg'

# --- Pipeline Defaults ---

GIT_FETCHDEPTH = 300
ICON_SIZES     = (16, 32, 48, 256)
REQUIRED_FILES = ('icon.ico', 'LICENSE.txt', 'config')

PIP_ARGS = [
    '--isolated',
    '--disable-pip-version-check',
]

# Executables the pipeline shells out to, with the package that provides them
REQUIRED_TOOLS = {
    'git':      'git',
    'inkscape': 'Inkscape',
    'makensis': 'NSIS',
    'pynsist':  'pynsist',
}

# Any of these marks a disposable build environment
ENV_MARKERS = ('CI', 'VIRTUAL_ENV')


@dataclass(frozen=True)
class BuildSettings:
    root: Path = field(default_factory=lambda: default_root())
    git_depth: int = GIT_FETCHDEPTH
    strict_assets: bool = False
    verify_assets: bool = True
    config: Optional[Path] = None
    dir_cache: Optional[Path] = None
    dir_dist: Optional[Path] = None
    dir_files: Optional[Path] = None

    def __post_init__(self):
        root = Path(self.root)
        object.__setattr__(self, 'root', root)
        for name, default in (
            ('config', root / CONFIG_NAME),
            ('dir_cache', root / 'cache'),
            ('dir_dist', root / 'dist'),
            ('dir_files', root / 'files'),
        ):
            if getattr(self, name) is None:
                object.__setattr__(self, name, default)

    @property
    def nsi_template(self) -> Path:
        return self.root / NSI_NAME

    @property
    def cfg_template(self) -> Path:
        return self.root / CFG_NAME


@dataclass(frozen=True)
class StagingDirs:
    """Run-scoped working tree; everything below ``temp`` is discarded at exit."""
    temp: Path
    repo: Path = field(init=False)
    build: Path = field(init=False)
    assets: Path = field(init=False)
    pkgs: Path = field(init=False)
    wheels: Path = field(init=False)

    def __post_init__(self):
        temp = Path(self.temp)
        object.__setattr__(self, 'temp', temp)
        object.__setattr__(self, 'repo', temp / 'source.git')
        object.__setattr__(self, 'build', temp / 'build')
        object.__setattr__(self, 'assets', temp / 'assets')
        object.__setattr__(self, 'pkgs', temp / 'pkgs')
        object.__setattr__(self, 'wheels', temp / 'wheels')

    def create(self):
        for d in (self.build, self.assets, self.wheels):
            d.mkdir(parents=True, exist_ok=True)


def default_root(package_root: Path = None) -> Path:
    """The source checkout holding config.yml, else the working directory."""
    package_root = ROOT if package_root is None else Path(package_root)
    if (package_root / CONFIG_NAME).is_file():
        return package_root
    return Path.cwd()


def in_build_environment(environ=None) -> bool:
    environ = os.environ if environ is None else environ
    return any(environ.get(name) for name in ENV_MARKERS)


def is_windows_python() -> bool:
    """True for native Windows interpreters, including MSYS2/Cygwin builds."""
    return sys.platform in ('win32', 'cygwin', 'msys')
