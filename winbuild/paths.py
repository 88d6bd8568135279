"""
Paths as pynsist/NSIS on Windows expect them.

The build may run under WSL, Cygwin/MSYS2 or a native Windows Python. The
first translator that is available converts the POSIX staging paths; the
result is then normalized to forward slashes, which NSIS and the embedded
Python both accept.
"""

import shutil
from pathlib import PurePath

from winbuild.console import capture, clean
from winbuild.errors import ToolError
from winbuild.settings import is_windows_python


class PathTranslator:
    name = ''

    def available(self) -> bool:
        raise NotImplementedError

    def translate(self, path: str) -> str:
        raise NotImplementedError


class CommandTranslator(PathTranslator):
    """wslpath/cygpath style tools: ``<tool> -w <path>``."""

    def __init__(self, name):
        self.name = name

    def available(self):
        return shutil.which(self.name) is not None

    def translate(self, path):
        try:
            return capture([self.name, '-w', path])
        except ToolError:
            return path


class NativeTranslator(PathTranslator):
    """Windows Python (Git Bash, MSYS2, ...) already hands out Windows paths."""
    name = 'native'

    def available(self):
        return is_windows_python()

    def translate(self, path):
        return path


class IdentityTranslator(PathTranslator):
    name = 'identity'

    def available(self):
        return True

    def translate(self, path):
        return path


TRANSLATORS = [
    CommandTranslator('wslpath'),
    CommandTranslator('cygpath'),
    NativeTranslator(),
    IdentityTranslator(),
]


def select_translator(translators=None) -> PathTranslator:
    for translator in (TRANSLATORS if translators is None else translators):
        if translator.available():
            return translator
    return IdentityTranslator()


def normalize(path: str) -> str:
    return clean(str(path)).replace('\\', '/')


def to_windows(path, translator=None) -> str:
    path = str(path) if isinstance(path, PurePath) else path
    translator = translator or select_translator()
    return normalize(translator.translate(path))
