"""
Rendering installer.nsi / installer.cfg.

Substitution is literal: only ``$NAME`` and ``${NAME}`` for the names passed
in are replaced, everything else (``$INSTDIR``, ``${PRODUCT_NAME}`` ...) is
left for NSIS.
"""

import re
from pathlib import Path

from winbuild.console import warn

LOCAL_WHEELS = re.compile(r'^\s*local_wheels\s*=')


def _pattern(name):
    return re.compile(r'\$(?:\{' + re.escape(name) + r'\}|' + re.escape(name) + r'(?![A-Za-z0-9_]))')


def substitute(text: str, variables: dict) -> str:
    for name, value in variables.items():
        if value is None:
            continue
        text = _pattern(name).sub(lambda _m, v=str(value): v, text)
    return text


def unresolved(text: str, names) -> list:
    return [name for name in names if _pattern(name).search(text)]


def normalize_newlines(text: str) -> str:
    return text.replace('\r\n', '\n').replace('\r', '\n')


def render(template: Path, dest: Path, variables: dict) -> str:
    """Renders ``template`` to ``dest`` and warns about placeholders left over."""
    text = substitute(Path(template).read_text(encoding='utf-8'), variables)
    for name in unresolved(text, variables):
        warn(f'Found unreplaced ${{{name}}} placeholder in {Path(dest).name}')
    Path(dest).write_text(text, encoding='utf-8', newline='')
    return text


def strip_local_wheels(text: str) -> str:
    """
    Removes the ``local_wheels =`` entry and its indented continuation lines.

    The block ends at the first line not starting with whitespace (an empty
    line included).
    """
    out = []
    in_block = False
    for line in text.splitlines(keepends=True):
        if in_block and not line.rstrip('\r\n')[:1].isspace():
            in_block = False
        if LOCAL_WHEELS.match(line):
            in_block = True
            continue
        if in_block:
            continue
        out.append(line)
    return ''.join(out)
