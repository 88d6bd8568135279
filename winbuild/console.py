"""
Console output and subprocess helpers shared by every pipeline stage.

Everything the pipeline reports goes through the tagged print helpers below,
so a build log reads as one continuous transcript:

    [EXEC] git clone --depth 1 ...
    [SKIP] python-3.13.1-embed-amd64.zip is already cached.
    [WARN] Asset 'ffmpeg' declares no sha256; skipping verification.

Output captured from external tools is passed through ``clean`` before it is
used anywhere, since tools running under WSL/MSYS happily emit CRLF.
"""

import subprocess
import sys

from winbuild.errors import ToolError

RULE_WIDTH = 60


def clean(value):
    """Strip carriage returns and newlines picked up from subprocess output."""
    if value is None:
        return ''
    return value.replace('\r', '').replace('\n', '')


def hdr(msg):
    """Prints a section header to the console."""
    print(f'\n{"=" * RULE_WIDTH}\n  {msg}\n{"=" * RULE_WIDTH}', flush=True)


def log(msg, tag='INFO'):
    print(f'[{tag}] {msg}', flush=True)


def warn(msg):
    log(msg, 'WARN')


def error(msg):
    print(f'[ERROR] {msg}', file=sys.stderr, flush=True)


def _render(cmd):
    return " ".join(str(c) for c in cmd)


def run(cmd, error=ToolError, **kw):
    """
    Executes a command, echoing it first.

    A non-zero exit (or a missing executable) is raised as ``error`` so each
    stage can report failures in its own terms (FetchError for git, ...).
    """
    print(f'[EXEC] {_render(cmd)}', flush=True)
    try:
        subprocess.run([str(c) for c in cmd], check=True, **kw)
    except FileNotFoundError as e:
        raise error(f'Command not found: {cmd[0]}') from e
    except subprocess.CalledProcessError as e:
        raise error(f'Command failed with exit status {e.returncode}: {_render(cmd)}') from e


def capture(cmd, error=ToolError, **kw):
    """Runs a command quietly and returns its sanitized stdout."""
    try:
        result = subprocess.run(
            [str(c) for c in cmd],
            check=True, capture_output=True, text=True, **kw,
        )
    except FileNotFoundError as e:
        raise error(f'Command not found: {cmd[0]}') from e
    except subprocess.CalledProcessError as e:
        detail = clean(e.stderr) or f'exit status {e.returncode}'
        raise error(f'{_render(cmd)}: {detail}') from e
    return clean(result.stdout.strip())


def capture_lines(cmd, error=ToolError, **kw):
    """Like ``capture`` but keeps the line structure (each line sanitized)."""
    try:
        result = subprocess.run(
            [str(c) for c in cmd],
            check=True, capture_output=True, text=True, **kw,
        )
    except FileNotFoundError as e:
        raise error(f'Command not found: {cmd[0]}') from e
    except subprocess.CalledProcessError as e:
        raise error(f'Command failed with exit status {e.returncode}: {_render(cmd)}') from e
    return [clean(line) for line in result.stdout.splitlines()]
