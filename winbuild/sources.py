"""
Source checkout.

The application derives its version from git tags, so the checkout needs
enough history to reach the nearest tag while staying shallow: clone one
commit, fetch the ref and the tags at a fixed depth, then let git extend
the shallow boundary.
"""

from pathlib import Path

from winbuild.console import capture, capture_lines, hdr, log, run, warn
from winbuild.errors import FetchError, ToolError


def fetch_sources(repo_url: str, ref: str, dest: Path, depth: int):
    hdr(f'Pipeline: 1 / 10  -  Getting sources ({ref})')
    dest = Path(dest)
    dest.mkdir(parents=True, exist_ok=True)

    def git(*args):
        run(['git', *args], error=FetchError, cwd=dest)

    git('clone', '--depth', '1', repo_url, '.')
    git('fetch', 'origin', '--depth', str(depth), f'{ref}:branch')
    git('fetch', 'origin', f'--depth={depth}', '+refs/tags/*:refs/tags/*')
    git('-c', 'advice.detachedHead=false', 'checkout', '--force', 'branch')
    git('fetch', 'origin', f'--depth={depth}', '--update-shallow')

    log('Commit information')
    try:
        log(capture(['git', 'describe', '--tags', '--long', '--dirty'], cwd=dest))
    except ToolError:
        warn('No tag reachable from the checked out commit.')
    for line in capture_lines(['git', '--no-pager', 'log', '-1', '--pretty=full'],
                              error=FetchError, cwd=dest):
        print(f'  {line}')


def short_commit(repo: Path) -> str:
    """Abbreviated (7 characters) hash of HEAD in ``repo``."""
    return capture(
        ['git', '-C', str(repo), '-c', 'core.abbrev=7', 'rev-parse', '--short', 'HEAD'],
        error=FetchError,
    )
