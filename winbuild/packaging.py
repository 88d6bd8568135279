"""
Installing the application into the staging tree and fetching its wheels.

pip runs with --platform/--python-version/--implementation so the staged
packages target the embedded Windows runtime rather than the interpreter
running the build.
"""

import re
import shutil
import sys
import tempfile
from pathlib import Path

from winbuild.console import hdr, log, run
from winbuild.errors import ToolError
from winbuild.manifest import BuildSpec
from winbuild.settings import PIP_ARGS

# RECORD rows that would point outside pkgs/ or at deleted files
_RECORD_DROP = (
    re.compile(r'^.+\.dist-info/direct_url\.json,sha256='),
    re.compile(r'^\.\./\.\./'),
)


def _pip(command, *args):
    return [sys.executable, '-m', 'pip', command, *PIP_ARGS, *args]


def _target_args(build: BuildSpec):
    return [
        f'--platform={build.platform}',
        f'--python-version={build.pythonversion}',
        f'--implementation={build.implementation}',
    ]


def install_app(build: BuildSpec, source: Path, pkgs: Path):
    hdr('Pipeline: 4 / 10  -  Building app')
    run(_pip(
        'install',
        '--no-cache-dir',
        *_target_args(build),
        '--no-deps',
        f'--target={pkgs}',
        '--no-compile',
        '--upgrade',
        str(source),
    ))
    strip_dist_files(pkgs)


def strip_dist_files(pkgs: Path):
    """
    Removes pip's convenience files from the staged packages.

    ``bin/`` holds console scripts with the build machine's interpreter path
    and ``direct_url.json`` records the temporary source path. Their RECORD
    rows go as well so the RECORD still matches the files on disk.
    """
    log('Removing unneeded dist files')
    pkgs = Path(pkgs)
    bindir = pkgs / 'bin'
    if bindir.is_dir():
        shutil.rmtree(bindir)
        log(f'removed {bindir}')
    for direct_url in pkgs.glob('*.dist-info/direct_url.json'):
        direct_url.unlink()
        log(f'removed {direct_url}')
    for record in pkgs.glob('*.dist-info/RECORD'):
        lines = record.read_text(encoding='utf-8').splitlines(keepends=True)
        kept = [line for line in lines if not any(p.match(line) for p in _RECORD_DROP)]
        if len(kept) != len(lines):
            record.write_text(''.join(kept), encoding='utf-8')


def download_wheels(build: BuildSpec, wheels: Path):
    """
    Downloads the pinned dependencies for the target platform.

    Binary wheels with verified hashes come first. If any package has no
    matching wheel, the whole set is fetched again allowing sdists; pip
    needs --no-deps for that when --platform is given, and hashes are not
    required on the retry.
    """
    hdr('Pipeline: 5 / 10  -  Downloading wheels')
    with tempfile.NamedTemporaryFile('w', suffix='.txt', delete=False, encoding='utf-8') as f:
        f.write(''.join(f'{line}\n' for line in build.requirements()))
        reqfile = Path(f.name)
    try:
        try:
            run(_pip(
                'download',
                '--require-hashes',
                '--only-binary=:all:',
                *_target_args(build),
                f'--dest={wheels}',
                '--requirement', str(reqfile),
            ))
            log('Downloaded binary wheels')
        except ToolError:
            log('Binary wheels missing for some packages; retrying allowing source distributions')
            try:
                run(_pip(
                    'download',
                    '--only-binary=:none:',
                    '--no-deps',
                    *_target_args(build),
                    f'--dest={wheels}',
                    '--requirement', str(reqfile),
                ))
            except ToolError as e:
                raise ToolError(f'pip download failed when allowing source distributions: {e}') from e
    finally:
        reqfile.unlink(missing_ok=True)


def has_local_wheels(wheels: Path) -> bool:
    return any(Path(wheels).glob('*.whl'))
