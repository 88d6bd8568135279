"""
Installer metadata and the final pynsist run.

prepare_installer() renders installer.nsi and installer.cfg into the build
directory:

    installer.nsi   DIR_BUILD, VERSION, VI_VERSION
    installer.cfg   DIR_BUILD, DIR_WHEELS, DIR_DISTINFO, VERSION,
                    PYTHONVERSION, BITNESS, INSTALLER_NAME, NSI_TEMPLATE

All paths handed to the templates are Windows paths with forward slashes.
"""

import os
import shutil
from pathlib import Path

from winbuild import paths, templates, versioning
from winbuild.console import capture, hdr, log, run, warn
from winbuild.errors import BuildError, ToolError
from winbuild.manifest import ResolvedBuild
from winbuild.packaging import has_local_wheels
from winbuild.settings import CFG_NAME, NSI_NAME, REQUIRED_FILES, BuildSettings, StagingDirs
from winbuild.sources import short_commit

CFG_PREVIEW_LINES = 200


def installer_path(resolved: ResolvedBuild, version: str, dist_dir: Path) -> Path:
    return Path(dist_dir) / f'{resolved.app.name}-{version}-{resolved.app.rel}-{resolved.name}.exe'


def read_version(resolved: ResolvedBuild, staging: StagingDirs):
    log('Reading version string')
    versionstring, distinfo = versioning.installed_version(staging.pkgs, resolved.app.name)
    log(f"versionstring='{versionstring}'")
    commit = None
    if resolved.custom_ref and '+' not in versionstring:
        commit = short_commit(staging.repo)
    return versioning.derive(versionstring, resolved.custom_ref, commit), distinfo


def prepare_installer(resolved: ResolvedBuild, settings: BuildSettings, staging: StagingDirs,
                      translator=None) -> Path:
    hdr('Pipeline: 9 / 10  -  Preparing installer')
    info, distinfo = read_version(resolved, staging)
    log(f"version='{info.version}' vi_version='{info.vi_version}'")
    version = f'{info.version}-{resolved.app.rel}'

    translator = translator or paths.select_translator()
    log(f'Path translator: {translator.name}')
    win_build = paths.to_windows(staging.build, translator)
    log(f"WIN_DIR_BUILD='{win_build}'")

    log('Preparing installer template')
    templates.render(settings.nsi_template, staging.build / NSI_NAME, {
        'DIR_BUILD':  win_build,
        'VERSION':    version,
        'VI_VERSION': info.vi_version,
    })

    log('Preparing pynsist config')
    installer_name = paths.to_windows(installer_path(resolved, info.version, settings.dir_dist), translator)
    log(f"INSTALLER_NAME='{installer_name}'")
    cfg = staging.build / CFG_NAME
    text = templates.render(settings.cfg_template, cfg, {
        'DIR_BUILD':      win_build,
        'DIR_WHEELS':     paths.to_windows(staging.wheels, translator),
        'DIR_DISTINFO':   paths.to_windows(distinfo, translator),
        'VERSION':        version,
        'PYTHONVERSION':  resolved.build.pythonembed.version,
        'BITNESS':        resolved.build.bitness,
        'INSTALLER_NAME': installer_name,
        'NSI_TEMPLATE':   NSI_NAME,
    })
    text = templates.normalize_newlines(text)

    if has_local_wheels(staging.wheels):
        count = len(list(staging.wheels.glob('*.whl')))
        log(f'Found {count} local wheels in {staging.wheels}; keeping local_wheels block')
    else:
        log(f'No local wheels found in {staging.wheels}; removing local_wheels section from {cfg.name}')
        text = templates.strip_local_wheels(text)
    cfg.write_text(text, encoding='utf-8', newline='\n')

    log(f'Generated {cfg} (first {CFG_PREVIEW_LINES} lines):')
    for line in text.splitlines()[:CFG_PREVIEW_LINES]:
        print(f'  {line}')
    log('Installer preparation complete')
    return installer_path(resolved, info.version, settings.dir_dist)


def missing_files(build_dir: Path, required=REQUIRED_FILES):
    return [name for name in required if not (Path(build_dir) / name).is_file()]


def build_installer(staging: StagingDirs):
    hdr('Pipeline: 10 / 10  -  Building installer')
    log(f'Checking required build files in: {staging.build}')
    missing = missing_files(staging.build)
    if missing:
        for name in missing:
            log(f'required file missing: {staging.build / name}', 'ERROR')
        log(f'Contents of {staging.build}:')
        for entry in sorted(staging.build.iterdir()):
            print(f'  {entry.name}')
        raise BuildError(
            f'Missing required files in build directory: {", ".join(missing)}. '
            'Copy files/config and the repository LICENSE into the build directory.'
        )

    if shutil.which('wslpath'):
        try:
            log(f"Windows-visible build dir: {capture(['wslpath', '-w', str(staging.build)])}")
        except ToolError as e:
            warn(str(e))

    cfg = staging.build / CFG_NAME
    env = dict(os.environ, PYTHONPATH=str(staging.pkgs), PYNSIST_CACHE_DIR=str(staging.build))
    log(f'PYTHONPATH={staging.pkgs} PYNSIST_CACHE_DIR={staging.build} pynsist {cfg}')
    run(['pynsist', cfg], env=env)


def report(artifact: Path):
    """Final summary of the produced installer."""
    hdr('Build report')
    artifact = Path(artifact)
    if not artifact.is_file():
        warn(f'Installer not found at {artifact}. Check the pynsist output above.')
        return
    size_mb = artifact.stat().st_size // 1024 // 1024
    print(f'\n  Package: {artifact.name}')
    print(f'  Target:  {artifact.resolve()}')
    print(f'  Weight:  ~{size_mb} MB\n')
