"""
Windows Installer - Build Pipeline

ARCHITECTURE:
1.  Sources:    shallow git checkout of the application at the requested ref.
2.  Python:     embeddable runtime, cached and checksum-verified.
3.  Assets:     ffmpeg and other binaries declared by the build, cached.
4.  App:        pip install into pkgs/ for the target platform, plus icon.
5.  Wheels:     pinned dependencies for the target platform.
6-8. Staging:   runtime zip, asset files and static files into build/.
9.  Metadata:   version strings, Windows paths, installer.nsi/.cfg.
10. Installer:  pynsist -> dist/<app>-<version>-<rel>-<build>.exe

Every run works in a fresh temporary directory that is removed when the run
ends, whichever way it ends. Only cache/ and dist/ persist between runs.
"""

import signal
import tempfile
from pathlib import Path

from winbuild import assets, downloads, icons, installer, packaging, sources
from winbuild.console import hdr, log
from winbuild.manifest import ResolvedBuild
from winbuild.settings import BuildSettings, StagingDirs


def _terminate(signum, frame):
    raise SystemExit(128 + signum)


def build_app(resolved: ResolvedBuild, staging: StagingDirs):
    packaging.install_app(resolved.build, staging.repo, staging.pkgs)
    icons.make_icon(staging.repo / 'icon.svg', staging.build)


def run_stages(resolved: ResolvedBuild, settings: BuildSettings, staging: StagingDirs) -> Path:
    settings.dir_cache.mkdir(parents=True, exist_ok=True)
    settings.dir_dist.mkdir(parents=True, exist_ok=True)
    staging.create()

    sources.fetch_sources(resolved.git.repo, resolved.git.ref, staging.repo, settings.git_depth)
    python_zip = downloads.get_python(resolved, settings.dir_cache)
    downloads.get_assets(resolved, settings.dir_cache,
                         strict=settings.strict_assets, verify_checksums=settings.verify_assets)
    build_app(resolved, staging)
    packaging.download_wheels(resolved.build, staging.wheels)
    assets.prepare_python(resolved.build, python_zip, staging.build)
    assets.prepare_assets(resolved, settings.dir_cache, staging, strict=settings.strict_assets)
    assets.prepare_files(staging.repo, settings.dir_files, staging.build)
    artifact = installer.prepare_installer(resolved, settings, staging)
    installer.build_installer(staging)
    return artifact


def build(resolved: ResolvedBuild, settings: BuildSettings) -> Path:
    hdr(f'Building {resolved.name}, using git reference {resolved.git.ref}')
    previous = signal.signal(signal.SIGTERM, _terminate)
    try:
        with tempfile.TemporaryDirectory(prefix='winbuild-') as temp:
            artifact = run_stages(resolved, settings, StagingDirs(Path(temp)))
    finally:
        if previous is not None:
            signal.signal(signal.SIGTERM, previous)
    installer.report(artifact)
    log('Success!', 'DONE')
    return artifact
