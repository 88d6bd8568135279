"""
Populating the build tree: embedded runtime, assets and static files.
"""

import shutil
import zipfile
from pathlib import Path

from winbuild.console import hdr, log, warn
from winbuild.downloads import referenced_assets
from winbuild.errors import BuildError, ConfigError
from winbuild.manifest import AssetSpec, BuildSpec, ResolvedBuild
from winbuild.settings import StagingDirs


def install_file(src: Path, dest: Path):
    """``install -vD``: copy ``src`` to ``dest``, creating parent directories."""
    if not Path(src).is_file():
        raise BuildError(f'Missing file: {src}')
    Path(dest).parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(src, dest)
    log(f"'{src}' -> '{dest}'")


def within(path: Path, root: Path) -> bool:
    try:
        Path(path).resolve().relative_to(Path(root).resolve())
    except ValueError:
        return False
    return True


# --- Embedded Python ---

def prepare_python(build: BuildSpec, python_zip: Path, build_dir: Path) -> Path:
    """Places the embeddable runtime where pynsist looks for it (its cache dir)."""
    hdr('Pipeline: 6 / 10  -  Preparing Python')
    dest = Path(build_dir) / f'python-{build.pythonembed.version}-embed-{build.arch}.zip'
    install_file(python_zip, dest)
    return dest


# --- Assets ---

def _refuse(msg: str, strict: bool):
    if strict:
        raise ConfigError(msg)
    warn(f'{msg}; skipping.')


def extract_archive(asset: AssetSpec, archive: Path, extract_to: Path):
    """Unpacks ``archive``, refusing it when any member would land outside ``extract_to``."""
    try:
        with zipfile.ZipFile(archive) as z:
            for member in z.namelist():
                if not within(extract_to / member, extract_to):
                    raise ConfigError(
                        f'Asset {asset.name!r}: archive member {member!r} is outside the extraction directory'
                    )
            z.extractall(extract_to)
    except zipfile.BadZipFile as e:
        raise BuildError(f'Asset {asset.name!r}: {archive} is not a valid zip file') from e


def asset_root(asset: AssetSpec, cache_dir: Path, assets_dir: Path) -> Path:
    """Directory holding the asset's files: its extraction dir, or the cache."""
    return Path(assets_dir) / asset.name if asset.is_archive else Path(cache_dir)


def asset_source_dir(asset: AssetSpec, cache_dir: Path, assets_dir: Path) -> Path:
    """Directory the asset's ``files`` mappings are relative to."""
    root = asset_root(asset, cache_dir, assets_dir)
    if not asset.is_archive:
        return root
    root.mkdir(parents=True, exist_ok=True)
    extract_archive(asset, Path(cache_dir) / asset.filename, root)
    return root / asset.sourcedir if asset.sourcedir else root


def prepare_asset(asset: AssetSpec, cache_dir: Path, assets_dir: Path, build_dir: Path, strict=False):
    log(f'Preparing asset: {asset.name}')
    if not (Path(cache_dir) / asset.filename).is_file():
        raise ConfigError(f'Asset {asset.name!r} has not been downloaded: {asset.filename}')

    sourcedir = asset_source_dir(asset, cache_dir, assets_dir)
    root = asset_root(asset, cache_dir, assets_dir)
    targetdir = Path(build_dir) / asset.targetdir
    for mapping in asset.files:
        if not mapping.source or not mapping.target:
            continue
        src = sourcedir / mapping.source
        dest = targetdir / mapping.target
        if not within(src, root):
            _refuse(f'Asset {asset.name!r}: source {mapping.source!r} is outside the asset directory', strict)
            continue
        if not within(dest, build_dir):
            _refuse(f'Asset {asset.name!r}: target {mapping.target!r} is outside the build directory', strict)
            continue
        install_file(src, dest)


def prepare_assets(resolved: ResolvedBuild, cache_dir: Path, staging: StagingDirs, strict=False):
    hdr('Pipeline: 7 / 10  -  Preparing assets')
    for asset in referenced_assets(resolved, strict):
        try:
            prepare_asset(asset, cache_dir, staging.assets, staging.build, strict)
        except ConfigError as e:
            if strict:
                raise
            warn(f'{e}; skipping asset.')


# --- Static Files ---

def prepare_files(repo: Path, files_dir: Path, build_dir: Path):
    hdr('Pipeline: 8 / 10  -  Copying files')
    log('Copying license file with file extension')
    install_file(Path(repo) / 'LICENSE', Path(build_dir) / 'LICENSE.txt')

    # Not part of pynsist's Include.files: that option overwrites existing
    # files on install, and the user's config must survive upgrades.
    log('Copying config file')
    install_file(Path(files_dir) / 'config', Path(build_dir) / 'config')
