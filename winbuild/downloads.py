"""
Download cache for the embeddable Python runtime and per-build assets.

Files are cached under ``<root>/cache`` by file name and never re-downloaded
once present; delete a cached file by hand to force a fresh copy. The
embeddable runtime is always checked against its sha256. Assets are checked
when the manifest declares a checksum and verification has not been turned
off.
"""

import hashlib
import urllib.request
from pathlib import Path

from winbuild.console import hdr, log, warn
from winbuild.errors import ConfigError, FetchError, IntegrityError
from winbuild.manifest import AssetSpec, ResolvedBuild

CHUNK_SIZE = 1024 * 1024

USER_AGENT = ('Mozilla/5.0 (Windows NT 10.0; Win64; x64) '
              'AppleWebKit/537.36 (KHTML, like Gecko) '
              'Chrome/120.0.0.0 Safari/537.36')


def dl(url, dest, label=''):
    """
    Downloads a file with a CLI progress bar.

    The payload goes to ``<dest>.part`` first and is renamed into place once
    complete, so an interrupted download never leaves a truncated file in
    the cache.
    """
    dest = Path(dest)
    print(f'  Downloading: {label or dest.name}...')

    def hook(count, block_size, total_size):
        if total_size > 0:
            percentage = min(count * block_size / total_size * 100, 100)
            bar_len = int(percentage / 2)
            bar = '#' * bar_len + '-' * (50 - bar_len)
            print(f'\r  [{bar}] {percentage:5.1f}%', end='', flush=True)

    opener = urllib.request.build_opener()
    opener.addheaders = [('User-Agent', USER_AGENT)]
    urllib.request.install_opener(opener)

    part = dest.with_name(dest.name + '.part')
    try:
        urllib.request.urlretrieve(url, part, reporthook=hook)
    except (OSError, ValueError) as e:
        part.unlink(missing_ok=True)
        raise FetchError(f'Download failed: {url} ({e})') from e
    print()
    part.replace(dest)


def sha256sum(path) -> str:
    digest = hashlib.sha256()
    with open(path, 'rb') as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b''):
            digest.update(chunk)
    return digest.hexdigest()


def verify(path, expected, label=''):
    actual = sha256sum(path)
    if actual.lower() != expected.strip().lower():
        raise IntegrityError(
            f'Checksum mismatch for {label or Path(path).name}: '
            f'expected {expected}, got {actual}. '
            f'Delete {path} to download it again.'
        )
    log(f'{label or Path(path).name}: OK')


def cached(cache_dir: Path, filename: str, url: str, label='') -> Path:
    """Returns the cached copy of ``filename``, downloading it if absent."""
    cache_dir = Path(cache_dir)
    cache_dir.mkdir(parents=True, exist_ok=True)
    path = cache_dir / filename
    if path.is_file():
        log(f'{filename} is already cached.', 'SKIP')
    else:
        dl(url, path, label)
    return path


def get_python(resolved: ResolvedBuild, cache_dir: Path) -> Path:
    hdr('Pipeline: 2 / 10  -  Embeddable Python runtime')
    embed = resolved.build.pythonembed
    path = cached(cache_dir, embed.filename, embed.url, f'Python {embed.version} (embeddable)')
    log('Checking Python')
    verify(path, embed.sha256, embed.filename)
    return path


def referenced_assets(resolved: ResolvedBuild, strict: bool):
    """
    Validated asset entries of the selected build, in declaration order.

    Broken or unknown entries raise in strict mode and are skipped with a
    warning otherwise.
    """
    for name in resolved.build.assets:
        name = name.strip()
        if not name:
            continue
        try:
            yield resolved.manifest.asset(name)
        except ConfigError as e:
            if strict:
                raise
            warn(f'{e}; skipping asset.')


def get_assets(resolved: ResolvedBuild, cache_dir: Path, strict=False, verify_checksums=True):
    hdr('Pipeline: 3 / 10  -  Build assets')
    fetched = []
    for asset in referenced_assets(resolved, strict):
        path = cached(cache_dir, asset.filename, asset.url, f'asset: {asset.name}')
        _check_asset(asset, path, verify_checksums)
        fetched.append(asset)
    return fetched


def _check_asset(asset: AssetSpec, path: Path, verify_checksums: bool):
    if not verify_checksums:
        log(f'Checksum verification disabled for asset: {asset.name}', 'SKIP')
    elif not asset.sha256:
        warn(f"Asset '{asset.name}' declares no sha256; skipping verification.")
    else:
        log(f'Checking asset: {asset.name}')
        verify(path, asset.sha256, asset.filename)
