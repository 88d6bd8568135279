"""
Application icon: icon.svg -> icon-<size>.png -> icon.ico.

Inkscape rasterizes the SVG; ImageMagick packs the PNGs into one .ico.

RATIONALE:
Inkscape 1.0 renamed its export flags (--export-png became
--export-filename, --without-gui is gone), and older CI images still ship
0.92, so the flag set follows the installed version.

On Windows ``convert`` is usually the system's FAT-to-NTFS converter, not
ImageMagick. ``magick`` is preferred and ``convert`` is only used after its
version banner proves it is ImageMagick.
"""

import re
import shutil
from pathlib import Path

from PIL import Image

from winbuild.console import capture, log, run, warn
from winbuild.errors import ToolError
from winbuild.settings import ICON_SIZES


# --- Rasterizer ---

def inkscape_major(version_output: str) -> int:
    match = re.search(r'Inkscape\s+(\d+)\.', version_output)
    return int(match.group(1)) if match else 1


def inkscape_export_args(major: int, dest: Path, size: int):
    if major < 1:
        return ['--without-gui', f'--export-png={dest}', '-w', str(size), '-h', str(size)]
    return ['--export-type=png', f'--export-filename={dest}', '-w', str(size), '-h', str(size)]


def rasterize(svg: Path, outdir: Path, sizes=ICON_SIZES):
    major = inkscape_major(capture(['inkscape', '--version']))
    pngs = []
    for size in sizes:
        dest = Path(outdir) / f'icon-{size}.png'
        run(['inkscape', *inkscape_export_args(major, dest, size), str(svg)])
        pngs.append(dest)
    return pngs


# --- Converters ---

class IconConverter:
    name = ''

    def available(self) -> bool:
        raise NotImplementedError

    def command(self, pngs, dest):
        raise NotImplementedError

    def convert(self, pngs, dest):
        run(self.command(pngs, dest))


class MagickConverter(IconConverter):
    name = 'magick'

    def available(self):
        return shutil.which('magick') is not None

    def command(self, pngs, dest):
        return ['magick', *pngs, dest]


class LegacyConvertConverter(IconConverter):
    name = 'convert'

    def available(self):
        if shutil.which('convert') is None:
            return False
        try:
            banner = capture(['convert', '-version'])
        except ToolError:
            return False
        return 'imagemagick' in banner.lower()

    def command(self, pngs, dest):
        return ['convert', *pngs, dest]


CONVERTERS = [MagickConverter(), LegacyConvertConverter()]


def select_converter(converters=None) -> IconConverter:
    for converter in (CONVERTERS if converters is None else converters):
        if converter.available():
            return converter
    raise ToolError("ImageMagick not found (install ImageMagick or ensure 'magick' is on PATH).")


def icon_sizes(ico: Path):
    with Image.open(ico) as im:
        return set(im.info.get('sizes', set())) | {im.size}


def make_icon(svg: Path, build_dir: Path, converters=None) -> Path:
    log('Creating icon')
    converter = select_converter(converters)
    pngs = rasterize(svg, build_dir)
    ico = Path(build_dir) / 'icon.ico'
    converter.convert(pngs, ico)

    missing = sorted(s for s in ICON_SIZES if (s, s) not in icon_sizes(ico))
    if missing:
        warn(f'{ico.name} is missing sizes: {", ".join(map(str, missing))}')
    else:
        log(f'{ico.name}: {", ".join(f"{s}x{s}" for s in ICON_SIZES)}')
    return ico
