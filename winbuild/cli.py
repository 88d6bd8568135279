"""
Command line entry point.

    winbuild [BUILDNAME] [GITREPO] [GITREF]

BUILDNAME defaults to the first build in config.yml; GITREPO and GITREF
override the manifest's git section. All preconditions (environment, tools,
manifest, build name) are checked before anything is downloaded.
"""

import argparse
import importlib.util
import platform
import shutil
import sys

from winbuild import icons, pipeline
from winbuild.console import error, log
from winbuild.errors import BuildError, ToolError
from winbuild.manifest import load_manifest, resolve_build
from winbuild.settings import GIT_FETCHDEPTH, REQUIRED_TOOLS, BuildSettings, default_root, in_build_environment


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog='winbuild',
        description='Build the Windows installer from a git reference.',
    )
    parser.add_argument('buildname', nargs='?', default='',
                        help='build from config.yml (default: the first one)')
    parser.add_argument('gitrepo', nargs='?', default='',
                        help='override the git repository URL')
    parser.add_argument('gitref', nargs='?', default='',
                        help='override the git reference (branch, tag or commit)')
    parser.add_argument('--root', default=None,
                        help='project directory holding config.yml and the templates '
                             '(default: the source checkout, else the current directory)')
    parser.add_argument('--git-depth', type=int, default=GIT_FETCHDEPTH,
                        help='history depth fetched for tag-based versioning (default: %(default)s)')
    parser.add_argument('--strict-assets', action='store_true',
                        help='fail on malformed asset entries instead of skipping them')
    parser.add_argument('--no-asset-checksums', action='store_true',
                        help='do not verify asset checksums (the Python runtime is always verified)')
    return parser.parse_args(argv)


def check_environment(environ=None):
    if not in_build_environment(environ):
        raise BuildError('Can only be built in a virtual environment')


def check_tools(tools=None, which=shutil.which):
    for cmd, package in (REQUIRED_TOOLS if tools is None else tools).items():
        if which(cmd) is None:
            raise ToolError(f'{package} is required to build the installer. Aborting.')


def check_pip():
    if importlib.util.find_spec('pip') is None:
        raise ToolError('pip is required to build the installer. Aborting.')


def check_converter(converters=None):
    converter = icons.select_converter(converters)
    log(f'Icon converter: {converter.name}')


def banner(settings: BuildSettings):
    print('\nWindows Installer :: Automated Build System')
    print('===========================================')
    print(f'  Platform : {platform.system()} ({platform.machine().lower()})')
    print(f'  Engine   : Python {sys.version.split()[0]}')
    print(f'  Output   : {settings.dir_dist.resolve()}')
    print()


def main(argv=None):
    args = parse_args(argv)
    settings = BuildSettings(
        root=args.root or default_root(),
        git_depth=args.git_depth,
        strict_assets=args.strict_assets,
        verify_assets=not args.no_asset_checksums,
    )
    try:
        check_environment()
        check_tools()
        check_pip()
        check_converter()
        manifest = load_manifest(settings.config)
        resolved = resolve_build(manifest, args.buildname, args.gitrepo, args.gitref)
        banner(settings)
        pipeline.build(resolved, settings)
    except BuildError as e:
        error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        error('Interrupted')
        sys.exit(130)
