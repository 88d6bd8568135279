"""
Build manifest (``config.yml``) parsing and build selection.

Layout of the manifest:

    app:    {name, rel}
    git:    {repo, ref}
    builds: {<buildname>: {implementation, pythonversion, platform,
                           pythonembed: {version, filename, url, sha256},
                           dependencies: {<name>: <pin>}, assets: [<name>]}}
    assets: {<assetname>: {type, filename, url, sha256, sourcedir,
                           targetdir, files: [{from, to}]}}

Builds are kept in document order; the first one is the default. Asset
entries are validated one at a time when they are used, so a broken asset
can be skipped without rejecting the whole manifest.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from winbuild.errors import ConfigError


class _Model(BaseModel):
    # YAML turns `rel: 1` or `pythonversion: 3.13` into numbers
    model_config = ConfigDict(coerce_numbers_to_str=True, populate_by_name=True)


class AppInfo(_Model):
    name: str
    rel: str


class GitInfo(_Model):
    repo: str
    ref: str


class PythonEmbed(_Model):
    version: str
    filename: str
    url: str
    sha256: str


class FileMapping(_Model):
    source: str = Field(default='', alias='from')
    target: str = Field(default='', alias='to')


class AssetSpec(_Model):
    name: str = ''
    filename: str
    url: str
    sha256: Optional[str] = None
    type: str = 'file'
    sourcedir: str = ''
    targetdir: str = ''
    files: List[FileMapping] = Field(default_factory=list)

    @property
    def is_archive(self) -> bool:
        return self.type == 'zip'


class BuildSpec(_Model):
    name: str = ''
    implementation: str
    pythonversion: str
    platform: str
    pythonembed: PythonEmbed
    dependencies: Dict[str, str] = Field(default_factory=dict)
    assets: List[str] = Field(default_factory=list)

    @property
    def arch(self) -> str:
        return 'amd64' if self.platform == 'win_amd64' else 'win32'

    @property
    def bitness(self) -> int:
        return 64 if self.platform == 'win_amd64' else 32

    def requirements(self) -> List[str]:
        return [f'{name}=={pin}' for name, pin in self.dependencies.items()]


class BuildManifest(_Model):
    app: AppInfo
    git: GitInfo
    builds: Dict[str, Any]
    assets: Dict[str, Any] = Field(default_factory=dict)

    def build_names(self) -> List[str]:
        return list(self.builds)

    def asset(self, name: str) -> AssetSpec:
        """Validates and returns a single asset entry."""
        raw = self.assets.get(name)
        if not isinstance(raw, dict):
            raise ConfigError(f'Asset {name!r} is not defined in the manifest')
        try:
            return AssetSpec.model_validate({**raw, 'name': name})
        except ValidationError as e:
            raise ConfigError(f'Invalid asset {name!r}: {_summary(e)}') from e


class ResolvedBuild(BaseModel):
    """Everything a run needs to know about the selected build."""
    name: str
    app: AppInfo
    git: GitInfo
    build: BuildSpec
    manifest: BuildManifest
    custom_ref: bool = False


def _summary(e: ValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = '.'.join(str(p) for p in err['loc'])
        parts.append(f'{loc}: {err["msg"]}' if loc else err['msg'])
    return '; '.join(parts)


def load_manifest(path: Path) -> BuildManifest:
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f'Missing config file: {path}')
    try:
        data = yaml.safe_load(path.read_text(encoding='utf-8'))
    except yaml.YAMLError as e:
        raise ConfigError(f'Unable to parse {path}: {e}') from e
    if not isinstance(data, dict):
        raise ConfigError(f'YAML root must be a map: {path}')
    try:
        return BuildManifest.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f'Invalid config file {path}: {_summary(e)}') from e


def resolve_build(
    manifest: BuildManifest,
    buildname: Optional[str] = None,
    gitrepo: Optional[str] = None,
    gitref: Optional[str] = None,
) -> ResolvedBuild:
    """
    Selects a build from the manifest.

    An explicit ``buildname`` must exist; without one the first build in
    document order is used. ``gitrepo``/``gitref`` override the manifest's
    git defaults; a non-empty ``gitref`` marks the run as a custom-ref build.
    """
    if buildname:
        if buildname not in manifest.builds:
            raise ConfigError(f'Invalid build name: {buildname}')
    else:
        if not manifest.builds:
            raise ConfigError('The manifest does not declare any builds')
        buildname = manifest.build_names()[0]

    raw = manifest.builds[buildname]
    if not isinstance(raw, dict):
        raise ConfigError(f'Build {buildname!r} must be a map')
    try:
        build = BuildSpec.model_validate({**raw, 'name': buildname})
    except ValidationError as e:
        raise ConfigError(f'Invalid build {buildname!r}: {_summary(e)}') from e

    git = GitInfo(
        repo=gitrepo or manifest.git.repo,
        ref=gitref or manifest.git.ref,
    )
    return ResolvedBuild(
        name=buildname,
        app=manifest.app,
        git=git,
        build=build,
        manifest=manifest,
        custom_ref=bool(gitref),
    )
