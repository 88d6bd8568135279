from __future__ import annotations

import shutil
from pathlib import Path

import pytest
from PIL import Image

from conftest import make_distinfo, make_zip, sha256_of, write_manifest
from winbuild import icons, installer, packaging, pipeline, sources, templates
from winbuild.errors import FetchError
from winbuild.manifest import load_manifest, resolve_build
from winbuild.settings import BuildSettings

PROJECT = Path(__file__).resolve().parents[1]


@pytest.fixture
def project(tmp_path: Path, manifest_data: dict) -> BuildSettings:
    root = tmp_path / "project"
    (root / "files").mkdir(parents=True)
    for name in ("installer.cfg", "installer.nsi"):
        shutil.copyfile(PROJECT / name, root / name)
    (root / "files" / "config").write_text("# config\n", encoding="utf-8")

    remote = tmp_path / "remote"
    remote.mkdir()
    python_zip = make_zip(remote / "python-3.13.1-embed-amd64.zip", {"python.exe": b"MZ"})
    ffmpeg_zip = make_zip(remote / "ffmpeg.zip", {
        "ffmpeg-7.1/bin/ffmpeg.exe": b"MZ ffmpeg",
        "ffmpeg-7.1/LICENSE.txt": b"GPL",
    })
    embed = manifest_data["builds"]["py313-x86_64"]["pythonembed"]
    embed["url"] = python_zip.as_uri()
    embed["sha256"] = sha256_of(python_zip)
    manifest_data["assets"]["ffmpeg"]["url"] = ffmpeg_zip.as_uri()
    manifest_data["assets"]["ffmpeg"]["sha256"] = sha256_of(ffmpeg_zip)
    write_manifest(root / "config.yml", manifest_data)
    return BuildSettings(root=root)


@pytest.fixture
def fake_tools(monkeypatch: pytest.MonkeyPatch) -> dict:
    """Replaces git, pip, inkscape/ImageMagick and pynsist with in-process fakes."""
    seen: dict = {}

    def fetch_sources(repo_url, ref, dest, depth):
        seen["temp"] = Path(dest).parent
        dest.mkdir(parents=True)
        (dest / "LICENSE").write_text("BSD-2-Clause\n", encoding="utf-8")
        (dest / "icon.svg").write_text("<svg/>", encoding="utf-8")

    def install_app(build, source, pkgs):
        make_distinfo(pkgs, "streamlink-6.8.3.dist-info", "streamlink", "6.8.3")

    def make_icon(svg, build_dir, converters=None):
        ico = Path(build_dir) / "icon.ico"
        Image.new("RGBA", (256, 256)).save(ico, format="ICO", sizes=[(s, s) for s in (16, 32, 48, 256)])
        return ico

    def run(cmd, **kw):
        cfg = Path(cmd[1])
        seen["files"] = {p.relative_to(cfg.parent).as_posix() for p in cfg.parent.rglob("*") if p.is_file()}
        seen["cfg"] = cfg.read_text(encoding="utf-8")
        seen["env"] = kw["env"]

    monkeypatch.setattr(sources, "fetch_sources", fetch_sources)
    monkeypatch.setattr(sources, "short_commit", lambda repo: "abcdef0")
    monkeypatch.setattr(installer, "short_commit", lambda repo: "abcdef0")
    monkeypatch.setattr(packaging, "install_app", install_app)
    monkeypatch.setattr(packaging, "download_wheels", lambda build, wheels: None)
    monkeypatch.setattr(icons, "make_icon", make_icon)
    monkeypatch.setattr(installer.shutil, "which", lambda name: None)
    monkeypatch.setattr(installer, "run", run)
    return seen


def test_build_assemblesStagingTree(project: BuildSettings, fake_tools: dict) -> None:
    resolved = resolve_build(load_manifest(project.config), "py313-x86_64")

    artifact = pipeline.build(resolved, project)

    assert artifact == project.dir_dist / "streamlink-6.8.3-1-py313-x86_64.exe"
    assert {
        "icon.ico",
        "LICENSE.txt",
        "config",
        "ffmpeg/ffmpeg.exe",
        "ffmpeg/LICENSE.txt",
        "python-3.13.1-embed-amd64.zip",
        "installer.cfg",
        "installer.nsi",
    } <= fake_tools["files"]
    cfg = fake_tools["cfg"]
    assert cfg.strip()
    assert templates.unresolved(cfg, ["DIR_BUILD", "DIR_WHEELS", "DIR_DISTINFO", "VERSION",
                                      "PYTHONVERSION", "BITNESS", "INSTALLER_NAME", "NSI_TEMPLATE"]) == []
    assert "local_wheels" not in cfg

    # the run-scoped working tree is gone, cache and dist persist
    assert not fake_tools["temp"].exists()
    assert (project.dir_cache / "python-3.13.1-embed-amd64.zip").is_file()
    assert (project.dir_cache / "ffmpeg.zip").is_file()
    assert project.dir_dist.is_dir()


def test_build_customRefVersion(project: BuildSettings, fake_tools: dict) -> None:
    resolved = resolve_build(load_manifest(project.config), "py313-x86_64", "", "feature")
    artifact = pipeline.build(resolved, project)
    assert artifact.name == "streamlink-6.8.3+0.gabcdef0-1-py313-x86_64.exe"


def test_build_removesWorkingTreeOnFailure(
    project: BuildSettings, fake_tools: dict, monkeypatch: pytest.MonkeyPatch
) -> None:
    def failing_install(build, source, pkgs):
        raise FetchError("boom")

    monkeypatch.setattr(packaging, "install_app", failing_install)
    resolved = resolve_build(load_manifest(project.config), "py313-x86_64")

    with pytest.raises(FetchError):
        pipeline.build(resolved, project)
    assert not fake_tools["temp"].exists()
