from __future__ import annotations

import shutil
import urllib.request
from pathlib import Path

import pytest

from winbuild import cli, icons, pipeline, settings as build_settings
from winbuild.errors import BuildError, ToolError


@pytest.fixture
def no_side_effects(monkeypatch: pytest.MonkeyPatch) -> None:
    def forbidden(*args, **kwargs):
        pytest.fail("no download or build may start")

    monkeypatch.setattr(urllib.request, "urlretrieve", forbidden)
    monkeypatch.setattr(pipeline, "build", forbidden)
    monkeypatch.setattr(cli, "check_tools", lambda: None)
    monkeypatch.setattr(cli, "check_pip", lambda: None)
    monkeypatch.setattr(cli, "check_converter", lambda: None)


def test_parse_args_defaults() -> None:
    args = cli.parse_args([])
    assert (args.buildname, args.gitrepo, args.gitref) == ("", "", "")
    assert args.git_depth == 300
    assert not args.strict_assets
    assert not args.no_asset_checksums


def test_parse_args_positionals() -> None:
    args = cli.parse_args(["py313-x86", "https://example.invalid/fork.git", "feature", "--strict-assets"])
    assert (args.buildname, args.gitrepo, args.gitref) == ("py313-x86", "https://example.invalid/fork.git", "feature")
    assert args.strict_assets


def test_check_environment() -> None:
    with pytest.raises(BuildError, match="virtual environment"):
        cli.check_environment({})
    cli.check_environment({"CI": "true"})
    cli.check_environment({"VIRTUAL_ENV": "/venv"})


def test_check_tools() -> None:
    with pytest.raises(ToolError, match="NSIS is required"):
        cli.check_tools({"git": "git", "makensis": "NSIS"}, which=lambda cmd: None if cmd == "makensis" else cmd)
    cli.check_tools({"git": "git"}, which=lambda cmd: cmd)


def test_main_requiresBuildEnvironment(
    monkeypatch: pytest.MonkeyPatch, no_side_effects: None, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.delenv("CI", raising=False)
    monkeypatch.delenv("VIRTUAL_ENV", raising=False)

    with pytest.raises(SystemExit) as exc:
        cli.main([])
    assert exc.value.code == 1
    assert "Can only be built in a virtual environment" in capsys.readouterr().err


def test_main_unknownBuildAbortsBeforeNetwork(
    monkeypatch: pytest.MonkeyPatch,
    no_side_effects: None,
    manifest_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setenv("CI", "1")

    with pytest.raises(SystemExit) as exc:
        cli.main(["nope", "--root", str(manifest_path.parent)])
    assert exc.value.code == 1
    assert "Invalid build name: nope" in capsys.readouterr().err
    assert not (manifest_path.parent / "cache").exists()
    assert not (manifest_path.parent / "dist").exists()


def test_main_missingConfig(
    monkeypatch: pytest.MonkeyPatch, no_side_effects: None, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("CI", "1")

    with pytest.raises(SystemExit) as exc:
        cli.main(["--root", str(tmp_path)])
    assert exc.value.code == 1
    assert "Missing config file" in capsys.readouterr().err


def test_main_passesSettings(monkeypatch: pytest.MonkeyPatch, manifest_path: Path) -> None:
    calls = []
    monkeypatch.setenv("CI", "1")
    monkeypatch.setattr(cli, "check_tools", lambda: None)
    monkeypatch.setattr(cli, "check_pip", lambda: None)
    monkeypatch.setattr(cli, "check_converter", lambda: None)
    monkeypatch.setattr(pipeline, "build", lambda resolved, settings: calls.append((resolved, settings)))

    cli.main(["py313-x86", "", "feature", "--root", str(manifest_path.parent),
              "--no-asset-checksums", "--git-depth", "50"])

    (resolved, settings), = calls
    assert resolved.name == "py313-x86"
    assert resolved.git.ref == "feature"
    assert resolved.custom_ref
    assert settings.verify_assets is False
    assert settings.git_depth == 50
    assert settings.config == manifest_path


def test_main_missingImageMagickAbortsBeforeBuild(
    monkeypatch: pytest.MonkeyPatch, manifest_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    calls = []
    real_which = shutil.which
    monkeypatch.setenv("CI", "1")
    monkeypatch.setattr(cli, "check_tools", lambda: None)
    monkeypatch.setattr(cli, "check_pip", lambda: None)
    monkeypatch.setattr(shutil, "which", lambda cmd: None if cmd in ("magick", "convert") else real_which(cmd))
    monkeypatch.setattr(pipeline, "build", lambda resolved, settings: calls.append(resolved))

    with pytest.raises(SystemExit) as exc:
        cli.main(["py313-x86_64", "--root", str(manifest_path.parent)])
    assert exc.value.code == 1
    assert "ImageMagick not found" in capsys.readouterr().err
    assert calls == []
    assert not (manifest_path.parent / "cache").exists()


def test_check_converter_picksFirstAvailable(capsys: pytest.CaptureFixture[str]) -> None:
    class Available(icons.IconConverter):
        name = "magick"

        def available(self) -> bool:
            return True

    cli.check_converter([Available()])
    assert "Icon converter: magick" in capsys.readouterr().out


# ----------------------------
# project root
# ----------------------------

def test_default_root_prefersSourceCheckout(tmp_path: Path) -> None:
    (tmp_path / "config.yml").write_text("app: {}\n", encoding="utf-8")
    assert build_settings.default_root(tmp_path) == tmp_path


def test_default_root_installedPackageUsesWorkingDirectory(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    site_packages = tmp_path / "site-packages"
    site_packages.mkdir()
    project = tmp_path / "project"
    project.mkdir()
    monkeypatch.chdir(project)

    assert build_settings.default_root(site_packages) == project


def test_main_defaultRootFollowsWorkingDirectory(
    monkeypatch: pytest.MonkeyPatch, manifest_path: Path
) -> None:
    calls = []
    monkeypatch.setenv("CI", "1")
    monkeypatch.setattr(cli, "check_tools", lambda: None)
    monkeypatch.setattr(cli, "check_pip", lambda: None)
    monkeypatch.setattr(cli, "check_converter", lambda: None)
    monkeypatch.setattr(cli, "default_root", lambda: manifest_path.parent)
    monkeypatch.setattr(pipeline, "build", lambda resolved, settings: calls.append(settings))

    cli.main(["py313-x86_64"])

    settings, = calls
    assert settings.root == manifest_path.parent
