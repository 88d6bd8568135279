import hashlib
import zipfile
from pathlib import Path

import pytest
import yaml


def sample_manifest() -> dict:
    return {
        "app": {"name": "streamlink", "rel": 1},
        "git": {"repo": "https://example.invalid/streamlink.git", "ref": "master"},
        "builds": {
            "py313-x86_64": {
                "implementation": "cp",
                "pythonversion": "313",
                "platform": "win_amd64",
                "pythonembed": {
                    "version": "3.13.1",
                    "filename": "python-3.13.1-embed-amd64.zip",
                    "url": "https://example.invalid/python-3.13.1-embed-amd64.zip",
                    "sha256": "0" * 64,
                },
                "dependencies": {"certifi": "2024.12.14", "idna": "3.10"},
                "assets": ["ffmpeg"],
            },
            "py313-x86": {
                "implementation": "cp",
                "pythonversion": "313",
                "platform": "win32",
                "pythonembed": {
                    "version": "3.13.1",
                    "filename": "python-3.13.1-embed-win32.zip",
                    "url": "https://example.invalid/python-3.13.1-embed-win32.zip",
                    "sha256": "0" * 64,
                },
                "dependencies": {},
                "assets": [],
            },
        },
        "assets": {
            "ffmpeg": {
                "type": "zip",
                "filename": "ffmpeg.zip",
                "url": "https://example.invalid/ffmpeg.zip",
                "sourcedir": "ffmpeg-7.1",
                "targetdir": "ffmpeg",
                "files": [
                    {"from": "bin/ffmpeg.exe", "to": "ffmpeg.exe"},
                    {"from": "LICENSE.txt", "to": "LICENSE.txt"},
                ],
            },
        },
    }


def write_manifest(path: Path, data: dict) -> Path:
    path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    return path


def make_zip(path: Path, members: dict) -> Path:
    with zipfile.ZipFile(path, "w") as z:
        for name, content in members.items():
            z.writestr(name, content)
    return path


def sha256_of(path: Path) -> str:
    return hashlib.sha256(path.read_bytes()).hexdigest()


@pytest.fixture
def manifest_data() -> dict:
    return sample_manifest()


@pytest.fixture
def manifest_path(tmp_path: Path, manifest_data: dict) -> Path:
    return write_manifest(tmp_path / "config.yml", manifest_data)


def make_distinfo(pkgs: Path, dirname: str, name: str, version: str) -> Path:
    distinfo = pkgs / dirname
    distinfo.mkdir(parents=True)
    (distinfo / "METADATA").write_text(
        f"Metadata-Version: 2.1\nName: {name}\nVersion: {version}\n",
        encoding="utf-8",
    )
    return distinfo
