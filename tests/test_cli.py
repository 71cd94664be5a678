import sys

import pytest

from tag_camera import launch, run
from tag_camera.broadcast import NullBroadcaster
from tag_camera.config import TagNodeConfig


def test_build_commands(tmp_path):
    a = tmp_path / "front.yaml"
    b = tmp_path / "rear.yaml"
    a.write_text("camera_name: front\n")
    b.write_text("camera_name: rear\n")

    cmds = launch.build_commands([str(a), str(b)], ["--dry-run"])

    assert cmds == [
        [sys.executable, "-m", "tag_camera.run", "--config", str(a), "--dry-run"],
        [sys.executable, "-m", "tag_camera.run", "--config", str(b), "--dry-run"],
    ]


def test_build_commands_missing_config(tmp_path):
    with pytest.raises(FileNotFoundError):
        launch.build_commands([str(tmp_path / "missing.yaml")], [])


def test_cli_overrides(monkeypatch):
    monkeypatch.delenv("PUBLISH", raising=False)
    args = run._build_parser().parse_args(
        ["--config", "x.yaml", "--device", "2", "--fps", "5", "--family", "tag16h5", "--dry-run", "--no-save-frames"]
    )
    cfg = run._apply_args(TagNodeConfig(save_frames=True), args)

    assert cfg.device == 2
    assert cfg.fps == 5
    assert cfg.detector.family == "tag16h5"
    assert cfg.dry_run is True
    assert cfg.save_frames is False
    assert cfg.publish_tf is False
    assert isinstance(run._build_broadcaster(cfg, args), NullBroadcaster)


def test_publish_env(monkeypatch):
    monkeypatch.setenv("PUBLISH", "1")
    args = run._build_parser().parse_args(["--config", "x.yaml", "--device", "/dev/video1"])
    cfg = run._apply_args(TagNodeConfig(), args)
    assert cfg.publish_tf is True
    assert cfg.device == "/dev/video1"
