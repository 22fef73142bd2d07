"""Tests for configuration loading and command-line overrides."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from bombuscv.capture.frame import CaptureRequest
from bombuscv.config import (
    CONFIG_ENV_VAR,
    ConfigError,
    ConfigErrorCode,
    apply_overrides,
    default_config_path,
    load_config,
    load_config_from_dict,
)
from bombuscv.recording.sink import Codec


@pytest.fixture(autouse=True)
def isolated_config_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Point the default config location at an empty temp dir."""
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))


def _write_config(path: Path, data: object) -> Path:
    path.write_text(yaml.safe_dump(data))
    return path


def test_defaults_when_no_config_file() -> None:
    """A missing default config file means built-in defaults."""
    # When: loading without any config file present
    config = load_config()

    # Then: defaults match the documented CLI defaults
    assert config.index == 0
    assert config.video is None
    assert config.framerate == 60.0
    assert config.resolution == "480p"
    assert config.directory == Path.home()
    assert config.format == "%Y-%m-%dT%H:%M:%S"
    assert config.overlay is False
    assert config.quiet is False
    assert config.codec is Codec.XVID
    assert config.capture_request() == CaptureRequest(width=854, height=480, framerate=60.0)


def test_default_config_path_follows_xdg(tmp_path: Path) -> None:
    assert default_config_path() == tmp_path / "xdg" / "bombuscv" / "config.yaml"


def test_loads_yaml_file(tmp_path: Path) -> None:
    """Values from the YAML file are validated into the config."""
    # Given: a config file with capture and motion settings
    path = _write_config(
        tmp_path / "config.yaml",
        {
            "index": 2,
            "framerate": 30,
            "resolution": "720P",
            "directory": str(tmp_path),
            "codec": "mjpg",
            "motion": {"pixel_threshold": 20, "min_changed_pct": 0.5},
        },
    )

    # When: loading it
    config = load_config(path)

    # Then: values are normalized
    assert config.index == 2
    assert config.resolution == "720p"
    assert config.codec is Codec.MJPG
    assert config.motion.pixel_threshold == 20
    assert config.capture_request() == CaptureRequest(width=1280, height=720, framerate=30.0)


def test_env_var_names_config_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """BOMBUSCV_CONFIG points at the file to load."""
    path = _write_config(tmp_path / "env.yaml", {"directory": str(tmp_path), "quiet": True})
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

    config = load_config()

    assert config.quiet is True


def test_default_location_is_read(tmp_path: Path) -> None:
    """A file at the XDG location is picked up without being named."""
    path = default_config_path()
    path.parent.mkdir(parents=True)
    _write_config(path, {"directory": str(tmp_path), "index": 1})

    assert load_config().index == 1


def test_empty_file_means_defaults(tmp_path: Path) -> None:
    path = tmp_path / "empty.yaml"
    path.write_text("")

    assert load_config(path).framerate == 60.0


def test_explicit_missing_file_is_error(tmp_path: Path) -> None:
    """A named config file that does not exist is an error."""
    with pytest.raises(ConfigError) as exc_info:
        load_config(tmp_path / "missing.yaml")

    assert exc_info.value.code is ConfigErrorCode.FILE_NOT_FOUND


def test_invalid_yaml_is_error(tmp_path: Path) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text("index: [1, 2\n")

    with pytest.raises(ConfigError) as exc_info:
        load_config(path)

    assert exc_info.value.code is ConfigErrorCode.YAML_INVALID


def test_non_mapping_root_is_error(tmp_path: Path) -> None:
    path = _write_config(tmp_path / "list.yaml", [1, 2, 3])

    with pytest.raises(ConfigError) as exc_info:
        load_config(path)

    assert exc_info.value.code is ConfigErrorCode.ROOT_NOT_MAPPING


@pytest.mark.parametrize(
    ("data", "field"),
    [
        ({"resolution": "4k"}, "resolution"),
        ({"framerate": 0}, "framerate"),
        ({"quiet_duration_s": 0}, "quiet_duration_s"),
        ({"codec": "AV1"}, "codec"),
        ({"directory": "/nonexistent/bombuscv"}, "directory"),
        ({"unknown_key": 1}, "unknown_key"),
        ({"runtime": {"channel_capacity": 3}}, "channel_capacity"),
    ],
)
def test_validation_errors_name_the_field(data: dict[str, object], field: str) -> None:
    """Invalid values are rejected with a readable message."""
    with pytest.raises(ConfigError) as exc_info:
        load_config_from_dict(data)

    assert exc_info.value.code is ConfigErrorCode.VALIDATION_FAILED
    assert field in str(exc_info.value)


def test_overrides_take_precedence(tmp_path: Path) -> None:
    """Command-line options win over file values; unset options are ignored."""
    # Given: a loaded config
    config = load_config_from_dict({"directory": str(tmp_path), "framerate": 30})

    # When: applying overrides with some options unset
    updated = apply_overrides(
        config, {"framerate": 15.0, "width": 640, "height": None, "overlay": True, "quiet": False}
    )

    # Then: only given options changed
    assert updated.framerate == 15.0
    assert updated.overlay is True
    assert updated.quiet is False
    assert updated.capture_request() == CaptureRequest(width=640, height=480, framerate=15.0)


def test_video_input_ignores_live_options(tmp_path: Path) -> None:
    """With a video file the live-only options are dropped and overlay forced off."""
    # Given: a config with overlay on and a video file
    video = tmp_path / "bees.mkv"
    video.write_bytes(b"\x00")
    config = load_config_from_dict({"directory": str(tmp_path), "overlay": True})

    # When: selecting the video with live options
    updated = apply_overrides(
        config, {"video": str(video), "framerate": 120.0, "resolution": "1080p"}
    )

    # Then: native values will be used
    assert updated.video == video
    assert updated.overlay is False
    assert updated.framerate == 60.0
    assert updated.resolution == "480p"
    assert updated.is_file_input is True
    assert updated.capture_request() == CaptureRequest()


def test_missing_video_file_is_error(tmp_path: Path) -> None:
    config = load_config_from_dict({"directory": str(tmp_path)})

    with pytest.raises(ConfigError, match="video"):
        apply_overrides(config, {"video": str(tmp_path / "missing.mkv")})
