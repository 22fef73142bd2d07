"""CLI entrypoint for BombusCV."""

from __future__ import annotations

import sys

from dotenv import load_dotenv

load_dotenv()

import fire  # type: ignore[import-untyped]

from bombuscv.app import run as run_pipeline
from bombuscv.capture.negotiator import DeviceNegotiator
from bombuscv.capture.source import CameraSource
from bombuscv.config import ConfigError, apply_overrides, load_config
from bombuscv.errors import SetupError
from bombuscv.logging_setup import configure_logging
from bombuscv.models.config import Config
from bombuscv.pipeline.shutdown import ShutdownToken, install_signal_handlers

CONFIG_ERROR_EXIT_CODE = 2


def setup_logging(level: str = "INFO", *, quiet: bool = False) -> None:
    """Configure logging for CLI."""
    configure_logging(log_level=level, quiet=quiet)


def _load(config: str | None, overrides: dict[str, object] | None = None) -> Config:
    try:
        cfg = load_config(config)
        if overrides:
            cfg = apply_overrides(cfg, overrides)
    except ConfigError as e:
        print(f"✗ Config invalid: {e}", file=sys.stderr)
        sys.exit(CONFIG_ERROR_EXIT_CODE)
    return cfg


class BombusCV:
    """BombusCV - motion detection and video recording for field research."""

    def run(
        self,
        config: str | None = None,
        index: int | None = None,
        video: str | None = None,
        framerate: float | None = None,
        resolution: str | None = None,
        width: int | None = None,
        height: int | None = None,
        directory: str | None = None,
        format: str | None = None,
        overlay: bool = False,
        quiet: bool = False,
        quiet_duration: float | None = None,
        codec: str | None = None,
        log_level: str | None = None,
    ) -> None:
        """Watch the camera (or a video file) and record only segments with motion.

        Args:
            config: Path to YAML config file (default: $BOMBUSCV_CONFIG or ~/.config/bombuscv/config.yaml)
            index: /dev/video<INDEX> capture camera index
            video: Video file as input (uses its native resolution and framerate)
            framerate: Requested video framerate
            resolution: Requested resolution preset (480p, 576p, 720p, 768p, 900p, 1080p, 1440p, 2160p)
            width: Requested frame width (overrides the preset)
            height: Requested frame height (overrides the preset)
            directory: Output video directory
            format: Output video filename format (strftime specifiers)
            overlay: Enable date&time video overlay
            quiet: Mute standard output
            quiet_duration: Seconds without motion before a recording is closed
            codec: Output codec (MJPG, XVID, MP4V, H264)
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        """
        cfg = _load(
            config,
            {
                "index": index,
                "video": video,
                "framerate": framerate,
                "resolution": resolution,
                "width": width,
                "height": height,
                "directory": directory,
                "format": format,
                "overlay": overlay,
                "quiet": quiet,
                "quiet_duration_s": quiet_duration,
                "codec": codec,
                "log_level": log_level,
            },
        )
        setup_logging(cfg.log_level, quiet=cfg.quiet)

        token = ShutdownToken()
        restore_signals = install_signal_handlers(token)
        try:
            status = run_pipeline(cfg, token=token)
        finally:
            restore_signals()

        if status.exit_code:
            sys.exit(status.exit_code)

    def validate(self, config: str | None = None) -> None:
        """Validate config file without running.

        Args:
            config: Path to YAML config file
        """
        cfg = _load(config)
        request = cfg.capture_request()
        print("✓ Config valid")
        if cfg.video is not None:
            print(f"  Input: {cfg.video} (native resolution and framerate)")
        else:
            print(f"  Input: /dev/video{cfg.index}")
            print(f"  Requested mode: {request.width}x{request.height}@{request.framerate}")
        print(f"  Output directory: {cfg.directory}")
        print(f"  Filename format: {cfg.format}")
        print(f"  Codec: {cfg.codec.value}")
        print(f"  Overlay: {cfg.overlay}")
        print(f"  Quiet duration: {cfg.quiet_duration_s}s")

    def modes(self, index: int = 0, log_level: str = "WARNING") -> None:
        """List the capture modes a camera supports.

        Args:
            index: /dev/video<INDEX> capture camera index
            log_level: Logging level
        """
        setup_logging(log_level)
        try:
            camera = CameraSource.open(index)
        except SetupError as e:
            print(f"✗ {e}", file=sys.stderr)
            sys.exit(1)
        try:
            modes = DeviceNegotiator().supported_modes(camera)
        except SetupError as e:
            print(f"✗ {e}", file=sys.stderr)
            sys.exit(1)
        finally:
            camera.close()
        print(f"Supported modes for {camera.device_path}:")
        for mode in sorted(modes, key=lambda m: (m.area, m.framerate)):
            print(f"  {mode}")


def main() -> None:
    """Main CLI entrypoint."""
    # Strip --help/-h when it's the only arg so Fire shows its commands list
    if len(sys.argv) == 2 and sys.argv[1] in ("--help", "-h"):
        sys.argv.pop()
    fire.Fire(BombusCV)


if __name__ == "__main__":
    main()
