import argparse
import os
import signal
import sys

from .broadcast import MqttPublisher, NullBroadcaster, PublisherBroadcaster
from .config import TagNodeConfig, load_config
from .worker import TagWorker


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Run a single AprilTag pose node")
    ap.add_argument("--config", required=True, help="Path to JSON/YAML config")

    ap.add_argument("--camera-name")
    ap.add_argument("--camera-frame")
    ap.add_argument("--device")
    ap.add_argument("--fps", type=int)
    ap.add_argument("--width", type=int)
    ap.add_argument("--height", type=int)
    ap.add_argument("--calib")
    ap.add_argument("--out")
    ap.add_argument("--duration", type=float)
    ap.add_argument("--family", help="Tag family, e.g. tag36h11")
    ap.add_argument("--max-frames", type=int)
    ap.add_argument("--log-level")
    ap.add_argument("--dry-run", action="store_true")
    ap.add_argument("--save-frames", action="store_true")
    ap.add_argument("--no-save-frames", action="store_true")
    ap.add_argument(
        "--publish-tf",
        action="store_true",
        help="Publish camera->tag transforms (over MQTT; or set env PUBLISH=1).",
    )
    ap.add_argument("--broker-ip", default="127.0.0.1")
    ap.add_argument("--broker-port", type=int, default=1883)
    ap.add_argument("--topic", help="MQTT topic for transforms (default: tf/<camera_name>)")

    return ap


def _apply_args(cfg: TagNodeConfig, args: argparse.Namespace) -> TagNodeConfig:
    device = args.device
    if isinstance(device, str) and device.isdigit():
        device = int(device)
    save_frames = None
    if args.save_frames:
        save_frames = True
    if args.no_save_frames:
        save_frames = False

    cfg.apply_overrides(
        camera_name=args.camera_name,
        camera_frame=args.camera_frame,
        device=device,
        fps=args.fps,
        width=args.width,
        height=args.height,
        calibration_path=args.calib,
        session_root=args.out,
        duration_sec=args.duration,
        max_frames=args.max_frames,
        log_level=args.log_level,
        dry_run=args.dry_run if args.dry_run else None,
        save_frames=save_frames,
        publish_tf=True if (args.publish_tf or os.getenv("PUBLISH") == "1") else None,
    )
    if args.family:
        cfg.detector.family = args.family
    return cfg


def _build_broadcaster(cfg: TagNodeConfig, args: argparse.Namespace):
    if not cfg.publish_tf:
        return NullBroadcaster()
    client = MqttPublisher(args.broker_ip, args.topic or f"tf/{cfg.camera_name}", args.broker_port)
    return PublisherBroadcaster(client)


def main() -> int:
    ap = _build_parser()
    args = ap.parse_args()

    cfg = load_config(args.config)
    cfg = _apply_args(cfg, args)

    worker = TagWorker(cfg, broadcaster=_build_broadcaster(cfg, args))

    def _handle_signal(_sig, _frame):
        worker.stop()

    signal.signal(signal.SIGINT, _handle_signal)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, _handle_signal)

    summary = worker.run()
    print(summary)
    return 0


if __name__ == "__main__":
    sys.exit(main())
