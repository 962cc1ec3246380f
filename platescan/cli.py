import argparse
import asyncio
import dataclasses
import json
import logging
from pathlib import Path

import cv2

from .core.logging_setup import setup_logger
from .cv.device import build_device_request, list_video_devices
from .cv.frame_source import CROP_MODES, DeviceAcquisitionError, FrameSource
from .cv.region_detector import FrameProcessingError, RegionDetector
from .pipeline.config import load_config, validate_config
from .pipeline.recognition import RecognitionClient
from .pipeline.runner import PlateScanPipeline, analyze_image
from .utils.config import SETTINGS

log = logging.getLogger("platescan.cli")


# ---------- run ----------

async def run_scanner(pipeline: PlateScanPipeline, web_enabled: bool, host: str, port: int) -> None:
    """Run the frame loop (and optionally the status server) until cancelled."""
    web_runner = None
    if web_enabled:
        from .web.server import start_site
        web_runner = await start_site(pipeline, host, port)

    try:
        try:
            await pipeline.start()
        except DeviceAcquisitionError:
            if web_runner is None:
                raise
            # Keep serving status; POST /api/restart retries acquisition
            log.error("Camera unavailable; waiting for restart request")
        await pipeline.run()
    finally:
        await pipeline.stop()
        if web_runner is not None:
            await web_runner.cleanup()


def cmd_run(args):
    setup_logger(args.log_level)
    config = load_config()
    overrides = {}
    if args.threshold is not None:
        overrides["detection_frame_threshold"] = args.threshold
    if args.cooldown is not None:
        overrides["cooldown_seconds"] = args.cooldown
    if args.crop_mode is not None:
        overrides["crop_mode"] = args.crop_mode
    if args.trim_margin is not None:
        overrides["vertical_trim_margin"] = args.trim_margin
    if overrides:
        config = dataclasses.replace(config, **overrides)
        errors = validate_config(config)
        if errors:
            raise SystemExit("invalid options:\n" + "\n".join(f"  - {e}" for e in errors))

    source = FrameSource(
        output_width=config.output_width,
        output_height=config.output_height,
        crop_mode=config.crop_mode,
        preference=args.device if args.device is not None else SETTINGS.device,
        capture_width=config.capture_width,
        capture_height=config.capture_height,
        max_fps=config.max_fps,
    )
    recognizer = RecognitionClient(args.recognition_url, timeout=SETTINGS.recognition_timeout)
    pipeline = PlateScanPipeline(config, source=source, recognizer=recognizer)

    web_enabled = SETTINGS.web_enabled and not args.no_web
    try:
        asyncio.run(run_scanner(pipeline, web_enabled, SETTINGS.web_host, args.port))
    except KeyboardInterrupt:
        print("[run] stopped.")
    except DeviceAcquisitionError as e:
        raise SystemExit(f"Camera error: {e}")


# ---------- devices ----------

def cmd_devices(args):
    setup_logger(args.log_level)
    devices = list_video_devices()
    if not devices:
        print("No video devices found.")
    for dev in devices:
        print(f"{dev.device_index:>3}  {dev.device_path:<16} {dev.name}")
    request = build_device_request(devices, preference=args.device or SETTINGS.device)
    print(f"Would open: {request.describe()}")


# ---------- snapshot ----------

def cmd_snapshot(args):
    setup_logger(args.log_level)
    config = load_config()
    image = cv2.imread(str(args.image))
    if image is None:
        raise SystemExit(f"could not read image: {args.image}")

    try:
        rects, selected = analyze_image(
            image, RegionDetector(), config.selector_config(), config.search_window
        )
    except FrameProcessingError as e:
        raise SystemExit(f"detection failed: {e}")

    print(json.dumps({
        "image": str(args.image),
        "width": image.shape[1],
        "height": image.shape[0],
        "candidates": len(rects),
        "selected": selected.to_dict() if selected else None,
    }, indent=2))


# ---------- arg parsing ----------

def build_parser():
    ap = argparse.ArgumentParser(
        prog="platescan", description="Live license plate locator with rate-limited recognition"
    )
    ap.add_argument("--log-level", help="DEBUG, INFO, WARNING... (default: PLATESCAN_LOGLEVEL or INFO)")
    sub = ap.add_subparsers(dest="cmd", required=True)

    r = sub.add_parser("run", help="Scan the camera feed and send stable plates for recognition")
    r.add_argument("--device", help="device index, /dev path or name fragment")
    r.add_argument("--recognition-url", default=SETTINGS.recognition_url)
    r.add_argument("--threshold", type=int, help="consecutive frames required before a capture")
    r.add_argument("--cooldown", type=float, help="minimum seconds between captures")
    r.add_argument("--crop-mode", choices=CROP_MODES)
    r.add_argument("--trim-margin", type=int, help="pixels trimmed from top and bottom of each crop")
    r.add_argument("--port", type=int, default=SETTINGS.web_port)
    r.add_argument("--no-web", action="store_true", help="do not start the status server")
    r.set_defaults(func=cmd_run)

    d = sub.add_parser("devices", help="List capture devices and the one that would be used")
    d.add_argument("--device", help="device preference to test")
    d.set_defaults(func=cmd_devices)

    s = sub.add_parser("snapshot", help="Run one detection pass on an image file")
    s.add_argument("image", type=Path)
    s.set_defaults(func=cmd_snapshot)

    return ap


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
