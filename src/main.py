"""
Main application: object detection with privacy redaction and cloud delivery.

Frames are captured from the configured camera, scanned for target objects
(containers, mobile toilets, scaffolding), people and license plates are
redacted, target objects are outlined, and the image is uploaded together
with a JSON metadata document. Uploads that fail are kept on disk and retried
by the backlog drainer.

Usage:
    python src/main.py --config config/config.yaml

Arguments:
    --config: Path to configuration file
    --drain-only: Upload the local backlog once and exit
    --no-web: Do not start the status API
"""

import os
import sys
import argparse
import logging
import threading
from typing import Dict, Any, Tuple, Optional

import yaml
import uvicorn

from cloud.uploader import create_uploader
from cloud.utils import check_cloud_config
from delivery.backlog import BacklogDrainer
from delivery.fallback import FallbackStore
from models.config import Config, REDACTION_MODES
from models.errors import ConfigError, ModelLoadError
from models.status import PipelineCounters
from ops.logging import setup_logging
from pipeline.engine import PipelineEngine, create_engine_from_config
from web.app import create_app

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def _read_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)
    """
    try:
        config_dir = os.path.dirname(config_path)
        base_path = os.path.join(config_dir, "default.yaml")
        base_cfg = _read_yaml(base_path) if os.path.exists(base_path) else {}

        local_overrides_path = os.path.join(config_dir, "config.yaml")
        local_cfg = _read_yaml(local_overrides_path) if os.path.exists(local_overrides_path) else {}

        merged = _deep_merge(base_cfg, local_cfg)

        # Explicit path last, unless it is the local override file itself
        if os.path.exists(config_path) and os.path.abspath(config_path) != os.path.abspath(local_overrides_path):
            merged = _deep_merge(merged, _read_yaml(config_path))

        return merged
    except Exception as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def _is_unit_interval(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and 0 <= value <= 1


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['camera', 'detection', 'delivery', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    # Camera
    camera = config.get('camera') or {}
    if 'device_id' not in camera:
        return False, "Missing camera.device_id"
    if not isinstance(camera['device_id'], (int, str)):
        return False, "camera.device_id must be an integer (index) or string (URL/path)"
    if isinstance(camera['device_id'], int) and camera['device_id'] < 0:
        return False, "camera.device_id integer must be non-negative"
    if 'resolution' in camera:
        res = camera['resolution']
        if not isinstance(res, list) or len(res) != 2 or not all(isinstance(x, int) and x > 0 for x in res):
            return False, "camera.resolution must be a list of two positive integers [width, height]"
    if 'fps' in camera:
        fps = camera['fps']
        if not isinstance(fps, (int, float)) or fps <= 0:
            return False, "camera.fps must be a positive number"
    if camera.get('backend', 'opencv') != 'opencv':
        return False, "camera.backend must be: opencv"
    if camera.get('rotate', 0) not in (0, 90, 180, 270, None):
        return False, "camera.rotate must be one of: 0, 90, 180, 270"

    # Detection
    detection = config.get('detection') or {}
    model = detection.get('model')
    if not isinstance(model, str) or not model:
        return False, "detection.model is required"
    targets = detection.get('target_classes') or {}
    if not isinstance(targets, dict):
        return False, "detection.target_classes must be a mapping of class name to enabled flag"
    for name, enabled in targets.items():
        if not isinstance(enabled, bool):
            return False, f"detection.target_classes.{name} must be true or false"
    thresholds = detection.get('class_thresholds') or {}
    if not isinstance(thresholds, dict):
        return False, "detection.class_thresholds must be a mapping"
    for name, values in thresholds.items():
        for key in ('iou', 'confidence'):
            if key in (values or {}) and not _is_unit_interval(values[key]):
                return False, f"detection.class_thresholds.{name}.{key} must be between 0 and 1"
    mode = detection.get('redaction_mode', 'black')
    if mode not in REDACTION_MODES:
        return False, f"detection.redaction_mode must be one of: {', '.join(REDACTION_MODES)}"
    if 'blur_radius' in detection:
        if not isinstance(detection['blur_radius'], int) or detection['blur_radius'] <= 0:
            return False, "detection.blur_radius must be a positive integer"

    # Delivery
    delivery = config.get('delivery') or {}
    if not isinstance(delivery.get('fallback_dir', 'data/Detections'), str):
        return False, "delivery.fallback_dir must be a string"
    quality = delivery.get('jpeg_quality', 50)
    if not isinstance(quality, int) or not (0 <= quality <= 100):
        return False, "delivery.jpeg_quality must be an integer between 0 and 100"
    workers = delivery.get('upload_workers', 2)
    if not isinstance(workers, int) or workers < 0:
        return False, "delivery.upload_workers must be a non-negative integer"

    # Backlog
    backlog = config.get('backlog') or {}
    interval = backlog.get('interval_seconds', 300)
    if not isinstance(interval, (int, float)) or interval <= 0:
        return False, "backlog.interval_seconds must be a positive number"

    # Cloud
    if not check_cloud_config(config.get('cloud') or {}):
        return False, "Invalid cloud configuration"

    # Location
    location = config.get('location') or {}
    lat, lon = location.get('latitude'), location.get('longitude')
    if (lat is None) != (lon is None):
        return False, "location.latitude and location.longitude must be set together"
    if lat is not None:
        if not all(isinstance(v, (int, float)) for v in (lat, lon)):
            return False, "location.latitude/longitude must be numbers"
        if not (-90 <= lat <= 90 and -180 <= lon <= 180):
            return False, "location.latitude/longitude out of range"

    # Log settings
    if config['log_level'] not in VALID_LOG_LEVELS:
        return False, f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}"

    return True, None


def start_web_server(engine: PipelineEngine, host: str, port: int) -> threading.Thread:
    """Serve the status API on a daemon thread."""
    def run_web_app():
        uvicorn.run(
            create_app(engine),
            host=host,
            port=port,
            log_level="info",
        )

    web_thread = threading.Thread(target=run_web_app, daemon=True)
    web_thread.start()
    logging.info(f"Web interface started on port {port}")
    return web_thread


def drain_once(config: Config) -> int:
    """Upload the local backlog once. Returns the number of files still pending."""
    store = FallbackStore(config.delivery.fallback_dir)
    drainer = BacklogDrainer(create_uploader(config.cloud), store, PipelineCounters())
    result = drainer.drain()
    remaining = store.count()
    logging.info(
        f"Drain finished: attempted={result.attempted}, delivered={result.delivered}, "
        f"failed={result.failed}, remaining={remaining}"
    )
    return remaining


def main():
    """Main application function."""
    parser = argparse.ArgumentParser(description='Object detection with redaction and cloud delivery')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--drain-only', action='store_true',
                        help='Upload pending local files once and exit')
    parser.add_argument('--no-web', action='store_true',
                        help='Do not start the status API')
    args = parser.parse_args()

    config_dict = load_config(args.config)

    is_valid, error_msg = validate_config(config_dict)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        sys.exit(1)

    setup_logging(config_dict['log_path'], config_dict['log_level'])
    config = Config.from_dict(config_dict)

    if args.drain_only:
        remaining = drain_once(config)
        sys.exit(1 if remaining else 0)

    logging.info("Starting detection pipeline")

    try:
        engine = create_engine_from_config(config)
    except (ModelLoadError, ConfigError) as e:
        logging.error(f"Failed to build pipeline: {e}")
        sys.exit(1)

    if not engine.setup():
        logging.error("Camera setup failed, exiting")
        engine.stop()
        sys.exit(1)

    if config.web.enabled and not args.no_web:
        start_web_server(engine, config.web.host, config.web.port)

    try:
        engine.run()
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
    finally:
        engine.stop()
        status = engine.status()
        logging.info(f"Final status: {status.to_dict()}")


if __name__ == "__main__":
    main()
