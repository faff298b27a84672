"""
Drone feed detector: live object detection overlays for drone video feeds.

Plays every configured feed, runs the on-demand ONNX detector over the
frames of feeds whose detector is active, and serves the annotated video
and the activation controls over HTTP.

Usage:
    python src/main.py --config config/config.yaml --display

Arguments:
    --config: Path to configuration file
    --display: Show each feed in a local OpenCV window
    --no-web: Do not start the HTTP API
    --feed: Run only the feed with this id
    --detect: Activate detection on every feed at startup
"""

import os
import sys
import argparse
import asyncio
import logging
import yaml
from typing import Dict, Any, List, Tuple, Optional

import uvicorn

from detection.preprocess import CHANNEL_ORDERS
from models.config import Config
from ops.logging import setup_logging
from runtime.builder import SESSION_POLICIES, build_runtime
from runtime.context import RuntimeContext
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


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)

    Lists (such as `feeds`) are replaced wholesale by the overriding layer.
    """
    try:
        base_path = os.path.join(os.path.dirname(config_path), "default.yaml")
        base_cfg: Dict[str, Any] = {}
        if os.path.exists(base_path):
            with open(base_path, "r") as f:
                base_cfg = yaml.safe_load(f) or {}

        local_overrides_path = os.path.join(os.path.dirname(config_path), "config.yaml")
        local_cfg: Dict[str, Any] = {}
        if os.path.exists(local_overrides_path):
            with open(local_overrides_path, "r") as f:
                local_cfg = yaml.safe_load(f) or {}

        merged = _deep_merge(base_cfg, local_cfg)

        if os.path.exists(config_path) and os.path.abspath(config_path) != os.path.abspath(local_overrides_path):
            with open(config_path, "r") as f:
                explicit_cfg = yaml.safe_load(f) or {}
            merged = _deep_merge(merged, explicit_cfg)

        return merged
    except (OSError, yaml.YAMLError) as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _validate_detector(detector: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    model_path = detector.get('model_path')
    if not isinstance(model_path, str) or not model_path:
        return False, "detector.model_path must be a non-empty string"

    input_size = detector.get('input_size', 640)
    if not isinstance(input_size, int) or isinstance(input_size, bool) or input_size <= 0:
        return False, "detector.input_size must be a positive integer"

    for key in ('conf_threshold', 'iou_threshold'):
        if key in detector:
            value = detector[key]
            if not _is_number(value) or not (0.0 <= value <= 1.0):
                return False, f"detector.{key} must be a number between 0 and 1"

    if 'min_interval_ms' in detector:
        value = detector['min_interval_ms']
        if not _is_number(value) or value < 0:
            return False, "detector.min_interval_ms must be a non-negative number"

    if 'refresh_hz' in detector:
        value = detector['refresh_hz']
        if not _is_number(value) or value <= 0:
            return False, "detector.refresh_hz must be a positive number"

    if 'max_consecutive_failures' in detector:
        value = detector['max_consecutive_failures']
        if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
            return False, "detector.max_consecutive_failures must be a positive integer"

    if detector.get('channel_order', 'rgb') not in CHANNEL_ORDERS:
        return False, f"detector.channel_order must be one of: {', '.join(CHANNEL_ORDERS)}"

    if detector.get('session_policy', 'per_feed') not in SESSION_POLICIES:
        return False, f"detector.session_policy must be one of: {', '.join(SESSION_POLICIES)}"

    providers = detector.get('providers')
    if providers is not None:
        if not isinstance(providers, list) or not all(isinstance(p, str) for p in providers):
            return False, "detector.providers must be a list of provider names"

    labels = detector.get('labels')
    if labels is not None and not isinstance(labels, str):
        return False, "detector.labels must be a path to a YAML class table"

    return True, None


def _validate_feed(feed: Any, index: int) -> Tuple[bool, Optional[str]]:
    where = f"feeds[{index}]"
    if not isinstance(feed, dict):
        return False, f"{where} must be a mapping"

    feed_id = feed.get('id')
    if not isinstance(feed_id, str) or not feed_id:
        return False, f"{where}.id must be a non-empty string"

    source = feed.get('source')
    if source in (None, "") and not feed.get('playback_id'):
        return False, f"{where} needs either source or playback_id"
    if source not in (None, "") and not isinstance(source, (int, str)):
        return False, f"{where}.source must be an integer (index) or string (URL/path)"

    display_size = feed.get('display_size')
    if display_size is not None:
        if not isinstance(display_size, list) or len(display_size) != 2:
            return False, f"{where}.display_size must be a list of [width, height]"
        if not all(isinstance(x, int) and x > 0 for x in display_size):
            return False, f"{where}.display_size values must be positive integers"

    fps = feed.get('fps')
    if fps is not None and (not _is_number(fps) or fps <= 0):
        return False, f"{where}.fps must be a positive number"

    if feed.get('rotate', 0) not in (0, 90, 180, 270):
        return False, f"{where}.rotate must be one of: 0, 90, 180, 270"

    return True, None


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['detector', 'feeds', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    detector = config.get('detector')
    if not isinstance(detector, dict):
        return False, "detector must be a mapping"
    ok, err = _validate_detector(detector)
    if not ok:
        return ok, err

    feeds = config.get('feeds')
    if not isinstance(feeds, list) or not feeds:
        return False, "feeds must be a non-empty list"
    seen = set()
    for i, feed in enumerate(feeds):
        ok, err = _validate_feed(feed, i)
        if not ok:
            return ok, err
        if feed['id'] in seen:
            return False, f"Duplicate feed id: {feed['id']}"
        seen.add(feed['id'])

    web = config.get('web', {}) or {}
    if 'port' in web:
        port = web['port']
        if not isinstance(port, int) or not (0 < port < 65536):
            return False, "web.port must be an integer between 1 and 65535"
    if 'stream_fps' in web:
        if not isinstance(web['stream_fps'], int) or web['stream_fps'] <= 0:
            return False, "web.stream_fps must be a positive integer"
    if 'jpeg_quality' in web:
        q = web['jpeg_quality']
        if not isinstance(q, int) or not (1 <= q <= 100):
            return False, "web.jpeg_quality must be an integer between 1 and 100"

    if config['log_level'] not in VALID_LOG_LEVELS:
        return False, f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}"

    return True, None


def select_feeds(config: Config, feed_id: Optional[str]) -> Config:
    """Restrict the config to a single feed when `--feed` is given."""
    if feed_id is None:
        return config
    feed = config.get_feed(feed_id)
    if feed is None:
        raise ValueError(f"Unknown feed: {feed_id} (configured: {[f.id for f in config.feeds]})")
    config.feeds = [feed]
    return config


def feeds_to_activate(ctx: RuntimeContext, detect_all: bool) -> List[str]:
    return [
        feed_id for feed_id, feed in ctx.feeds.items()
        if detect_all or feed.config.detect_on_start
    ]


async def run_service(ctx: RuntimeContext, detect_all: bool = False, web_enabled: bool = True) -> None:
    """
    Run every feed engine and the HTTP API on the current event loop.

    With the API enabled the service runs until the server exits (Ctrl-C);
    without it, until every feed has finished.
    """
    engine_tasks = [
        asyncio.create_task(feed.engine.run(), name=f"feed-{feed_id}")
        for feed_id, feed in ctx.feeds.items()
    ]
    activation_tasks = [
        asyncio.create_task(ctx.get_feed(feed_id).scheduler.activate(), name=f"activate-{feed_id}")
        for feed_id in feeds_to_activate(ctx, detect_all)
    ]

    server_task = None
    if web_enabled:
        web_cfg = ctx.config.web
        server = uvicorn.Server(
            uvicorn.Config(
                create_app(ctx),
                host=web_cfg.host,
                port=web_cfg.port,
                log_level="info",
            )
        )
        server_task = asyncio.create_task(server.serve(), name="web")
        logging.info(f"Web interface starting on {web_cfg.host}:{web_cfg.port}")

    try:
        if server_task is not None:
            await server_task
        else:
            await asyncio.gather(*engine_tasks)
    finally:
        ctx.shutdown()
        pending = [t for t in engine_tasks + activation_tasks if not t.done()]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        logging.info("All feeds stopped")


def main():
    """Main application function."""
    parser = argparse.ArgumentParser(description='Drone Feed Detector')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--display', action='store_true',
                        help='Show each feed in a local window')
    parser.add_argument('--no-web', action='store_true',
                        help='Do not start the HTTP API')
    parser.add_argument('--feed', type=str, default=None,
                        help='Run only the feed with this id')
    parser.add_argument('--detect', action='store_true',
                        help='Activate detection on every feed at startup')
    args = parser.parse_args()

    raw_config = load_config(args.config)

    is_valid, error_msg = validate_config(raw_config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        sys.exit(1)

    setup_logging(raw_config['log_path'], raw_config['log_level'])
    logging.info("Starting Drone Feed Detector")

    try:
        config = select_feeds(Config.from_dict(raw_config), args.feed)
        ctx = build_runtime(config, display=args.display)
    except (ValueError, FileNotFoundError) as e:
        logging.error(f"Startup failed: {e}")
        sys.exit(1)

    web_enabled = config.web.enabled and not args.no_web
    try:
        asyncio.run(run_service(ctx, detect_all=args.detect, web_enabled=web_enabled))
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
    finally:
        ctx.shutdown()
        logging.info("Drone Feed Detector stopped")


if __name__ == "__main__":
    main()
