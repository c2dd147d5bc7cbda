"""
Configuration Module

Loads the YAML configuration, merges it over built-in defaults, and sets
up logging for the command line application.
"""

import copy
import logging
import sys
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = 'config/config.yaml'


def get_default_config() -> Dict[str, Any]:
    """Get default configuration."""
    return {
        'face_detection': {
            'model': 'hog',
            'upsample': 1,
            'mirror': False,
            'crop_padding': 0.0
        },
        'embedding': {
            'model': 'facenet',
            'deepface_model': 'Facenet512',
            'input_size': 160
        },
        'matching': {
            'threshold': 0.75
        },
        'pose': {
            'frontal_max_deg': 12.0,
            'directional_min_deg': 15.0
        },
        'enrollment': {
            'cycle_delay_ms': 150,
            'max_cycles': None,
            'max_seconds': None,
            'detection_timeout_s': None,
            'commit_attempts': 3
        },
        'vector_store': {
            'backend': 'local',
            'collection': 'enrolled_identities'
        },
        'storage': {
            'database_file': 'data/identities.json',
            'embeddings_path': 'data/embeddings'
        },
        'video': {
            'camera_id': 0,
            'frame_width': 640,
            'frame_height': 480,
            'display': True,
            'max_failed_reads': 30
        },
        'performance': {
            'use_gpu': False
        },
        'logging': {
            'level': 'INFO',
            'file': 'face_enroll.log'
        }
    }


def merge_config(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``."""
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[str] = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """
    Load configuration from a YAML file.

    Args:
        config_path: Path to configuration file

    Returns:
        Configuration merged over the defaults; the defaults alone if the
        file cannot be read
    """
    defaults = get_default_config()
    if not config_path:
        return defaults

    try:
        with open(config_path, 'r') as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Expected a mapping at the top of {config_path}")
        logger.info(f"Configuration loaded from {config_path}")
        return merge_config(defaults, loaded)
    except (OSError, yaml.YAMLError, ValueError) as e:
        logger.error(f"Failed to load config: {e}")
        return defaults


def setup_logging(config: Dict[str, Any]):
    """Configure root logging from the ``logging`` section."""
    logging_config = config.get('logging', {}) or {}
    level = getattr(logging, str(logging_config.get('level', 'INFO')).upper(), logging.INFO)

    handlers = [logging.StreamHandler(sys.stdout)]
    if logging_config.get('file'):
        handlers.insert(0, logging.FileHandler(logging_config['file']))

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True
    )
