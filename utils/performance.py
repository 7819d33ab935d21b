"""
Performance Configuration
Runtime-adaptive settings chosen from the device's capabilities.

Profiles live in a YAML file so they can be tuned without code changes; the
built-in defaults are used when the file is missing or malformed.
"""

import logging
import os
from dataclasses import dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

import config
from utils.reference_store import KeyValueStore

logger = logging.getLogger(__name__)


class PerformanceLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class PerformanceConfig:
    """Camera, model and display settings for one performance level."""
    video_width: int = 640
    video_height: int = 480
    frame_rate: int = 30
    pose_model: str = "yolov8n-pose.pt"
    enable_smoothing: bool = True
    min_pose_score: float = 0.25
    skip_frames: int = 1       # Frames skipped between two pose estimations
    canvas_scale: float = 1.0  # Display window scale


DEFAULT_PROFILES: Dict[PerformanceLevel, PerformanceConfig] = {
    PerformanceLevel.LOW: PerformanceConfig(
        video_width=480,
        video_height=360,
        frame_rate=24,
        pose_model="yolov8n-pose.pt",
        enable_smoothing=False,
        min_pose_score=0.3,
        skip_frames=2,
        canvas_scale=0.75,
    ),
    PerformanceLevel.MEDIUM: PerformanceConfig(),
    PerformanceLevel.HIGH: PerformanceConfig(
        video_width=800,
        video_height=600,
        frame_rate=30,
        pose_model="yolov8s-pose.pt",
        enable_smoothing=True,
        min_pose_score=0.2,
        skip_frames=0,
        canvas_scale=1.0,
    ),
}


_TRUE_STRINGS = {"true", "yes", "on", "1"}
_FALSE_STRINGS = {"false", "no", "off", "0"}


def _as_bool(value: Any) -> bool:
    """Strict bool cast: quoted "false" is False, anything unknown is rejected."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    raise ValueError(f"not a boolean: {value!r}")


def _parse_profile(raw: Any, default: PerformanceConfig) -> PerformanceConfig:
    if not isinstance(raw, dict):
        return default
    values = {}
    for f in fields(PerformanceConfig):
        if f.name not in raw:
            values[f.name] = getattr(default, f.name)
            continue
        default_value = getattr(default, f.name)
        caster = _as_bool if isinstance(default_value, bool) else type(default_value)
        try:
            values[f.name] = caster(raw[f.name])
        except (TypeError, ValueError):
            logger.warning("Invalid value for %s: %r, using default", f.name, raw[f.name])
            values[f.name] = getattr(default, f.name)
    return PerformanceConfig(**values)


def load_performance_profiles(
    path: Optional[str] = None
) -> Dict[PerformanceLevel, PerformanceConfig]:
    """
    Load profiles from YAML.

    Expected layout:
        profiles:
          low: {video_width: 480, ...}
          medium: {...}
          high: {...}
    """
    profiles_path = Path(path or config.PERFORMANCE_PROFILES_PATH)
    try:
        with open(profiles_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.info("Profiles file not found at %s. Using defaults.", profiles_path)
        return dict(DEFAULT_PROFILES)
    except yaml.YAMLError as e:
        logger.warning("Invalid YAML in %s: %s. Using defaults.", profiles_path, e)
        return dict(DEFAULT_PROFILES)

    raw_profiles = data.get('profiles', {}) if isinstance(data, dict) else {}
    return {
        level: _parse_profile(raw_profiles.get(level.value), default)
        for level, default in DEFAULT_PROFILES.items()
    }


def get_performance_config(
    level: PerformanceLevel,
    profiles: Optional[Dict[PerformanceLevel, PerformanceConfig]] = None
) -> PerformanceConfig:
    profiles = profiles or DEFAULT_PROFILES
    return profiles.get(level, profiles[PerformanceLevel.MEDIUM])


def _total_memory_gb() -> Optional[float]:
    try:
        pages = os.sysconf('SC_PHYS_PAGES')
        page_size = os.sysconf('SC_PAGE_SIZE')
    except (AttributeError, ValueError, OSError):
        return None
    return pages * page_size / (1024 ** 3)


def _has_cuda() -> bool:
    try:
        import torch
    except ImportError:
        return False
    return bool(torch.cuda.is_available())


def detect_device_performance(
    cpu_count: Optional[int] = None,
    memory_gb: Optional[float] = None,
    has_cuda: Optional[bool] = None,
    is_mobile: bool = False
) -> PerformanceLevel:
    """
    Score the device and pick a performance level.

    CPU cores and memory each give 1-3 points, a CUDA GPU gives 1, a mobile
    device loses 2. 5+ is high, 3-4 medium, below that low.
    """
    cores = cpu_count if cpu_count is not None else (os.cpu_count() or 4)
    memory = memory_gb if memory_gb is not None else (_total_memory_gb() or 4.0)
    cuda = has_cuda if has_cuda is not None else _has_cuda()

    score = 0

    if cores >= 8:
        score += 3
    elif cores >= 4:
        score += 2
    else:
        score += 1

    if memory >= 8:
        score += 3
    elif memory >= 4:
        score += 2
    else:
        score += 1

    if cuda:
        score += 1

    if is_mobile:
        score -= 2

    if score >= 5:
        return PerformanceLevel.HIGH
    if score >= 3:
        return PerformanceLevel.MEDIUM
    return PerformanceLevel.LOW


def save_performance_preference(store: KeyValueStore, level: PerformanceLevel) -> None:
    store.set(config.PERFORMANCE_LEVEL_KEY, level.value)


def load_performance_preference(store: KeyValueStore) -> Optional[PerformanceLevel]:
    saved = store.get(config.PERFORMANCE_LEVEL_KEY)
    try:
        return PerformanceLevel(saved) if saved is not None else None
    except ValueError:
        return None
