"""
Scoring settings.
Provides the immutable settings object consumed by the signals and the YAML loader that builds it.
"""
import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Sequence, Tuple
import yaml
from errors import ConfigError

# filename used for the optional YAML configuration
SETTINGS_FILENAME = 'priority.yaml'
DEFAULT_SETTINGS_PATH = os.path.join(os.path.dirname(os.path.dirname(__file__)), 'config', SETTINGS_FILENAME)

URGENT_KEYWORDS: Tuple[str, ...] = ("URGENT", "EMERGENCY", "緊急", "重要", "急ぎ")
DEFAULT_PRIORITY_EXTENSIONS: Tuple[str, ...] = (".go", ".tf", ".py")
DEFAULT_LOOKBACK_DAYS = 365
DEFAULT_WORKERS = 4


@dataclass(frozen=True)
class ScoringSettings:
    username: str
    priority_extensions: Tuple[str, ...] = DEFAULT_PRIORITY_EXTENSIONS
    urgent_keywords: Tuple[str, ...] = field(default=URGENT_KEYWORDS)
    lookback_days: int = DEFAULT_LOOKBACK_DAYS
    workers: int = DEFAULT_WORKERS

    def with_overrides(self, **overrides: Any) -> 'ScoringSettings':
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        for k in ('priority_extensions', 'urgent_keywords'):
            if k in changes:
                changes[k] = tuple(changes[k])
        return replace(self, **changes)


def _string_tuple(doc: Dict[str, Any], key: str, default: Tuple[str, ...], path: str) -> Tuple[str, ...]:
    value = doc.get(key)
    if value is None:
        return default
    if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"'{key}' in {path} must be a list of strings")
    return tuple(value)


def _positive_int(doc: Dict[str, Any], key: str, default: int, path: str) -> int:
    value = doc.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigError(f"'{key}' in {path} must be a positive integer")
    return value


def load_settings(username: str, path: Optional[str] = None) -> ScoringSettings:
    """
    Load scoring settings from a YAML file if it exists, otherwise return defaults.
    A file that exists but cannot be parsed raises ConfigError rather than silently falling back.
    """
    if not path:
        path = DEFAULT_SETTINGS_PATH
    if not os.path.exists(path):
        return ScoringSettings(username=username)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            doc = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as ex:
        raise ConfigError(f"Failed to load settings from {path}: {ex}") from ex
    if not isinstance(doc, dict):
        raise ConfigError(f"Settings file {path} must contain a mapping")
    return ScoringSettings(
        username=username,
        priority_extensions=_string_tuple(doc, 'priority_extensions', DEFAULT_PRIORITY_EXTENSIONS, path),
        urgent_keywords=_string_tuple(doc, 'urgent_keywords', URGENT_KEYWORDS, path),
        lookback_days=_positive_int(doc, 'lookback_days', DEFAULT_LOOKBACK_DAYS, path),
        workers=_positive_int(doc, 'workers', DEFAULT_WORKERS, path),
    )


def parse_extensions(values: Sequence[str]) -> Tuple[str, ...]:
    """Accept '--ext .go --ext .tf' as well as '--ext .go,.tf'."""
    exts = []
    for v in values:
        exts.extend(p.strip() for p in v.split(',') if p.strip())
    return tuple(exts)
