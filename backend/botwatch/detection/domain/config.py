"""Utilities for loading detection configuration."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

from botwatch.detection.domain.addresses import DEFAULT_SUSPICIOUS_ADDRESSES
from botwatch.detection.domain.analyzer import HeuristicConfig
from botwatch.detection.domain.reputation import FlagThresholds


@dataclass(slots=True)
class DetectionConfig:
    heuristics: HeuristicConfig = field(default_factory=HeuristicConfig)
    flag_thresholds: FlagThresholds = field(default_factory=FlagThresholds)
    suspicious_addresses: tuple[str, ...] = DEFAULT_SUSPICIOUS_ADDRESSES


def _coerce(spec: object, target: type, base: Any) -> Any:
    """Overlay known keys from ``spec`` onto the defaults of a frozen dataclass."""

    if not isinstance(spec, dict):
        return base
    overrides: dict[str, Any] = {}
    for item in fields(target):
        if item.name not in spec:
            continue
        current = getattr(base, item.name)
        raw = spec[item.name]
        if isinstance(current, tuple):
            if not isinstance(raw, list):
                raise ValueError(f"{item.name} must be a list")
            overrides[item.name] = tuple(str(value) for value in raw)
        elif isinstance(current, bool):
            overrides[item.name] = bool(raw)
        elif isinstance(current, int):
            overrides[item.name] = int(raw)
        else:
            overrides[item.name] = float(raw)
    return replace(base, **overrides)


def parse_detection_config(data: Mapping[str, object]) -> DetectionConfig:
    heuristics = _coerce(data.get("heuristics"), HeuristicConfig, HeuristicConfig())
    flags = _coerce(data.get("flag_thresholds"), FlagThresholds, FlagThresholds())
    addresses_spec = data.get("suspicious_addresses", list(DEFAULT_SUSPICIOUS_ADDRESSES))
    if not isinstance(addresses_spec, list):
        raise ValueError("suspicious_addresses must be a list")
    return DetectionConfig(
        heuristics=heuristics,
        flag_thresholds=flags,
        suspicious_addresses=tuple(str(item) for item in addresses_spec),
    )


def load_detection_config(path: str | Path) -> DetectionConfig:
    with open(path, "r", encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle) or {}
    if not isinstance(loaded, dict):
        raise ValueError("detection config must be a mapping")
    return parse_detection_config(loaded)
