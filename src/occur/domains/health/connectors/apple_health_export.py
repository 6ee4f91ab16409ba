"""HealthKit client backed by an Apple Health XML export.

Users export via iOS Health app → Share → Export Health Data → produces
export.xml. This store serves the HealthKit sample queries from that file,
so the iOS adapter can run off-device.

HealthKit type mappings:
- HKQuantityTypeIdentifierStepCount → step samples
- HKQuantityTypeIdentifierHeartRate → heart rate samples
- HKQuantityTypeIdentifierOxygenSaturation → oxygen saturation samples (fraction)
- HKCategoryTypeIdentifierSleepAnalysis → sleep samples
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from collections import defaultdict
from pathlib import Path
from typing import Any

from occur.domains.health.domain_logic.normalizer import parse_timestamp

logger = logging.getLogger(__name__)

_STEPS = "HKQuantityTypeIdentifierStepCount"
_HR = "HKQuantityTypeIdentifierHeartRate"
_SPO2 = "HKQuantityTypeIdentifierOxygenSaturation"
_SLEEP = "HKCategoryTypeIdentifierSleepAnalysis"

_QUANTITY_TYPES = {_STEPS, _HR, _SPO2}


class AppleHealthParseError(Exception):
    """Raised when the Apple Health export is missing or not valid XML."""


def parse_apple_health_export(export_path: str | Path) -> dict[str, list[dict[str, Any]]]:
    """Parse an export.xml into HealthKit-style samples grouped by type.

    Uses iterparse for memory-efficient processing of large exports.
    Quantity samples: ``{"value": float, "startDate", "endDate", "unit",
    "sourceName"}``. Sleep samples carry the category string as ``value``.
    Dates are ISO 8601.

    Raises:
        AppleHealthParseError: If the file cannot be parsed.
    """
    path = Path(export_path)
    if not path.exists():
        raise AppleHealthParseError(f"Export file not found: {path}")

    samples: dict[str, list[dict[str, Any]]] = defaultdict(list)

    try:
        for _event, elem in ET.iterparse(str(path), events=("end",)):
            if elem.tag != "Record":
                continue

            rec_type = elem.get("type", "")
            if rec_type in _QUANTITY_TYPES or rec_type == _SLEEP:
                sample = _sample_from_element(elem, quantity=rec_type != _SLEEP)
                if sample is not None:
                    samples[rec_type].append(sample)
            elem.clear()
    except ET.ParseError as exc:
        raise AppleHealthParseError(f"Invalid XML: {exc}") from exc

    logger.info(
        "Parsed Apple Health export: %d steps, %d heart rate, %d SpO2, %d sleep samples",
        len(samples[_STEPS]), len(samples[_HR]), len(samples[_SPO2]), len(samples[_SLEEP]),
    )
    return dict(samples)


def _sample_from_element(elem: ET.Element, *, quantity: bool) -> dict[str, Any] | None:
    start = parse_timestamp(elem.get("startDate", ""))
    end = parse_timestamp(elem.get("endDate", "")) or start
    if start is None:
        return None

    value: Any = elem.get("value", "")
    if quantity:
        try:
            value = float(value)
        except (TypeError, ValueError):
            return None

    return {
        "value": value,
        "startDate": start.isoformat(),
        "endDate": end.isoformat(),
        "unit": elem.get("unit", ""),
        "sourceName": elem.get("sourceName", ""),
    }


class AppleHealthExportStore:
    """HealthKitClient serving samples from an export.xml.

    Usage::

        store = AppleHealthExportStore("/path/to/export.xml")
        adapter = HealthKitAdapter(store)
    """

    def __init__(self, export_path: str) -> None:
        self._export_path = export_path
        self._samples: dict[str, list[dict[str, Any]]] | None = None

    async def init_health_kit(self, permissions: dict[str, Any]) -> None:
        self._load()

    async def get_step_samples(self, options: dict[str, Any]) -> list[dict[str, Any]]:
        return self._between(_STEPS, options)

    async def get_heart_rate_samples(self, options: dict[str, Any]) -> list[dict[str, Any]]:
        return self._between(_HR, options)

    async def get_oxygen_saturation_samples(
        self, options: dict[str, Any]
    ) -> list[dict[str, Any]]:
        return self._between(_SPO2, options)

    async def get_sleep_samples(self, options: dict[str, Any]) -> list[dict[str, Any]]:
        return self._between(_SLEEP, options)

    def _load(self) -> dict[str, list[dict[str, Any]]]:
        if self._samples is None:
            if not self._export_path:
                raise AppleHealthParseError("No Apple Health export path configured")
            self._samples = parse_apple_health_export(self._export_path)
        return self._samples

    def _between(self, rec_type: str, options: dict[str, Any]) -> list[dict[str, Any]]:
        start = parse_timestamp(options.get("startDate"))
        end = parse_timestamp(options.get("endDate"))
        if start is None or end is None:
            raise ValueError("startDate and endDate are required")

        result = []
        for sample in self._load().get(rec_type, []):
            moment = parse_timestamp(sample["startDate"])
            if moment is not None and start <= moment <= end:
                result.append(dict(sample))
        return result
