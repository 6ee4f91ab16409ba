"""Backend sync uploader — pushes recent device records to the backend.

Every device record becomes its own ``{iso_timestamp: value}`` entry, so the
backend receives full resolution rather than chart buckets. Uploads are
throttled by a last-upload marker; a lost marker update only causes one
extra, idempotent upload.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable, Iterable, Mapping
from datetime import datetime, timedelta, timezone
from typing import Any

from occur.core.storage.state_store import ThrottleStore
from occur.domains.health.connectors import HealthAdapter
from occur.domains.health.domain_logic.aggregator import aggregate_values, to_iso_utc
from occur.domains.health.domain_logic.date_ranges import SYNC_LOOKBACK
from occur.domains.health.domain_logic.metric_models import MetricKind, RawHealthRecord
from occur.domains.health.domain_logic.normalizer import (
    extract_raw_spo2,
    extract_timestamp,
    extract_value,
    round_half_up,
    sleep_duration_minutes,
)
from occur.domains.health.services.health_api import HealthDataAPI

logger = logging.getLogger(__name__)

DEFAULT_UPLOAD_INTERVAL = timedelta(hours=4)

_UPLOAD_ORDER = (
    MetricKind.STEPS,
    MetricKind.HEART_RATE,
    MetricKind.SPO2,
    MetricKind.SLEEP,
)


def _upload_value(record: Mapping[str, Any], metric: MetricKind) -> float | int | None:
    if metric is MetricKind.SPO2:
        # Sent as the store reported it (percentage), not as a chart fraction.
        return extract_raw_spo2(record)
    if metric is MetricKind.SLEEP:
        minutes = sleep_duration_minutes(record)
        return None if minutes is None else int(round_half_up(minutes))
    return extract_value(record, metric)


def transform_to_backend_format(
    records: Iterable[RawHealthRecord] | None,
    metric: MetricKind,
) -> dict[str, float | int]:
    """Map each record to ``{iso_timestamp: value}``.

    Records without a timestamp or value are skipped. Two records with the
    same timestamp are combined with the metric's aggregation.
    """
    by_timestamp: dict[str, list[float | int]] = defaultdict(list)
    for record in records or ():
        if not isinstance(record, Mapping):
            continue
        moment = extract_timestamp(record)
        value = _upload_value(record, metric)
        if moment is None or value is None:
            continue
        by_timestamp[to_iso_utc(moment)].append(value)

    return {
        key: values[0] if len(values) == 1 else aggregate_values(values, metric)
        for key, values in by_timestamp.items()
    }


class HealthSyncUploader:
    """Uploads the last seven days of device data to the backend.

    Usage::

        uploader = HealthSyncUploader(adapter, HealthDataAPI(client), throttle_store)
        if uploader.should_upload_health_device_data():
            await uploader.upload_health_device_data()
    """

    def __init__(
        self,
        adapter: HealthAdapter,
        api: HealthDataAPI,
        throttle_store: ThrottleStore,
        *,
        upload_interval: timedelta = DEFAULT_UPLOAD_INTERVAL,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._adapter = adapter
        self._api = api
        self._throttle = throttle_store
        self._interval = upload_interval
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def should_upload_health_device_data(self) -> bool:
        """True when no upload is recorded or the last one is older than the interval."""
        try:
            last_upload = self._throttle.get_last_upload()
        except Exception:
            logger.exception("Last-upload marker unavailable; assuming upload needed")
            return True
        if last_upload is None:
            return True
        return self._clock() - last_upload > self._interval

    async def upload_health_device_data(self) -> bool:
        """Fetch, transform and POST recent device data. Never raises.

        Returns:
            True if the backend accepted an upload; False if permissions are
            missing, there was nothing to send, or anything failed.
        """
        try:
            logger.info("Starting health device data upload")

            if not await self._adapter.check_all_permissions():
                logger.info("No health device permissions available")
                return False

            end = self._clock()
            start = end - SYNC_LOOKBACK
            fetched = await asyncio.gather(*(
                self._guarded_fetch(metric, start, end) for metric in _UPLOAD_ORDER
            ))

            payload = {
                metric.value: transform_to_backend_format(records, metric)
                for metric, records in zip(_UPLOAD_ORDER, fetched)
            }
            if not any(payload.values()):
                logger.info("No health device data to upload")
                return False

            await self._api.save_health_data(payload)
            logger.info(
                "Health device data uploaded: %s",
                ", ".join(f"{k}={len(v)}" for k, v in payload.items()),
            )
        except Exception:
            logger.exception("Failed to upload health device data")
            return False

        self._record_upload(end)
        return True

    async def _guarded_fetch(
        self, metric: MetricKind, start: datetime, end: datetime
    ) -> list[RawHealthRecord]:
        return await _default_on_error(
            lambda: self._adapter.fetch_metric(metric, start, end),
            metric.value,
        )

    def _record_upload(self, when: datetime) -> None:
        try:
            self._throttle.set_last_upload(when)
        except Exception:
            logger.warning("Could not persist last-upload marker", exc_info=True)


async def _default_on_error(
    fetch: Callable[[], Awaitable[list[RawHealthRecord]]], label: str
) -> list[RawHealthRecord]:
    try:
        return list(await fetch() or [])
    except Exception:
        logger.exception("Fetching %s for upload failed; sending none", label)
        return []
