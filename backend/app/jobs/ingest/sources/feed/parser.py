"""
Feed payload -> TrainRecord.

Expected shape (fields beyond these are ignored):

  {"trains": [
      {"id": "...", "trip_id": "9007-20240615", "train_number": "9007",
       "date": "2024-06-15",
       "scheduled_departure": "2024-06-15T09:00:00Z",
       "scheduled_arrival": "2024-06-15T12:00:00Z",
       "actual_arrival": "2024-06-15T13:15:00Z",
       "delay_minutes": 75}
  ]}

train_number/date may be omitted when trip_id carries them. Rows that cannot
be turned into a record are skipped and counted, never fatal for the snapshot.
"""

import logging
from dataclasses import dataclass
from datetime import date as Date
from typing import Optional

from app.core.errors import PollError
from app.delay_monitor.trip_id import parse_trip_id
from app.delay_monitor.types import TrainRecord
from app.jobs.ingest.utils.time import parse_iso_ts

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParsedFeed:
    records: list[TrainRecord]
    rows_total: int
    invalid_skipped: int


def row_to_record(row: dict) -> Optional[TrainRecord]:
    trip_id = str(row.get("trip_id") or "").strip() or None
    parsed_trip = parse_trip_id(trip_id)

    train_number = str(row.get("train_number") or "").strip()
    if not train_number and parsed_trip:
        train_number = parsed_trip[0]
    if not train_number:
        logger.debug("Feed row skipped: no train_number or parsable trip_id (%r)", trip_id)
        return None

    raw_date = str(row.get("date") or "").strip()
    service_date = Date.fromisoformat(raw_date) if raw_date else (parsed_trip[1] if parsed_trip else None)

    sched_dep = parse_iso_ts(row.get("scheduled_departure"))
    sched_arr = parse_iso_ts(row.get("scheduled_arrival"))
    if sched_dep is None or sched_arr is None:
        logger.debug("Feed row %s skipped: missing scheduled times", trip_id or train_number)
        return None

    delay = row.get("delay_minutes")
    return TrainRecord(
        train_number=train_number,
        scheduled_departure=sched_dep,
        scheduled_arrival=sched_arr,
        actual_arrival=parse_iso_ts(row.get("actual_arrival")),
        delay_minutes=None if delay is None else int(delay),
        service_date=service_date,
        feed_trip_id=trip_id,
        id=str(row["id"]) if row.get("id") is not None else None,
    )


def parse_feed(payload) -> ParsedFeed:
    if isinstance(payload, list):
        rows = payload
    elif isinstance(payload, dict):
        rows = payload.get("trains", []) or []
    else:
        raise PollError(f"Feed payload must be a JSON object or list, got {type(payload).__name__}", retryable=False)

    records: list[TrainRecord] = []
    invalid = 0

    for row in rows:
        if not isinstance(row, dict):
            invalid += 1
            continue
        try:
            record = row_to_record(row)
        except (TypeError, ValueError, AttributeError) as e:
            logger.debug("Feed row skipped: %s row=%r", e, row)
            record = None
        if record is None:
            invalid += 1
            continue
        records.append(record)

    if invalid:
        logger.info("Feed parsed rows=%d records=%d invalid_skipped=%d", len(rows), len(records), invalid)
    return ParsedFeed(records=records, rows_total=len(rows), invalid_skipped=invalid)
