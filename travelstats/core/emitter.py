"""
Streaming emission of statistics records

Both helpers are generators: a record is produced only when the consumer
asks for it, so the transport can flush each line as soon as it exists.
"""
import logging
from typing import Callable, Iterable, Iterator, Tuple

from travelstats.models.statistics import Record, ValueKind

logger = logging.getLogger(__name__)


def stream_records(
    entries: Iterable[Tuple[object, object]],
    kind: ValueKind,
    label: Callable[[object], str] = str,
) -> Iterator[Record]:
    """
    Convert (key, value) entries into record models, preserving order

    Args:
        entries: Dense series or ranking entries
        kind: Numeric kind, selects the record model
        label: Renders a key as the record's bucket string
    """
    model = kind.record_model
    for key, value in entries:
        yield model(bucket=label(key), value=value)


def ndjson_lines(records: Iterable[Record], description: str = "statistics") -> Iterator[str]:
    """
    Serialize records as newline-delimited JSON

    Stops as soon as the consumer goes away (e.g. client disconnect).
    """
    sent = 0
    try:
        for record in records:
            yield record.to_ndjson()
            sent += 1
        logger.debug(f"Streamed {sent} {description} records")
    except GeneratorExit:
        logger.info(f"Client disconnected from {description} stream after {sent} records")
        raise
