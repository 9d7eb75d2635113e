"""
Event ingestion API endpoints
"""
from flask import Blueprint, current_app, request, jsonify
from pydantic import ValidationError
import logging

from travelstats.config import settings
from travelstats.core.processor import EventProcessor
from travelstats.models.events import (
    BatchEventRequest,
    EventResponse,
    PurchaseEvent,
    TransitEvent,
)

logger = logging.getLogger(__name__)

events_bp = Blueprint("events", __name__, url_prefix=f"{settings.API_PREFIX}/events")


def _processor() -> EventProcessor:
    return current_app.extensions["event_processor"]


def _invalid(e: Exception, what: str):
    logger.warning(f"Invalid {what}: {e}")
    return (
        jsonify(EventResponse(success=False, message=f"Invalid {what}: {e}").model_dump(mode="json")),
        400,
    )


@events_bp.route("/health", methods=["GET"])
def health_check():
    """Health check endpoint"""
    redis_ok = _processor().storage.ping()
    return jsonify({"status": "healthy" if redis_ok else "unhealthy", "redis": redis_ok}), (
        200 if redis_ok else 503
    )


@events_bp.route("/transits", methods=["POST"])
def submit_transit():
    """
    Record a transit

    Request Body:
    {
      "username": "customer1",
      "timestamp": "2022-07-01T08:15:00Z",
      "zone": "A"
    }

    Response:
    {
      "success": true,
      "message": "Transit recorded"
    }
    """
    try:
        event = TransitEvent(**(request.get_json(silent=True) or {}))
    except ValidationError as e:
        return _invalid(e, "transit event")

    _processor().process_event(event)
    return jsonify(EventResponse(success=True, message="Transit recorded").model_dump(mode="json")), 201


@events_bp.route("/purchases", methods=["POST"])
def submit_purchase():
    """
    Record a ticket purchase

    Request Body:
    {
      "username": "customer1",
      "timestamp": "2022-07-01T08:00:00Z",
      "quantity": 2,
      "amount": 12.40
    }

    Response:
    {
      "success": true,
      "message": "Purchase recorded"
    }
    """
    try:
        event = PurchaseEvent(**(request.get_json(silent=True) or {}))
    except ValidationError as e:
        return _invalid(e, "purchase event")

    _processor().process_event(event)
    return jsonify(EventResponse(success=True, message="Purchase recorded").model_dump(mode="json")), 201


@events_bp.route("/batch", methods=["POST"])
def submit_batch():
    """
    Record multiple events in batch

    Request Body:
    {
      "events": [
        {"event_type": "transit", "username": "customer1", ...},
        {"event_type": "purchase", "username": "customer1", "quantity": 1, ...}
      ]
    }

    Response:
    {
      "success": true,
      "processed": 2,
      "total": 2,
      "message": "Processed 2/2 events"
    }
    """
    try:
        batch = BatchEventRequest(**(request.get_json(silent=True) or {}))
    except ValidationError as e:
        return _invalid(e, "batch data")

    if len(batch.events) > settings.MAX_BATCH_SIZE:
        return _invalid(ValueError(f"at most {settings.MAX_BATCH_SIZE} events per batch"), "batch data")

    processed = _processor().process_batch(batch.events)

    return (
        jsonify(
            {
                "success": True,
                "processed": processed,
                "total": len(batch.events),
                "message": f"Processed {processed}/{len(batch.events)} events",
            }
        ),
        201,
    )
