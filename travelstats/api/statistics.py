"""
Statistics query API endpoints

Every endpoint streams newline-delimited JSON, one {"<bucket>": <value>}
object per line. Parameters are validated and the store is queried before
the response starts, so a bad request never emits a partial series.
"""
from flask import Blueprint, Response, current_app, request, stream_with_context
import logging

from travelstats.auth import current_principal, require_role, require_user
from travelstats.config import settings
from travelstats.core.emitter import ndjson_lines
from travelstats.core.service import StatisticsService
from travelstats.exceptions import InvalidParameter

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin_statistics", __name__, url_prefix="/admin/statistics")
my_bp = Blueprint("my_statistics", __name__, url_prefix="/my/statistics")

NDJSON = "application/x-ndjson"


def _service() -> StatisticsService:
    return current_app.extensions["statistics_service"]


def _required(name: str) -> str:
    value = request.args.get(name)
    if value is None or value == "":
        raise InvalidParameter(f"{name} parameter is required")
    return value


def _stream(records, description: str) -> Response:
    return Response(
        stream_with_context(ndjson_lines(records, description)),
        mimetype=NDJSON,
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )


@admin_bp.route("/transits/perDay", methods=["GET"])
@require_role(settings.ADMIN_ROLE)
def transits_per_day():
    """
    Number of transits on each day of the interval

    Days without transits are reported as 0.

    Example:
    GET /admin/statistics/transits/perDay?from=20220701&to=20220710

    Response (application/x-ndjson):
    {"20220701": 200}
    {"20220702": 0}
    {"20220703": 180}
    ...
    """
    records = _service().transits_per_day(_required("from"), _required("to"))
    return _stream(records, "transits per day")


@admin_bp.route("/transits/perHour", methods=["GET"])
@require_role(settings.ADMIN_ROLE)
def transits_per_hour():
    """
    Number of transits in each hour of the given date

    Example:
    GET /admin/statistics/transits/perHour?date=20220701

    Response (application/x-ndjson):
    {"0": 2}
    {"1": 3}
    ...
    {"23": 0}
    """
    records = _service().transits_per_hour(_required("date"))
    return _stream(records, "transits per hour")


@my_bp.route("/transits/perHour", methods=["GET"])
@require_user
def my_transits_per_hour():
    """
    The caller's transits in each hour of the day, summed over the interval

    Example:
    GET /my/statistics/transits/perHour?from=20220701&to=20220703

    Response (application/x-ndjson):
    {"0": 0}
    ...
    {"8": 45}
    ...
    """
    principal = current_principal()
    records = _service().my_transits_per_hour(
        _required("from"), _required("to"), username=principal.username
    )
    return _stream(records, "my transits per hour")


@admin_bp.route("/revenues/perMonth", methods=["GET"])
@require_role(settings.ADMIN_ROLE)
def revenues_per_month():
    """
    Total revenues in each month of the year

    Months without purchases are reported as 0.0.

    Example:
    GET /admin/statistics/revenues/perMonth?year=2022

    Response (application/x-ndjson):
    {"1": 120.45}
    {"2": 189.09}
    ...
    """
    records = _service().revenues_per_month(_required("year"))
    return _stream(records, "revenues per month")


@my_bp.route("/expenses/perMonth", methods=["GET"])
@require_user
def my_expenses_per_month():
    """
    The caller's total expenses in each month of the year

    Example:
    GET /my/statistics/expenses/perMonth?year=2022

    Response (application/x-ndjson):
    {"1": 10.8}
    {"2": 12.09}
    ...
    """
    principal = current_principal()
    records = _service().my_expenses_per_month(_required("year"), username=principal.username)
    return _stream(records, "my expenses per month")


@admin_bp.route("/topBuyers", methods=["GET"])
@require_role(settings.ADMIN_ROLE)
def top_buyers():
    """
    Top <limit> users by tickets bought in the year, most first

    An empty stream means nobody bought tickets that year (or limit=0).

    Example:
    GET /admin/statistics/topBuyers?limit=2&year=2022

    Response (application/x-ndjson):
    {"customer1": 102}
    {"customer2": 88}
    """
    records = _service().top_buyers(_required("limit"), _required("year"))
    return _stream(records, "top buyers")
