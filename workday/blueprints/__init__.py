"""
Workday Close Service
Blueprint registry.
"""

from flask import request

from workday.core.clock import current_clock
from workday.utils.helpers import parse_date_input


def date_arg(name="date"):
    """Date from the query string, defaulting to the clock's today.

    Raises InvalidPayload for a malformed value.
    """
    raw = request.args.get(name)
    if not raw:
        return current_clock().today()
    return parse_date_input(raw, name)


def json_body():
    return request.get_json(silent=True) or {}
