"""Cron expression validation and next-fire computation."""

from __future__ import annotations

from datetime import datetime

from croniter import CroniterBadDateError, croniter

from backup_scheduler.errors import InvalidExpressionError

CRON_FIELD_COUNT = 5


def validate_cron_expression(expression: str | None) -> str:
    """Validate a standard 5-field cron expression.

    Fields are minute, hour, day of month, month and day of week.

    Args:
        expression: Cron expression string to validate.

    Returns:
        The expression with surrounding whitespace removed.

    Raises:
        InvalidExpressionError: If the expression is empty, has the wrong
            number of fields, is rejected by croniter, or
            never matches a date.
    """
    if not expression or not expression.strip():
        raise InvalidExpressionError(
            expression, "Invalid cron expression: expression cannot be empty"
        )

    expression = expression.strip()
    fields = expression.split()

    if len(fields) != CRON_FIELD_COUNT:
        raise InvalidExpressionError(
            expression,
            f"Invalid cron expression: expected {CRON_FIELD_COUNT} fields "
            f"(minute hour day month weekday), got {len(fields)}",
        )

    try:
        # croniter validates the fields when instantiated
        itr = croniter(expression)
    except (ValueError, KeyError) as e:
        raise InvalidExpressionError(expression, f"Invalid cron expression: {e}") from e

    try:
        # In range but never matching, e.g. Feb 30
        itr.get_next(datetime)
    except CroniterBadDateError as e:
        raise InvalidExpressionError(
            expression, f"Invalid cron expression: it never fires ({e})"
        ) from e

    return expression


def next_fire_time(expression: str, after: datetime) -> datetime:
    """Return the first fire time strictly after ``after``.

    ``after`` should be timezone-aware; the result carries the same tzinfo.
    """
    return croniter(expression, after).get_next(datetime)

