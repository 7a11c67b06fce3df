"""
Engine exceptions and the error payload recorded for failed documents.
"""

from datetime import datetime, UTC


class QuestionnaireError(Exception):
    """Base class for questionnaire engine errors."""


class StructuralParseError(QuestionnaireError):
    """The workbook has no recognisable compliance or question column."""


class MissingSheetError(QuestionnaireError):
    """A required worksheet (e.g. "Cost Breakdown") is absent."""


def utc_timestamp() -> str:
    """ISO-8601 UTC with millisecond precision and a 'Z' suffix."""
    now = datetime.now(UTC).isoformat(timespec="milliseconds")
    return now.replace("+00:00", "Z")


def make_error_payload(
    stage: str, err: Exception | str, extra: dict | None = None
) -> dict:
    """
    Args:
        stage: Pipeline step that failed ("fetch", "parse", "score", "cost")
        err: Exception or message
        extra: Merged into the payload (e.g. {"file": name})
    """
    payload = {"status": "error", "error": str(err), "stage": stage}
    if isinstance(err, BaseException):
        payload["errorType"] = type(err).__name__
    payload["timestamp"] = utc_timestamp()
    payload.update(extra or {})
    return payload
