# services/workflow-replicator-service/app/core/errors.py
from __future__ import annotations

import re
from typing import Optional


class ReplicatorError(RuntimeError):
    """Base class for everything the replicator raises on purpose."""


class StoreError(ReplicatorError):
    """
    A record-store call failed. Carries the HTTP status and a trimmed body when known.
    """

    def __init__(self, message: str, *, status: Optional[int] = None, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.status = status
        self.code = code


class NotFound(StoreError):
    pass


class Unauthorized(StoreError):
    pass


class ValidationError(StoreError):
    pass


class BatchError(ReplicatorError):
    """Fails a single workflow batch; the run continues with the next one."""


class ReplicationInputError(ReplicatorError, ValueError):
    """The caller broke the input contract (e.g. no batches at all)."""


class PartialFailure(ReplicatorError):
    """One template in a batch could not be copied. Recorded, never raised past the batch."""

    def __init__(self, template_id: str, title: str, cause: BaseException) -> None:
        super().__init__(f"{title or template_id}: {cause}")
        self.template_id = template_id
        self.title = title
        self.cause = cause


class UnresolvedDependency(ReplicatorError):
    """An edge endpoint has no copy in this run. Logged and dropped."""

    def __init__(self, template_id: str, endpoint_id: str, kind: str) -> None:
        super().__init__(f"{kind} edge {template_id} -> {endpoint_id} has no copy in this run")
        self.template_id = template_id
        self.endpoint_id = endpoint_id
        self.kind = kind


# "date" as a word or path segment (body.properties.Date.date.start); not "update"
_DATE_WORD = re.compile(r"\bdate\b", re.IGNORECASE)


def is_date_validation_error(exc: BaseException) -> bool:
    """
    True when a store ValidationError complains about a date value/range.
    """
    if not isinstance(exc, ValidationError):
        return False
    if exc.code and exc.code != "validation_error":
        return False
    return bool(_DATE_WORD.search(str(exc)))
