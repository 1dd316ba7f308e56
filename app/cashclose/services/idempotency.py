"""Replay protection for closure writes.

A client may send ``Idempotency-Key`` with a submission or a review action. The
first request with a key stores its outcome, success or failure; a repeat from
the same actor with the same body gets that outcome back verbatim instead of
running the workflow again. Keys are namespaced per actor and route.
"""
import hashlib
import json
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from sqlalchemy.exc import IntegrityError

from app.cashclose.core.error_catalog import AppError, ErrorCatalog
from app.cashclose.core.metrics import metrics
from app.cashclose.db.models import IdempotencyRecord
from app.cashclose.repos.idempotency import IdempotencyRepository

IDEMPOTENCY_HEADER = "Idempotency-Key"
REPLAY_HEADER = "X-Idempotency-Result"


class IdempotencyState(str, Enum):
    IN_PROGRESS = "in_progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class IdempotencyScope:
    user_id: str
    endpoint: str
    method: str
    key: str


@dataclass
class StoredOutcome:
    status_code: int
    response_body: dict


def request_fingerprint(payload: object) -> str:
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


def extract_idempotency_key(headers) -> str | None:
    key = (headers.get(IDEMPOTENCY_HEADER) or "").strip()
    return key or None


class IdempotencyContext:
    """Handle on an in-flight keyed request; stores whatever it ends with."""

    def __init__(self, record: IdempotencyRecord, repo: IdempotencyRepository):
        self._record = record
        self._repo = repo

    def record_success(self, *, status_code: int, response_body: dict) -> None:
        self._store(IdempotencyState.SUCCEEDED, status_code, response_body)

    def record_failure(self, *, status_code: int, response_body: dict) -> None:
        # drop whatever the failed submission or transition left in the session
        self._repo.db.rollback()
        self._store(IdempotencyState.FAILED, status_code, response_body)

    def _store(self, state: IdempotencyState, status_code: int, response_body: dict) -> None:
        self._record.state = state.value
        self._record.status_code = status_code
        self._record.response_body = json.dumps(response_body)
        self._record.updated_at = datetime.utcnow()
        self._repo.save(self._record)


class IdempotencyService:
    def __init__(self, db):
        self.repo = IdempotencyRepository(db)

    def begin(self, scope: IdempotencyScope, payload: object) -> IdempotencyContext | StoredOutcome:
        """Claim ``scope`` for this request or return the outcome already stored for it."""
        fingerprint = request_fingerprint(payload)
        existing = self.repo.find(scope)
        if existing is not None:
            return self._outcome_of(existing, fingerprint)

        record = IdempotencyRecord(
            user_id=scope.user_id,
            endpoint=scope.endpoint,
            method=scope.method,
            idempotency_key=scope.key,
            request_hash=fingerprint,
            state=IdempotencyState.IN_PROGRESS.value,
        )
        try:
            self.repo.save(record)
        except IntegrityError:
            # a concurrent request with the same key won the insert
            self.repo.db.rollback()
            return self._outcome_of(self.repo.find(scope), fingerprint)
        return IdempotencyContext(record, self.repo)

    def _outcome_of(self, record: IdempotencyRecord | None, fingerprint: str) -> StoredOutcome:
        if record is None:
            raise AppError(ErrorCatalog.IDEMPOTENCY_REQUEST_IN_PROGRESS)
        if record.request_hash != fingerprint:
            raise AppError(
                ErrorCatalog.IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD,
                details={"idempotency_key": record.idempotency_key},
            )
        if record.state == IdempotencyState.IN_PROGRESS.value or record.status_code is None:
            raise AppError(ErrorCatalog.IDEMPOTENCY_REQUEST_IN_PROGRESS)
        metrics.increment_idempotency_replay()
        return StoredOutcome(status_code=record.status_code, response_body=json.loads(record.response_body))
