from sqlalchemy import select

from app.cashclose.db.models import IdempotencyRecord


class IdempotencyRepository:
    def __init__(self, db):
        self.db = db

    def find(self, scope) -> IdempotencyRecord | None:
        return self.db.execute(
            select(IdempotencyRecord).where(
                IdempotencyRecord.user_id == scope.user_id,
                IdempotencyRecord.endpoint == scope.endpoint,
                IdempotencyRecord.method == scope.method,
                IdempotencyRecord.idempotency_key == scope.key,
            )
        ).scalar_one_or_none()

    def save(self, record: IdempotencyRecord) -> IdempotencyRecord:
        self.db.add(record)
        self.db.commit()
        return record
