from pydantic import BaseModel, Field


class SyncResultRead(BaseModel):
    user_id: str
    synced: bool
    error: str | None = None


class ReconcileRequest(BaseModel):
    batch_size: int | None = Field(default=None, ge=1, le=500)


class ReconcileResponse(BaseModel):
    processed: int
    synced: int
    failed: int
    results: list[SyncResultRead]
