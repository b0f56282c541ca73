from tortoise import fields

from .base import TimestampedModel


class SourceStatus:
    """Source processing status constants."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class Source(TimestampedModel):
    # The external post ID is the primary key so passage ids stay stable across re-ingestion
    id = fields.IntField(primary_key=True, generated=False)
    title = fields.CharField(max_length=500)
    body = fields.TextField()
    answer = fields.TextField(null=True)
    tags = fields.JSONField(default=list)
    content_sha256 = fields.CharField(max_length=64)
    status = fields.CharField(
        max_length=20,
        default=SourceStatus.PENDING,
        description="Processing status: PENDING, PROCESSING, COMPLETED, or FAILED",
    )
    processing_errors = fields.TextField(null=True, description="Error messages from failed processing attempts")

    class Meta:
        table = "sources"
        table_description = "Source posts"
