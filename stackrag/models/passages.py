from tortoise import fields, models
from tortoise.contrib.postgres.fields import TSVectorField


class PassageRecord(models.Model):
    # "{source_id}_{ordinal_index}"
    id = fields.CharField(max_length=64, primary_key=True)
    source = fields.ForeignKeyField("models.Source", related_name="passages", on_delete=fields.CASCADE)
    title = fields.CharField(max_length=500)
    text = fields.TextField()
    ordinal_index = fields.IntField()

    # PostgreSQL tsvector column for full-text search
    # Generated automatically: to_tsvector('english', text)
    fts = TSVectorField(null=True, generated=True, description="Full-text search vector (computed)")

    class Meta:
        table = "passages"
        unique_together = (("source", "ordinal_index"),)
