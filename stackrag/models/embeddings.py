from tortoise import fields, models
from tortoise_vector.field import VectorField


class Embedding(models.Model):
    id = fields.IntField(primary_key=True)
    passage = fields.OneToOneField("models.PassageRecord", on_delete=fields.CASCADE, related_name="embedding")
    vector = VectorField(vector_size=384)
    dim = fields.IntField()

    class Meta:
        table = "embeddings"
