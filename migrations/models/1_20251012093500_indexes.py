from tortoise import BaseDBAsyncClient


async def upgrade(db: BaseDBAsyncClient) -> str:
    return """
    -- FTS column, computed on DB level from the passage text
    ALTER TABLE passages ADD COLUMN IF NOT EXISTS fts tsvector
    GENERATED ALWAYS AS (to_tsvector('english', text)) STORED;
    COMMENT ON COLUMN "passages"."fts" IS 'Full-text search vector (computed)';

    -- Hybrid indices
    CREATE INDEX IF NOT EXISTS idx_passages_fts ON passages USING GIN (fts);
    CREATE INDEX IF NOT EXISTS idx_embeddings_vector ON embeddings USING ivfflat (vector vector_cosine_ops) WITH (lists = 100);

    -- Change detection
    CREATE INDEX IF NOT EXISTS idx_sources_sha ON sources(content_sha256);
    CREATE INDEX IF NOT EXISTS idx_sources_status ON sources(status);
    """


async def downgrade(db: BaseDBAsyncClient) -> str:
    return """
    DROP INDEX IF EXISTS idx_sources_status;
    DROP INDEX IF EXISTS idx_sources_sha;
    DROP INDEX IF EXISTS idx_embeddings_vector;
    DROP INDEX IF EXISTS idx_passages_fts;

    ALTER TABLE passages DROP COLUMN IF EXISTS fts;
    """
