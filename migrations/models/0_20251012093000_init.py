from tortoise import BaseDBAsyncClient


async def upgrade(db: BaseDBAsyncClient) -> str:
    return """
        CREATE EXTENSION IF NOT EXISTS vector;
        CREATE TABLE IF NOT EXISTS "sources" (
            "created_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
            "updated_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
            "id" INT NOT NULL PRIMARY KEY,
            "title" VARCHAR(500) NOT NULL,
            "body" TEXT NOT NULL,
            "answer" TEXT,
            "tags" JSONB NOT NULL,
            "content_sha256" VARCHAR(64) NOT NULL,
            "status" VARCHAR(20) NOT NULL DEFAULT 'PENDING',
            "processing_errors" TEXT
        );
        COMMENT ON COLUMN "sources"."status" IS 'Processing status: PENDING, PROCESSING, COMPLETED, or FAILED';
        COMMENT ON COLUMN "sources"."processing_errors" IS 'Error messages from failed processing attempts';
        COMMENT ON TABLE "sources" IS 'Source posts';
        CREATE TABLE IF NOT EXISTS "passages" (
            "id" VARCHAR(64) NOT NULL PRIMARY KEY,
            "title" VARCHAR(500) NOT NULL,
            "text" TEXT NOT NULL,
            "ordinal_index" INT NOT NULL,
            "source_id" INT NOT NULL REFERENCES "sources" ("id") ON DELETE CASCADE,
            CONSTRAINT "uid_passages_source__ordinal" UNIQUE ("source_id", "ordinal_index")
        );
        CREATE TABLE IF NOT EXISTS "embeddings" (
            "id" SERIAL NOT NULL PRIMARY KEY,
            "vector" public.vector(384) NOT NULL,
            "dim" INT NOT NULL,
            "passage_id" VARCHAR(64) NOT NULL UNIQUE REFERENCES "passages" ("id") ON DELETE CASCADE
        );
        CREATE TABLE IF NOT EXISTS "aerich" (
            "id" SERIAL NOT NULL PRIMARY KEY,
            "version" VARCHAR(255) NOT NULL,
            "app" VARCHAR(100) NOT NULL,
            "content" JSONB NOT NULL
        );
    """


async def downgrade(db: BaseDBAsyncClient) -> str:
    return """
        """
