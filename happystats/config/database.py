import os
import asyncpg
import logging
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"


class DatabaseConfig:
    """Database configuration settings"""

    def __init__(self):
        self.host = os.getenv("DB_HOST", "localhost")
        self.port = int(os.getenv("DB_PORT", "5432"))
        self.user = os.getenv("DB_USER", "postgres")
        self.password = os.getenv("DB_PASSWORD", "postgres")
        self.database = os.getenv("DB_NAME", "happystats")
        self.min_connections = int(os.getenv("DB_MIN_CONNECTIONS", "2"))
        self.max_connections = int(os.getenv("DB_MAX_CONNECTIONS", "20"))
        self.run_migrations = os.getenv("DB_RUN_MIGRATIONS", "true").lower() in (
            "1",
            "true",
            "yes",
        )

    @property
    def connection_string(self) -> str:
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"


class DatabaseManager:
    """Database connection manager with connection pooling"""

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self.pool: Optional[asyncpg.Pool] = None

    async def initialize(self) -> bool:
        """Initialize the database connection pool"""
        try:
            self.pool = await asyncpg.create_pool(
                host=self.config.host,
                port=self.config.port,
                user=self.config.user,
                password=self.config.password,
                database=self.config.database,
                min_size=self.config.min_connections,
                max_size=self.config.max_connections,
                command_timeout=30,
            )
            return True
        except Exception as e:
            logger.error(f"Failed to initialize database connection pool: {e}")
            return False

    async def close(self):
        """Close the database connection pool"""
        if self.pool:
            await self.pool.close()

    async def execute(self, query: str, *args) -> List[asyncpg.Record]:
        """Run a query and return all rows"""
        async with self.pool.acquire() as connection:
            return await connection.fetch(query, *args)

    async def fetch_one(self, query: str, *args) -> Optional[asyncpg.Record]:
        """Run a query and return the first row, if any"""
        async with self.pool.acquire() as connection:
            return await connection.fetchrow(query, *args)

    async def fetch_value(self, query: str, *args):
        async with self.pool.acquire() as connection:
            return await connection.fetchval(query, *args)

    async def execute_command(self, command: str, *args) -> str:
        """Run a command and return its status string, e.g. 'DELETE 1'"""
        async with self.pool.acquire() as connection:
            return await connection.execute(command, *args)

    async def health_check(self) -> bool:
        if not self.pool:
            return False
        try:
            return await self.fetch_value("SELECT 1") == 1
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False

    async def run_migrations(self, migrations_dir: Path = MIGRATIONS_DIR) -> int:
        """Apply every .sql file in migrations_dir in filename order"""
        migration_files = sorted(migrations_dir.glob("*.sql"))

        async with self.pool.acquire() as connection:
            for migration_file in migration_files:
                try:
                    await connection.execute(migration_file.read_text(encoding="utf-8"))
                    logger.info(f"Applied migration {migration_file.name}")
                except Exception as e:
                    logger.error(f"Migration {migration_file.name} failed: {e}")
                    raise

        return len(migration_files)


# Global database manager instance
db_config = DatabaseConfig()
db_manager = DatabaseManager(db_config)
