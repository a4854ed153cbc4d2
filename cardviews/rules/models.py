from typing import Literal

from pydantic import BaseModel, Field


class ProjectRules(BaseModel):
    slug: str
    rules_version: str


class StorageRules(BaseModel):
    db_path: str = "cardviews.db"


MIN_WORKERS = 1
MAX_WORKERS = 32


class MigrationRules(BaseModel):
    dry_run: bool = False
    max_workers: int = Field(default=MIN_WORKERS, ge=MIN_WORKERS, le=MAX_WORKERS)
    malformed_timestamps: Literal["fail", "skip"] = "fail"


class SummaryRules(BaseModel):
    window_days: int = Field(default=7, ge=1, le=366)


class LoggingRules(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


class OpsRules(BaseModel):
    required_env: list[str] = Field(default_factory=list)


class Rules(BaseModel):
    project: ProjectRules
    storage: StorageRules = Field(default_factory=StorageRules)
    migration: MigrationRules = Field(default_factory=MigrationRules)
    summary: SummaryRules = Field(default_factory=SummaryRules)
    logging: LoggingRules = Field(default_factory=LoggingRules)
    ops: OpsRules = Field(default_factory=OpsRules)
