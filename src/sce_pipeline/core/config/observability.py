"""Logging configuration model."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, model_validator


class LogConfig(BaseModel):
    """Controls log level, output format and file rotation."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Minimum log level to capture",
    )
    format: Literal["json", "console", "both"] = Field(
        default="console",
        description="json for structured lines, console for humans, "
        "both for console on stderr plus JSON to file",
    )
    file_path: Path | None = Field(
        default=None,
        description="Log file path (required when format='both')",
    )
    max_file_size_mb: int = Field(default=50, gt=0, le=1000)
    backup_count: int = Field(default=5, ge=0, le=100)
    include_timestamps: bool = True
    include_context: bool = Field(
        default=True,
        description="Merge batch_id/record_id context into every entry",
    )

    @model_validator(mode="after")
    def _check_file_path_required(self) -> LogConfig:
        if self.format == "both" and self.file_path is None:
            raise ValueError("file_path is required when format='both'")
        return self
