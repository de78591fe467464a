"""Shared utilities for sce-pipeline."""

from sce_pipeline.utils.time import utc_now

__all__ = ["utc_now"]
