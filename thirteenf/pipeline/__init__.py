"""Pipeline orchestration."""

from .orchestrator import HoldingsPipeline, build_pipeline

__all__ = ["HoldingsPipeline", "build_pipeline"]
