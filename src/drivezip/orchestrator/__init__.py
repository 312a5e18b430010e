"""Orchestrator module."""
from .pipeline import ArchivePipeline, FileResult, PipelineReport, PipelineState, StageSummary

__all__ = ["ArchivePipeline", "FileResult", "PipelineReport", "PipelineState", "StageSummary"]
