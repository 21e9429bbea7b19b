"""
Backend package for LIO preprocessing.

Calibration, integration, and undistortion operators plus the pipeline
state machine that sequences them.
"""

from __future__ import annotations

from lio_preprocess.backend.pipeline import PipelineState, ProcessingPipeline, ScanOutput
from lio_preprocess.backend.config import load_preprocess_config

__all__ = [
    "PipelineState",
    "ProcessingPipeline",
    "ScanOutput",
    "load_preprocess_config",
]
