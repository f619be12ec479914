"""Query pipeline: self-correcting planner and the orchestrating service."""

from querypilot.pipeline.correction import PlannerState, SelfCorrectingPlanner
from querypilot.pipeline.orchestrator import (
    NoSQLProduced,
    PipelineTimeout,
    QueryPipeline,
    build_pipeline,
)

__all__ = [
    "NoSQLProduced",
    "PipelineTimeout",
    "PlannerState",
    "QueryPipeline",
    "SelfCorrectingPlanner",
    "build_pipeline",
]
