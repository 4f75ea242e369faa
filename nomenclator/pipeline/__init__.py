"""
Table build orchestration.

Modules:
    config - PipelineConfig built from config/pipeline.yaml
    scheduler - WorkScheduler, bounded thread pool dispatcher
    aggregator - RunAggregator and the printed run report
    runner - NomenclatorPipeline and its per-run RunContext
"""

from .aggregator import RunAggregator, print_summary
from .config import PipelineConfig, default_concurrency
from .runner import SUMMARY_FILENAME, NomenclatorPipeline, RunContext
from .scheduler import SchedulerStats, WorkScheduler

__all__ = [
    'NomenclatorPipeline',
    'RunContext',
    'SUMMARY_FILENAME',
    'PipelineConfig',
    'default_concurrency',
    'RunAggregator',
    'print_summary',
    'SchedulerStats',
    'WorkScheduler',
]
