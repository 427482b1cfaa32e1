# ==============================================================================
# Ingestion and Aggregation Pipeline
# ==============================================================================
"""
Pipeline components. Each receives its cache and repository handles through
its constructor; build_pipeline() wires the concrete adapters.

Write path:
    CollectPipeline -> IngestionGate -> EntityCache -> GeoResolutionChain
    -> SessionTracker -> PageviewRecorder -> LiveVisitors / DailyCounters

Read path:
    StatsAggregator
"""

from pagestream.pipeline.collect import CollectPipeline
from pagestream.pipeline.entities import EntityCache
from pagestream.pipeline.factory import Pipeline, build_pipeline
from pagestream.pipeline.geo import GeoResolutionChain, GeoTier, TierCache
from pagestream.pipeline.handlers import HttpResponse, handle_collect, handle_stats
from pagestream.pipeline.ingestion import IngestionGate
from pagestream.pipeline.recorder import PageviewRecorder
from pagestream.pipeline.sessions import SessionTracker
from pagestream.pipeline.stats import DailyCounters, LiveVisitors, StatsAggregator

__all__ = [
    # Write path
    "CollectPipeline",
    "IngestionGate",
    "EntityCache",
    "GeoResolutionChain",
    "GeoTier",
    "TierCache",
    "SessionTracker",
    "PageviewRecorder",
    "LiveVisitors",
    "DailyCounters",
    # Read path
    "StatsAggregator",
    # Handlers
    "HttpResponse",
    "handle_collect",
    "handle_stats",
    # Wiring
    "Pipeline",
    "build_pipeline",
]
