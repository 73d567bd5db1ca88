"""
Event-to-publish pipeline: filter, build payload, publish.
"""

from .event_filter import EventFilter, accepts, extract_extension
from .payload_builder import PayloadBuilder, compress_payload
from .publisher import Publisher
from .event_pipeline import EventPipeline, PipelineContext, PipelineStatistics

__all__ = [
    "EventFilter",
    "accepts",
    "extract_extension",
    "PayloadBuilder",
    "compress_payload",
    "Publisher",
    "EventPipeline",
    "PipelineContext",
    "PipelineStatistics",
]
