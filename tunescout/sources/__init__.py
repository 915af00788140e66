from .fallback_catalog import FallbackCatalog
from .record_extractor import ExtractionStrategy, RecordExtractor, StrategyKind

__all__ = [
    "ExtractionStrategy",
    "FallbackCatalog",
    "RecordExtractor",
    "StrategyKind",
]
