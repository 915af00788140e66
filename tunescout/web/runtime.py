"""Runtime bootstrap for the TuneScout web API."""

from __future__ import annotations

from dataclasses import dataclass

from ..core.event_bus import EventBus
from ..core.relay_router import RelayPreference, RelayRouter
from ..core.search_orchestrator import SearchOrchestrator
from ..core.settings_manager import SettingsManager
from ..sources.fallback_catalog import FallbackCatalog
from ..sources.record_extractor import RecordExtractor


@dataclass
class TuneScoutRuntime:
    """Shared service graph used by web endpoints."""

    settings: SettingsManager
    event_bus: EventBus
    relay_preference: RelayPreference
    router: RelayRouter
    catalog: FallbackCatalog
    orchestrator: SearchOrchestrator


def build_runtime(settings=None) -> TuneScoutRuntime:
    """Create and wire the pipeline; the relay preference lives for the whole process."""

    settings = settings or SettingsManager()
    event_bus = EventBus()
    preference = RelayPreference()
    router = RelayRouter(preference=preference, settings=settings, event_bus=event_bus)
    catalog = FallbackCatalog()
    orchestrator = SearchOrchestrator(
        router=router,
        extractor=RecordExtractor(),
        catalog=catalog,
        settings=settings,
        event_bus=event_bus,
    )
    return TuneScoutRuntime(
        settings=settings,
        event_bus=event_bus,
        relay_preference=preference,
        router=router,
        catalog=catalog,
        orchestrator=orchestrator,
    )
