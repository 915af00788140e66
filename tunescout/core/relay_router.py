"""
Relay Router
Delivers upstream requests through an ordered chain of public CORS relays
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Dict, List, Optional
from urllib.parse import quote

import requests

from ..utils.coerce import to_float
from .event_bus import EventBus, Events


DEFAULT_RELAYS = [
    {"name": "allorigins", "template": "https://api.allorigins.win/get?url={url}", "envelope": "contents"},
    {"name": "corsproxy", "template": "https://corsproxy.io/?{url}"},
    {"name": "codetabs", "template": "https://api.codetabs.com/v1/proxy?quest={url}"},
]

ROUTING_ACCEPT = "application/json, text/html, */*"


class RelayExhaustedError(Exception):
    """Every relay failed for one delivery"""

    def __init__(self, target_url: str, errors: List[str], last_error: Optional[BaseException] = None):
        self.target_url = target_url
        self.errors = list(errors)
        self.last_error = last_error
        detail = errors[-1] if errors else "no relays configured"
        super().__init__(f"All relays failed for {target_url}: {detail}")


@dataclass(frozen=True)
class RelayEndpoint:
    """URL-rewriting template for one relay"""
    name: str
    template: str
    envelope: str = ""

    def rewrite(self, target_url: str) -> str:
        encoded = quote(target_url, safe="")
        if "{url}" in self.template:
            return self.template.replace("{url}", encoded)
        return f"{self.template}{encoded}"

    @classmethod
    def from_config(cls, raw) -> Optional["RelayEndpoint"]:
        if isinstance(raw, str):
            template = raw.strip()
            return cls(name=template, template=template) if template else None
        if not isinstance(raw, dict):
            return None
        template = str(raw.get("template") or "").strip()
        if not template:
            return None
        return cls(
            name=str(raw.get("name") or template).strip(),
            template=template,
            envelope=str(raw.get("envelope") or "").strip(),
        )


class RelayPreference:
    """Shared index of the relay that last succeeded"""

    def __init__(self, index: int = 0):
        self._index = int(index)
        self._lock = threading.Lock()

    def get(self) -> int:
        with self._lock:
            return self._index

    def set(self, index: int) -> None:
        with self._lock:
            self._index = int(index)


@dataclass
class RelayResponse:
    relay: str
    url: str
    status_code: int
    text: str
    content_type: str = ""


@dataclass
class RelayHealthState:
    attempts: int = 0
    successes: int = 0
    failures: int = 0
    avg_latency_ms: float = 0.0
    last_error: str = ""
    last_success_at: float = 0.0


class RelayRouter:
    """
    Sticky-success relay failover.

    Each delivery probes relays in rotation starting at the shared preferred
    index and stops at the first 2xx response, which becomes the new preferred
    relay. Attempts are sequential and each one is bounded by a timeout.
    """

    def __init__(
        self,
        relays=None,
        preference: Optional[RelayPreference] = None,
        settings=None,
        event_bus: Optional[EventBus] = None,
        session: Optional[requests.Session] = None,
    ):
        self.settings = settings
        self.preference = preference or RelayPreference()
        self.event_bus = event_bus
        self.session = session or requests.Session()
        self.last_error = ""
        self._lock = threading.RLock()
        self._health: Dict[str, RelayHealthState] = {}
        self._explicit_relays = relays
        self.relays: List[RelayEndpoint] = []
        self.timeout_seconds = 10.0
        self.reload_from_settings()

    def reload_from_settings(self):
        raw = self._explicit_relays
        if raw is None and self.settings is not None:
            raw = self.settings.get("relay_endpoints", None)
        if not raw:
            raw = DEFAULT_RELAYS
        relays = []
        for item in raw:
            relay = item if isinstance(item, RelayEndpoint) else RelayEndpoint.from_config(item)
            if relay and relay not in relays:
                relays.append(relay)
        self.relays = relays
        if self.settings is not None:
            timeout = to_float(self.settings.get("relay_timeout_seconds", 10.0), 10.0)
            self.timeout_seconds = timeout if timeout > 0 else 10.0
            user_agent = str(self.settings.get("relay_user_agent", "") or "").strip()
            if user_agent:
                self.session.headers.update({"User-Agent": user_agent})

    def probe_order(self) -> List[int]:
        count = len(self.relays)
        if not count:
            return []
        start = self.preference.get() % count
        return [(start + offset) % count for offset in range(count)]

    def deliver(self, target_url: str, headers: Optional[dict] = None, timeout: Optional[float] = None) -> RelayResponse:
        """
        Fetch target_url through the first relay that answers successfully.

        The timeout applies to each relay attempt separately and must be
        positive; it defaults to the configured relay_timeout_seconds.

        Raises:
            RelayExhaustedError: every relay failed or timed out
            ValueError: timeout is zero or negative
        """
        self.last_error = ""
        merged_headers = {k: v for k, v in (headers or {}).items() if str(k).lower() != "accept"}
        merged_headers["Accept"] = ROUTING_ACCEPT
        attempt_timeout = float(timeout if timeout is not None else self.timeout_seconds)
        if attempt_timeout <= 0:
            raise ValueError(f"Relay timeout must be positive, got {timeout!r}")

        errors: List[str] = []
        last_exception: Optional[BaseException] = None
        for index in self.probe_order():
            relay = self.relays[index]
            relayed_url = relay.rewrite(target_url)
            t0 = time.perf_counter()
            try:
                response = self.session.get(relayed_url, headers=merged_headers, timeout=attempt_timeout)
                response.raise_for_status()
                body = self._unwrap(relay, response)
            except (requests.RequestException, ValueError) as e:
                latency_ms = (time.perf_counter() - t0) * 1000.0
                last_exception = e
                errors.append(f"{relay.name}: {e}")
                self._record_health(relay.name, ok=False, latency_ms=latency_ms, error=str(e))
                print(f"Relay {relay.name} failed: {e}")
                self._emit(Events.RELAY_FAILED, {"relay": relay.name, "error": str(e)})
                continue

            latency_ms = (time.perf_counter() - t0) * 1000.0
            self._record_health(relay.name, ok=True, latency_ms=latency_ms, error="")
            self.preference.set(index)
            self._emit(Events.RELAY_SELECTED, {"relay": relay.name, "index": index})
            return RelayResponse(
                relay=relay.name,
                url=relayed_url,
                status_code=response.status_code,
                text=body,
                content_type=str(response.headers.get("content-type", "") or ""),
            )

        error = RelayExhaustedError(target_url, errors, last_exception)
        self.last_error = str(error)
        raise error

    def _unwrap(self, relay: RelayEndpoint, response) -> str:
        if not relay.envelope:
            return response.text
        payload = response.json()
        if not isinstance(payload, dict) or relay.envelope not in payload:
            raise ValueError(f"Relay envelope missing '{relay.envelope}'")
        status = payload.get("status")
        if isinstance(status, dict):
            upstream = status.get("http_code")
            if isinstance(upstream, int) and upstream >= 400:
                raise ValueError(f"Upstream returned HTTP {upstream}")
        return str(payload.get(relay.envelope) or "")

    def _emit(self, event_type: str, data: dict):
        if self.event_bus is not None:
            self.event_bus.emit(event_type, data)

    def _record_health(self, relay_name: str, ok: bool, latency_ms: float, error: str):
        with self._lock:
            state = self._health.get(relay_name, RelayHealthState())
            state.attempts += 1
            if ok:
                state.successes += 1
                state.last_error = ""
                state.last_success_at = time.time()
            else:
                state.failures += 1
                state.last_error = error
            if latency_ms > 0:
                if state.avg_latency_ms <= 0:
                    state.avg_latency_ms = latency_ms
                else:
                    state.avg_latency_ms = (state.avg_latency_ms * 0.8) + (latency_ms * 0.2)
            self._health[relay_name] = state

    def get_health_snapshot(self) -> dict:
        with self._lock:
            return {
                k: {
                    "attempts": v.attempts,
                    "successes": v.successes,
                    "failures": v.failures,
                    "avg_latency_ms": round(v.avg_latency_ms, 2),
                    "last_error": v.last_error,
                    "last_success_at": v.last_success_at,
                }
                for k, v in self._health.items()
            }

    def get_runtime_status(self) -> dict:
        preferred = self.probe_order()
        return {
            "relays": [
                {"name": r.name, "template": r.template, "envelope": r.envelope}
                for r in self.relays
            ],
            "preferred_index": preferred[0] if preferred else 0,
            "preferred_relay": self.relays[preferred[0]].name if preferred else "",
            "timeout_seconds": self.timeout_seconds,
            "health": self.get_health_snapshot(),
            "last_error": self.last_error,
        }
