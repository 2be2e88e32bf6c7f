"""Monitor loop and event delivery.

Public API:
    MonitorLoop -- Fixed-rate capture/OCR/classify orchestrator
    MonitorState -- Per-run mutable state
    TickGate -- The single in-flight tick slot of a monitor
    EventBus -- Typed publish/subscribe for monitor events
    EventChannel -- Async iterator over every published event
"""

from satwatch.monitor.events import EventBus, EventChannel
from satwatch.monitor.loop import MonitorLoop, MonitorState, TickGate

__all__ = ["EventBus", "EventChannel", "MonitorLoop", "MonitorState", "TickGate"]
