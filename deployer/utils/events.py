"""Pipeline event fan-out."""
import asyncio
import logging
from collections import defaultdict
from typing import Callable, DefaultDict, List

logger = logging.getLogger(__name__)

# Event names emitted by PipelineOrchestrator
BATCH_START = "batch_start"        # (total)
FOLDER_START = "folder_start"      # (unit, index, total)
STAGE_COMPLETE = "stage_complete"  # (unit, StageResult)
FOLDER_FINISH = "folder_finish"    # (FolderReport)
BATCH_FINISH = "batch_finish"      # (BatchResult)


class EventEmitter:
    """
    Delivers pipeline events to subscribed callbacks.

    Callbacks may be plain functions or coroutine functions. They run in
    subscription order; a failing callback is logged and skipped.
    """

    def __init__(self):
        self._listeners: DefaultDict[str, List[Callable]] = defaultdict(list)

    def on(self, event_name: str, callback: Callable) -> None:
        listeners = self._listeners[event_name]
        if callback not in listeners:
            listeners.append(callback)

    def off(self, event_name: str, callback: Callable) -> None:
        listeners = self._listeners.get(event_name, [])
        if callback in listeners:
            listeners.remove(callback)

    async def emit(self, event_name: str, *args) -> None:
        for callback in tuple(self._listeners.get(event_name, ())):
            try:
                outcome = callback(*args)
                if asyncio.iscoroutine(outcome):
                    await outcome
            except Exception as e:
                logger.error(f"Listener for {event_name} failed: {e}", exc_info=True)
