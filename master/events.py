"""
Event recording.

Components record events through a recorder that posts them to the master
API in the background, so recording never blocks the caller.
"""

import logging
import queue
import threading
from datetime import datetime, timezone
from typing import Optional

import requests

from shared.clientconfig import ClientConfig

logger = logging.getLogger(__name__)


class EventRecorder:
    """Queue events and post them to ``/api/<version>/events``."""

    def __init__(self, client: ClientConfig, component: str, session: Optional[requests.Session] = None):
        self.client = client
        self.component = component
        self.url = client.url(f"api/{client.version}/events")
        self._session = client.build_session(session)
        self._queue: "queue.Queue[Optional[dict]]" = queue.Queue()
        self.thread: Optional[threading.Thread] = None

    def start(self) -> "EventRecorder":
        self.thread = threading.Thread(target=self._run, name=f"events-{self.component}", daemon=True)
        self.thread.start()
        return self

    def stop(self) -> None:
        self._queue.put(None)
        if self.thread:
            self.thread.join(timeout=5)

    def record(self, reason: str, message: str, kind: str = "Component", name: Optional[str] = None) -> dict:
        event = {
            "reason": reason,
            "message": message,
            "source": {"component": self.component},
            "involvedObject": {"kind": kind, "name": name or self.component},
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        self._queue.put(event)
        return event

    def _run(self) -> None:
        while True:
            event = self._queue.get()
            if event is None:
                return
            try:
                response = self._session.post(self.url, json=event, timeout=5)
                if response.status_code >= 300:
                    logger.warning(f"Event post rejected: status={response.status_code}")
            except requests.RequestException as e:
                logger.warning(f"Event post failed: {e}")


def start_recording(client: ClientConfig, component: str) -> EventRecorder:
    """Start a recorder for ``component`` and record that it started."""
    recorder = EventRecorder(client, component).start()
    recorder.record("Starting", f"{component} started")
    logger.info(f"Event recording started for {component}")
    return recorder
