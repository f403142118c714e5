"""WebSocket endpoint for live beat-phase tracking."""

import asyncio
import logging

import numpy as np
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from pulsetrack.analysis.live import LiveBeatSession
from pulsetrack.api.schemas import ErrorMessage, PhaseMessage
from pulsetrack.config import settings

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws/live")
async def live_tracking(websocket: WebSocket):
    """Live beat tracking via WebSocket.

    Protocol:
    - Client sends binary Float32 PCM chunks (``settings.sample_rate``, mono)
    - Server answers each chunk with zero or more JSON messages:
      - {"type": "phase", "time": T, "phase": P, "bpm": B, "confidence": C}
      - {"type": "error", "message": "..."} before closing on failure
    """
    await websocket.accept()
    session = LiveBeatSession(sr=settings.sample_rate)
    loop = asyncio.get_running_loop()

    try:
        while True:
            data = await websocket.receive_bytes()

            # Decode Float32 PCM; a trailing partial sample is dropped
            n_samples = len(data) // 4
            if n_samples == 0:
                continue
            chunk = np.frombuffer(data[:n_samples * 4], dtype=np.float32)

            # Keep the event loop free while the filter runs
            estimates = await loop.run_in_executor(None, session.push, chunk)
            for est in estimates:
                await websocket.send_json(PhaseMessage(
                    time=est.time,
                    phase=est.phase,
                    bpm=est.bpm,
                    confidence=est.confidence,
                ).model_dump())

    except WebSocketDisconnect:
        logger.debug(f"Live session closed after {session.frames} frames")
    except Exception as e:
        logger.exception("Live tracking failed")
        try:
            await websocket.send_json(ErrorMessage(message=str(e)).model_dump())
        except Exception:
            pass
