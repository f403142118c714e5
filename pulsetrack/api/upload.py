"""File upload endpoint for offline beat tracking."""

import logging
import os
import tempfile

import numpy as np
from fastapi import APIRouter, File, HTTPException, Query, UploadFile

from pulsetrack.analysis.engine import AnalysisEngine
from pulsetrack.analysis.models import AnalysisResult
from pulsetrack.analysis.novelty import NOVELTY_METHODS
from pulsetrack.api.schemas import AnalysisResponse, BeatResponse, TempoResponse
from pulsetrack.config import settings
from pulsetrack.errors import PulsetrackError

logger = logging.getLogger(__name__)

router = APIRouter()

ALLOWED_EXTENSIONS = {".wav", ".mp3", ".flac", ".ogg", ".m4a", ".aac", ".wma"}


def result_to_response(result: AnalysisResult) -> AnalysisResponse:
    """Convert AnalysisResult to the API model."""
    # JSON has no infinity; onsets out of digital silence are capped
    novelty = np.nan_to_num(result.novelty, posinf=np.finfo(np.float32).max)
    return AnalysisResponse(
        beats=[
            BeatResponse(frame=b.frame, time=b.time, strength=b.strength)
            for b in result.beats
        ],
        tempo=TempoResponse(
            bpm=result.tempo.bpm,
            confidence=result.tempo.confidence,
            method=result.tempo.method,
        ) if result.tempo else None,
        novelty=novelty.tolist(),
        frame_rate=result.frame_rate,
        duration=result.duration,
        method=result.method,
    )


@router.post("/analyze", response_model=AnalysisResponse)
async def analyze_file(
    file: UploadFile = File(...),
    method: str | None = Query(None),
    tempo: float | None = Query(None, gt=0),
    alpha: float | None = Query(None, ge=0),
):
    """Track beats in an uploaded audio file."""
    if method is not None and method not in NOVELTY_METHODS:
        raise HTTPException(400, f"Unknown method. Use: {', '.join(NOVELTY_METHODS)}")

    suffix = ""
    if file.filename and "." in file.filename:
        suffix = "." + file.filename.rsplit(".", 1)[-1].lower()
        if suffix not in ALLOWED_EXTENSIONS:
            raise HTTPException(400, f"Unsupported format. Use: {', '.join(sorted(ALLOWED_EXTENSIONS))}")

    content = await file.read()
    if len(content) > settings.max_upload_mb * 1024 * 1024:
        raise HTTPException(400, f"File too large (max {settings.max_upload_mb} MB)")

    tmp_path = None
    try:
        # librosa needs a file path for some formats
        with tempfile.NamedTemporaryFile(suffix=suffix, delete=False) as tmp:
            tmp.write(content)
            tmp_path = tmp.name

        engine = AnalysisEngine()
        result = engine.analyze_file(tmp_path, method=method, tempo=tempo, alpha=alpha)
        return result_to_response(result)
    except PulsetrackError as e:
        raise HTTPException(400, str(e))
    except Exception:
        logger.exception("Analysis failed")
        raise HTTPException(500, "Analysis failed")
    finally:
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
