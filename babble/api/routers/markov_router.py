"""
Markov Router
Train, sample and inspect in-memory Markov text models
"""

import asyncio
from dataclasses import dataclass, field
from typing import Dict, Literal, Optional, Tuple

from fastapi import APIRouter, File, Form, HTTPException, UploadFile
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool

from babble.config import settings
from babble.services.errors import NotTrained
from babble.services.markov import MarkovModel, train_from_text
from babble.utils.logger import log_info, log_warning, setup_logger

logger = setup_logger(__name__)

router = APIRouter(prefix="/markov", tags=["Markov"])


@dataclass
class ModelEntry:
    """A registered model plus the lock that serializes calls on it."""
    model: MarkovModel
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


# In-memory model cache, discarded on shutdown
MODEL_CACHE: Dict[str, ModelEntry] = {}


class TrainRequest(BaseModel):
    text: str
    order: int = Field(default=settings.DEFAULT_ORDER, ge=1, le=settings.MAX_ORDER)
    mode: Literal["char", "word"] = settings.DEFAULT_MODE
    model_name: str = Field(default="default", min_length=1, max_length=64)


class GenerateRequest(BaseModel):
    model_name: str = Field(default="default", min_length=1, max_length=64)
    length: int = Field(default=settings.DEFAULT_LENGTH, ge=0, le=settings.MAX_GENERATE_LENGTH)
    mode: Literal["char", "word"] = settings.DEFAULT_MODE
    temperature: float = Field(
        default=settings.DEFAULT_TEMPERATURE, ge=0.0, le=settings.MAX_TEMPERATURE
    )
    # Used to train first when the model is missing or untrained
    text: Optional[str] = None
    order: int = Field(default=settings.DEFAULT_ORDER, ge=1, le=settings.MAX_ORDER)


def _get_entry(name: str) -> ModelEntry:
    entry = MODEL_CACHE.get(name)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"model '{name}' not found, train first")
    return entry


def _reserve_entry(name: str, order: int) -> Tuple[ModelEntry, bool]:
    """
    Fetch the entry for `name`, registering an untrained placeholder if absent.

    Nothing here awaits, so the capacity check and the insert run as one
    step on the event loop and concurrent requests share a single entry.
    """
    entry = MODEL_CACHE.get(name)
    if entry is not None:
        return entry, False
    if len(MODEL_CACHE) >= settings.MAX_MODELS:
        raise HTTPException(
            status_code=429,
            detail=f"model limit reached ({settings.MAX_MODELS}), delete a model first",
        )
    entry = ModelEntry(model=MarkovModel(order))
    MODEL_CACHE[name] = entry
    return entry, True


def _discard_placeholder(name: str, entry: ModelEntry):
    if MODEL_CACHE.get(name) is entry and not entry.model.is_trained:
        MODEL_CACHE.pop(name)


async def _train(name: str, text: str, order: int, mode: str) -> ModelEntry:
    """
    Train a fresh model off the event loop and swap it into the entry.

    The previous model stays registered if training fails or times out;
    a placeholder registered by this call is dropped again.
    """
    entry, created = _reserve_entry(name, order)

    async with entry.lock:
        try:
            model = await asyncio.wait_for(
                run_in_threadpool(train_from_text, text, order, mode),
                timeout=settings.TRAINING_TIMEOUT,
            )
        except asyncio.TimeoutError:
            if created:
                _discard_placeholder(name, entry)
            log_warning(f"[MARKOV] training '{name}' timed out", timeout=settings.TRAINING_TIMEOUT)
            raise HTTPException(status_code=504, detail="training timed out")
        except Exception:
            if created:
                _discard_placeholder(name, entry)
            raise

        entry.model = model
        # a failed request for the same name may have dropped the placeholder meanwhile
        MODEL_CACHE.setdefault(name, entry)

    log_info(
        f"[MARKOV] model '{name}' ready",
        model=name, order=order, mode=mode, **model.get_stats().to_dict(),
    )
    return entry


def _train_response(name: str, model: MarkovModel, mode: str) -> dict:
    return {
        "ok": True,
        "data": {
            "model": name,
            "order": model.order,
            "mode": mode,
            "stats": model.get_stats().to_dict(),
        },
    }


@router.post("/train")
async def train(req: TrainRequest):
    entry = await _train(req.model_name, req.text, req.order, req.mode)
    return _train_response(req.model_name, entry.model, req.mode)


@router.post("/train/upload")
async def train_upload(
    file: UploadFile = File(...),
    order: int = Form(settings.DEFAULT_ORDER, ge=1, le=settings.MAX_ORDER),
    mode: Literal["char", "word"] = Form(settings.DEFAULT_MODE),
    model_name: str = Form("default", min_length=1, max_length=64),
):
    """Train from an uploaded UTF-8 .txt file."""
    if file.filename and not file.filename.lower().endswith(".txt"):
        raise HTTPException(status_code=400, detail="only .txt files are accepted")

    raw = await file.read(settings.MAX_UPLOAD_BYTES + 1)
    if len(raw) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"file exceeds {settings.MAX_UPLOAD_BYTES} bytes",
        )
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="file is not valid UTF-8 text")

    entry = await _train(model_name, text, order, mode)
    return _train_response(model_name, entry.model, mode)


@router.post("/generate")
async def generate(req: GenerateRequest):
    entry = MODEL_CACHE.get(req.model_name)
    if entry is None or not entry.model.is_trained:
        if not req.text:
            if entry is None:
                raise HTTPException(
                    status_code=404,
                    detail=f"model '{req.model_name}' not found, train first",
                )
            raise NotTrained(f"model '{req.model_name}' is not trained, train first")
        entry = await _train(req.model_name, req.text, req.order, req.mode)

    async with entry.lock:
        model = entry.model
        try:
            text = await asyncio.wait_for(
                run_in_threadpool(model.generate, req.length, req.mode, req.temperature),
                timeout=settings.GENERATION_TIMEOUT,
            )
        except asyncio.TimeoutError:
            log_warning(
                f"[MARKOV] generation from '{req.model_name}' timed out",
                timeout=settings.GENERATION_TIMEOUT,
            )
            raise HTTPException(status_code=504, detail="generation timed out")

    return {
        "ok": True,
        "data": {
            "text": text,
            "model": req.model_name,
            "order": model.order,
            "stats": model.get_stats().to_dict(),
        },
    }


@router.get("/models")
async def list_models():
    return {
        "ok": True,
        "data": {
            "models": [
                {"name": name, "order": entry.model.order, **entry.model.get_stats().to_dict()}
                for name, entry in MODEL_CACHE.items()
            ]
        },
    }


@router.get("/models/{name}/stats")
async def model_stats(name: str):
    entry = _get_entry(name)
    return {
        "ok": True,
        "data": {
            "model": name,
            "order": entry.model.order,
            "trained": entry.model.is_trained,
            "stats": entry.model.get_stats().to_dict(),
        },
    }


@router.post("/models/{name}/clear")
async def clear_model(name: str):
    entry = _get_entry(name)
    async with entry.lock:
        entry.model.clear()
    logger.info(f"[MARKOV] model '{name}' cleared")
    return {"ok": True, "data": {"model": name, "stats": entry.model.get_stats().to_dict()}}


@router.delete("/models/{name}")
async def delete_model(name: str):
    entry = _get_entry(name)
    async with entry.lock:
        MODEL_CACHE.pop(name, None)
    logger.info(f"[MARKOV] model '{name}' deleted")
    return {"ok": True, "data": {"model": name, "deleted": True}}
