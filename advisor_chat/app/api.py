from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import FastAPI, File, HTTPException, Query, UploadFile
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from advisor_chat.app.settings import AppSettings
from advisor_chat.app.wiring import build_bundle, debug_meta
from advisor_chat.domain.advised import CONVERSATION_ID_KEY
from advisor_chat.domain.errors import CollaboratorError, ConfigurationError
from advisor_chat.use_cases.chat_client import ChatClientRequest

logging.basicConfig(level=logging.INFO, format="%(message)s")
log = logging.getLogger("advisor_chat")

app = FastAPI(title="advisor_chat")
settings = AppSettings.from_env()

UPLOADS_DIR = Path("./uploads")
ALLOWED_EXTS = {".txt", ".md", ".pdf"}


class ChatRequest(BaseModel):
    conversation_id: str = "default"
    message: str
    system: Optional[str] = None
    params: Dict[str, Any] = Field(default_factory=dict)


class ChatReply(BaseModel):
    answer: str
    meta: Dict[str, Any]


def _prepare(req: ChatRequest) -> ChatClientRequest:
    bundle = build_bundle(settings)
    prompt = bundle.client.prompt().user(req.message).advisors(
        lambda a: a.params(req.params).param(CONVERSATION_ID_KEY, req.conversation_id)
    )
    if req.system is not None:
        prompt.system(req.system)
    return prompt


@app.get("/health")
def health():
    return {"ok": True}


@app.post("/chat", response_model=ChatReply)
def chat(req: ChatRequest):
    try:
        out = _prepare(req).call()
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except CollaboratorError as e:
        raise HTTPException(status_code=502, detail=str(e))

    meta = debug_meta(out.request, out.context)
    meta["usage"] = dict(out.response.usage)
    log.info(json.dumps({"event": "chat", **meta}, ensure_ascii=False))
    return ChatReply(answer=out.content(), meta=meta)


@app.post("/chat/stream")
def chat_stream(req: ChatRequest):
    # ошибки запросной части ловим здесь, до начала ответа
    try:
        resp = _prepare(req).stream()
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except CollaboratorError as e:
        raise HTTPException(status_code=502, detail=str(e))

    log.info(json.dumps({"event": "chat_stream", "conversation_id": req.conversation_id}, ensure_ascii=False))
    return StreamingResponse(resp.content(), media_type="text/plain; charset=utf-8")


@app.get("/memory/{cid}")
def get_memory(cid: str):
    bundle = build_bundle(settings)
    return [
        {
            "id": m.id,
            "role": m.role,
            "content": m.content,
            "created_at": m.created_at.isoformat(),
        }
        for m in bundle.chat_memory.get(cid)
    ]


@app.delete("/memory/{cid}")
def clear_memory(cid: str):
    bundle = build_bundle(settings)
    bundle.chat_memory.clear(cid)
    return {"cleared": True}


@app.post("/documents/upload")
async def upload_document(
    replace: bool = Query(default=True),
    file: UploadFile = File(...),
):
    if not file.filename:
        raise HTTPException(status_code=400, detail="Empty filename")

    safe_name = Path(file.filename).name
    ext = Path(safe_name).suffix.lower()
    if ext not in ALLOWED_EXTS:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported file type: {ext}. Allowed: {sorted(ALLOWED_EXTS)}",
        )

    UPLOADS_DIR.mkdir(parents=True, exist_ok=True)
    dst = UPLOADS_DIR / safe_name

    try:
        data = await file.read()
        dst.write_bytes(data)
    except OSError as e:
        raise HTTPException(status_code=500, detail=f"Failed to save file: {e}")

    bundle = build_bundle(settings)

    if replace:
        bundle.rag_store.delete_by_source(str(dst))

    try:
        n = bundle.indexer.ingest_paths([str(dst)])
    except (ValueError, RuntimeError) as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"stored_as": str(dst), "ingested_chunks": n, "store_size": bundle.rag_store.count()}
