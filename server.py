#!/usr/bin/env python3
"""
Workout Server — FastAPI + WebSocket host for guided workout sessions.

Serves protocol/profile/history CRUD and drives one WorkoutSession at a
time, broadcasting its state to connected clients once per second.

Usage:
    python3 server.py
    # Open ws://<host>:8000/ws for live session state
"""

import asyncio
import json
import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, field_validator

from calories import CATEGORIES, estimate_calories, met_for
from models import ExerciseStep, Protocol
from name_generator import suggest_name
from session_engine import EmptyProtocol, ProtocolNotFound
from stores import HistoryStore, ProfileStore, ProtocolStore
from workout_session import UnsavedSession, WorkoutSession

logging.basicConfig(level=logging.INFO)
log = logging.getLogger("workout.server")

PORT = int(os.environ.get("WORKOUT_PORT", "8000"))


@asynccontextmanager
async def lifespan(application):
    global loop, msg_queue, protocols, profile, history, sess

    loop = asyncio.get_running_loop()
    msg_queue = asyncio.Queue(maxsize=500)
    protocols = ProtocolStore()
    profile = ProfileStore()
    history = HistoryStore()
    sess = WorkoutSession(protocols, profile, history, on_update=manager.broadcast, on_alert=_on_alert)

    broadcast_task = asyncio.create_task(broadcast_loop())
    log.info(f"Server started — listening on :{PORT}")

    yield

    # Shutdown
    broadcast_task.cancel()
    if sess.active:
        await sess.abandon("shutdown")
    log.info("Server stopped")


app = FastAPI(title="Workout Sessions", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Async bridge ---
loop: asyncio.AbstractEventLoop = None
msg_queue: asyncio.Queue = None
protocols: ProtocolStore = None
profile: ProfileStore = None
history: HistoryStore = None
sess: WorkoutSession = None


def _enqueue(msg):
    try:
        msg_queue.put_nowait(msg)
    except asyncio.QueueFull:
        try:
            msg_queue.get_nowait()
        except asyncio.QueueEmpty:
            pass
        try:
            msg_queue.put_nowait(msg)
        except asyncio.QueueFull:
            pass


def push_msg(msg):
    if loop and msg_queue:
        loop.call_soon_threadsafe(_enqueue, msg)


def _on_alert(phase):
    """Phase-change signal for clients (vibrate/beep). Never blocks."""
    push_msg({"type": "alert", "phase": phase})


# --- WebSocket manager ---


class ConnectionManager:
    def __init__(self):
        self.connections: list[WebSocket] = []

    async def connect(self, ws: WebSocket):
        await ws.accept()
        self.connections.append(ws)

    def disconnect(self, ws: WebSocket):
        if ws in self.connections:
            self.connections.remove(ws)

    async def broadcast(self, msg: dict):
        data = json.dumps(msg)
        dead = []
        for ws in self.connections:
            try:
                await ws.send_text(data)
            except Exception:
                dead.append(ws)
        for ws in dead:
            self.disconnect(ws)


manager = ConnectionManager()


async def broadcast_loop():
    while True:
        try:
            msg = await asyncio.wait_for(msg_queue.get(), timeout=0.5)
            await manager.broadcast(msg)
        except asyncio.TimeoutError:
            pass
        except Exception:
            await asyncio.sleep(0.1)


# --- Pydantic models ---


class ProtocolRequest(BaseModel):
    name: str
    category: str = "Strength"
    exercises: list[ExerciseStep] = []

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v):
        if not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @field_validator("category")
    @classmethod
    def known_category(cls, v):
        if v not in CATEGORIES:
            raise ValueError(f"category must be one of {', '.join(CATEGORIES)}")
        return v


class ProfileRequest(BaseModel):
    name: str | None = None
    date_of_birth: str | None = None
    height_cm: float | None = None
    weight_kg: float | None = None
    city: str | None = None
    area: str | None = None
    avatar_url: str | None = None


class StartRequest(BaseModel):
    protocol_id: str


class SaveRequest(BaseModel):
    name: str | None = None


def _not_found(what):
    return JSONResponse({"ok": False, "error": f"{what} not found"}, status_code=404)


# --- Protocol endpoints ---


@app.get("/api/protocols")
async def api_list_protocols():
    return [p.model_dump() for p in protocols.list()]


@app.post("/api/protocols")
async def api_create_protocol(req: ProtocolRequest):
    protocol = protocols.save(Protocol(name=req.name, category=req.category, exercises=req.exercises))
    return JSONResponse(protocol.model_dump(), status_code=201)


@app.get("/api/protocols/{protocol_id}")
async def api_get_protocol(protocol_id: str):
    protocol = protocols.get(protocol_id)
    if not protocol:
        return _not_found("Protocol")
    return protocol.model_dump()


@app.put("/api/protocols/{protocol_id}")
async def api_update_protocol(protocol_id: str, req: ProtocolRequest):
    existing = protocols.get(protocol_id)
    if not existing:
        return _not_found("Protocol")
    updated = existing.model_copy(update={"name": req.name, "category": req.category, "exercises": req.exercises})
    return protocols.save(updated).model_dump()


@app.delete("/api/protocols/{protocol_id}")
async def api_delete_protocol(protocol_id: str):
    if not protocols.delete(protocol_id):
        return _not_found("Protocol")
    return {"ok": True}


# --- Profile endpoints ---


@app.get("/api/profile")
async def api_get_profile():
    current = profile.get()
    return current.model_dump() if current else {}


@app.post("/api/profile")
async def api_update_profile(req: ProfileRequest):
    try:
        updated = profile.update(req.model_dump())
    except ValueError as e:
        return JSONResponse({"ok": False, "error": str(e)}, status_code=400)
    return updated.model_dump()


# --- History endpoints ---


@app.get("/api/history")
async def api_list_history():
    return history.list()


@app.get("/api/history/{entry_id}")
async def api_get_history(entry_id: str):
    entry = history.get(entry_id)
    if not entry:
        return _not_found("Log")
    return entry


@app.delete("/api/history/{entry_id}")
async def api_delete_history(entry_id: str):
    if not history.delete(entry_id):
        return _not_found("Log")
    return {"ok": True}


# --- Guided workout endpoints ---


@app.get("/api/workout")
async def api_get_workout():
    return sess.to_dict()


@app.post("/api/workout/start")
async def api_start_workout(req: StartRequest):
    try:
        await sess.start(req.protocol_id)
    except ProtocolNotFound as e:
        return JSONResponse({"ok": False, "error": str(e)}, status_code=404)
    except EmptyProtocol as e:
        return JSONResponse({"ok": False, "error": str(e)}, status_code=400)
    except UnsavedSession as e:
        return JSONResponse({"ok": False, "error": str(e)}, status_code=409)
    return sess.to_dict()


@app.post("/api/workout/next")
async def api_next_step():
    await sess.next()
    return sess.to_dict()


@app.post("/api/workout/skip")
async def api_skip_step():
    await sess.skip()
    return sess.to_dict()


@app.post("/api/workout/pause")
async def api_pause_workout():
    await sess.toggle_pause()
    return sess.to_dict()


@app.post("/api/workout/abandon")
async def api_abandon_workout():
    await sess.abandon()
    return sess.to_dict()


@app.post("/api/workout/save")
async def api_save_workout(req: SaveRequest):
    result = await sess.save(req.name)
    if not result["ok"]:
        log.warning(f"Workout save failed: {result['error']}")
    return result


@app.post("/api/workout/discard")
async def api_discard_workout():
    await sess.discard()
    return sess.to_dict()


@app.get("/api/names/suggest")
async def api_suggest_name(kind: str = "Protocol"):
    return {"name": suggest_name(kind)}


@app.get("/api/calories/estimate")
async def api_estimate_calories(category: str, seconds: float, weight_kg: float | None = None):
    if weight_kg is None:
        weight_kg = profile.weight_kg()
    return {
        "category": category,
        "met": met_for(category),
        "calories": estimate_calories(category, seconds, weight_kg),
    }


# --- WebSocket endpoint ---


@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await manager.connect(ws)
    try:
        await ws.send_text(json.dumps(sess.to_dict()))
    except Exception:
        pass
    try:
        while True:
            await ws.receive_text()
    except WebSocketDisconnect:
        manager.disconnect(ws)
    except Exception:
        manager.disconnect(ws)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=PORT)
