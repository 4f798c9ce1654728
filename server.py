"""
Pool Table Web Server — Layer 3 (FastAPI + WebSocket)

Serves the canvas frontend and runs the simulation loop, streaming draw
commands to browser clients and receiving pointer input over WebSocket.
"""

import asyncio
import json
import time
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

from controller import BilliardsController
from physics import TABLE_WIDTH, TABLE_HEIGHT, BALL_RADIUS
import physics as _phys
from render import CommandSurface, draw_frame

STATIC_DIR = Path(__file__).parent / "static"

# ── Controller ──────────────────────────────────────────────────────────────

ctrl = BilliardsController()


# ── Lifespan (startup/shutdown) ─────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    task = asyncio.create_task(game_loop())
    yield
    task.cancel()


app = FastAPI(lifespan=lifespan)

# ── Client state ────────────────────────────────────────────────────────────

clients: list[WebSocket] = []
pointer_held = {"down": False}

# ── Physics params (runtime-editable module attributes) ─────────────────────

PHYSICS_PARAMS = [
    ("FRICTION",     "Friction",     0.90, 1.0, 0.001),
    ("REST_EPSILON", "Rest Epsilon", 0.0,  1.0, 0.01),
]

PARAM_DEFAULTS = {attr: getattr(_phys, attr) for attr, *_ in PHYSICS_PARAMS}

# ── Async game loop ─────────────────────────────────────────────────────────

TARGET_FPS = 60
FRAME_DT = 1.0 / TARGET_FPS


async def game_loop():
    """Main game loop: one simulation tick per frame at ~60 fps."""
    surface = CommandSurface()

    while True:
        now = time.perf_counter()

        ctrl.step()

        if clients:
            frame_msg = _build_frame_message(surface)
            dead: list[WebSocket] = []
            for ws in clients:
                try:
                    await ws.send_text(frame_msg)
                except Exception:
                    dead.append(ws)
            for ws in dead:
                if ws in clients:
                    clients.remove(ws)

        # Sleep to maintain target FPS
        elapsed = time.perf_counter() - now
        sleep_time = FRAME_DT - elapsed
        if sleep_time > 0:
            await asyncio.sleep(sleep_time)
        else:
            await asyncio.sleep(0)


def _build_frame_message(surface: CommandSurface) -> str:
    """Serialize the current frame into a JSON message and drain event queues."""
    draw_frame(ctrl, surface)

    events = list(ctrl.pending_events)
    ctrl.pending_events.clear()

    sounds = []
    for ev in ctrl.physics_events:
        sounds.append({
            "type": ev.get("type", ""),
            "speed": round(float(ev.get("speed", 0.0)), 3),
        })

    frame = {
        "type": "frame",
        "draw": surface.commands,
        "events": events,
        "sounds": sounds,
        "mode": ctrl.mode,
        "status": ctrl.status_msg,
        "info": ctrl.info_msg,
    }
    if ctrl.aiming:
        frame["aim"] = {
            "power": round(ctrl.shot_power, 3),
            "angle": round(ctrl.shot_angle, 4),
        }
    return json.dumps(frame, separators=(',', ':'))


# ── Physics params helpers ──────────────────────────────────────────────────

def _get_params_data() -> list:
    """Return all physics params with current values."""
    result = []
    for attr, label, mn, mx, step in PHYSICS_PARAMS:
        result.append({
            "attr": attr, "label": label,
            "value": round(getattr(_phys, attr), 6),
            "min": mn, "max": mx, "step": step,
        })
    return result


# ── Client message dispatch ─────────────────────────────────────────────────

def _handle_message(msg: dict) -> dict | None:
    """Apply one client command. Returns a reply message, if the command has one."""
    if not isinstance(msg, dict):
        return None
    cmd = msg.get("cmd", "")
    if cmd in ("pointer_down", "pointer_move"):
        try:
            x, y = float(msg.get("x", 0.0)), float(msg.get("y", 0.0))
        except (TypeError, ValueError):
            print(f"[WS] bad pointer coordinates: {msg!r}")
            return None
        if cmd == "pointer_down":
            pointer_held["down"] = True
            ctrl.pointer_down(x, y)
        elif pointer_held["down"]:
            ctrl.pointer_move(x, y)
    elif cmd == "pointer_up":
        pointer_held["down"] = False
        ctrl.pointer_up()
    elif cmd == "new_rack":
        ctrl.new_rack()
    elif cmd == "execute":
        ctrl.execute_command(str(msg.get("text", "")))
    elif cmd == "get_state":
        return {"type": "state_json", "data": ctrl.get_state_json()}
    elif cmd == "get_params":
        return {"type": "params", "data": _get_params_data()}
    elif cmd == "adjust_param":
        try:
            idx = int(msg.get("index", 0))
            direction = int(msg.get("direction", 0))
        except (TypeError, ValueError):
            return None
        fine = msg.get("fine", False)
        if 0 <= idx < len(PHYSICS_PARAMS):
            attr, label, mn, mx, step = PHYSICS_PARAMS[idx]
            s = step / 10.0 if fine else step
            cur = getattr(_phys, attr)
            new_val = max(mn, min(mx, cur + direction * s))
            setattr(_phys, attr, new_val)
            return {"type": "param_update", "index": idx, "value": round(new_val, 6)}
    elif cmd == "reset_params":
        for attr, dflt in PARAM_DEFAULTS.items():
            setattr(_phys, attr, dflt)
        return {"type": "params", "data": _get_params_data()}
    return None


# ── WebSocket endpoint ──────────────────────────────────────────────────────

@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()
    clients.append(ws)
    print(f"[WS] client connected ({len(clients)} total)")

    # Send init message with table constants
    await ws.send_text(json.dumps({
        "type": "init",
        "table_width": TABLE_WIDTH,
        "table_height": TABLE_HEIGHT,
        "ball_radius": BALL_RADIUS,
        "fps": TARGET_FPS,
    }))

    try:
        while True:
            data = await ws.receive_text()
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                continue
            reply = _handle_message(msg)
            if reply is not None:
                await ws.send_text(json.dumps(reply))
    except WebSocketDisconnect:
        pass
    finally:
        if ws in clients:
            clients.remove(ws)
        if pointer_held["down"]:
            pointer_held["down"] = False
            ctrl.pointer_cancel()
        print(f"[WS] client disconnected ({len(clients)} left)")


# ── Static files + root route ───────────────────────────────────────────────

app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")


@app.get("/")
async def root():
    return FileResponse(STATIC_DIR / "index.html")


# ── Run with uvicorn ────────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("server:app", host="0.0.0.0", port=8000, reload=False)
