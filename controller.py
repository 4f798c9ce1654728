"""
BilliardsController — Layer 2 (Game Logic)

Owns the ball collection, aim state and pocket policy.
Communicates with Layer 3 (server.py / main.py) via two queues:
  - pending_events  : notifications and table changes (notify, rack_reset, …)
  - physics_events  : collision events of the last tick, for sounds

Layer 3 calls:
  ctrl.pointer_down(x, y) / pointer_move(x, y) / pointer_up()
                              — enqueue input; applied at the start of the next step
  ctrl.step()                 — run one tick of the pipeline
  ctrl.pending_events         — list of dicts to consume and act on
  ctrl.<state properties>     — read-only references to balls, mode, aim, …
"""

import math
import json
import numpy as np

from physics import PhysicsEngine, Ball, Table, distance
import physics as _phys
from rack import create_rack, break_position, EIGHT_BALL_RANK


# ── Default info-bar message ───────────────────────────────────────────────────
DEFAULT_INFO_MSG = "Drag away from the cue ball and release to shoot.  [N] New rack"


class BilliardsController:
    """Layer 2: aim state machine + physics orchestration."""

    # ── Class-level constants ─────────────────────────────────────────────────
    MAX_SHOT_POWER  = 200.0   # pointer distance clamp
    MAX_SHOT_SPEED  = 15.0    # cue velocity at full power
    AIM_LINE_GAP    = 5.0
    AIM_LINE_SCALE  = 0.8
    AIM_LINE_WIDTH  = 4

    GAME_OVER_MSG = "Game over! The 8-ball was pocketed."
    SCRATCH_MSG   = "Scratch! The cue ball has been re-spotted behind the head string."

    # ── Constructor ───────────────────────────────────────────────────────────

    def __init__(self, table: Table | None = None):
        # Physics
        self.table  = table if table is not None else Table.standard()
        self.engine = PhysicsEngine(self.table)
        self.balls: list[Ball] = create_rack(self.table)

        self.mode = "idle"   # "idle"|"aiming"|"running"

        # Aiming
        self.aiming      = False
        self.pointer_pos = np.array([0.0, 0.0])
        self.shot_power  = 0.0
        self.shot_angle  = 0.0

        # Input intents, consumed at the start of step()
        self.pending_input: list[tuple] = []

        # Status / info messages (L3 reads these to update text)
        self.status_msg = ""
        self.info_msg   = DEFAULT_INFO_MSG

        # Event queues
        self.pending_events: list[dict] = []   # notifications, table changes
        self.physics_events: list[dict] = []   # collision sounds

    # ──────────────────────────────────────────────────────────────────────────
    # Ball lookups
    # ──────────────────────────────────────────────────────────────────────────

    @property
    def cue_ball(self) -> Ball | None:
        """Resolved from the collection on every access; never cached."""
        return next((b for b in self.balls if b.is_cue), None)

    def find_ball(self, name: str) -> Ball | None:
        return next((b for b in self.balls if b.name == name), None)

    def any_moving(self) -> bool:
        return any(b.is_moving() for b in self.balls)

    # ──────────────────────────────────────────────────────────────────────────
    # Pointer input (enqueue only)
    # ──────────────────────────────────────────────────────────────────────────

    def pointer_down(self, x: float, y: float) -> None:
        self.pending_input.append(("down", (float(x), float(y))))

    def pointer_move(self, x: float, y: float) -> None:
        self.pending_input.append(("move", (float(x), float(y))))

    def pointer_up(self) -> None:
        self.pending_input.append(("up", None))

    def pointer_cancel(self) -> None:
        """Drop an in-progress aim without shooting."""
        self.pending_input.append(("cancel", None))

    def _consume_input(self) -> None:
        intents, self.pending_input = self.pending_input, []
        for kind, pos in intents:
            if kind == "down":
                self._begin_aim(pos)
            elif kind == "move":
                if self.aiming:
                    self.pointer_pos = np.array(pos)
                    self._update_aim()
            elif kind == "up":
                if self.aiming:
                    self._release_shot()
            elif kind == "cancel":
                self._reset_aim()

    # ──────────────────────────────────────────────────────────────────────────
    # Aim state machine
    # ──────────────────────────────────────────────────────────────────────────

    def _begin_aim(self, pos) -> bool:
        """Idle → Aiming, refused while anything on the table is moving."""
        if self.aiming or self.any_moving() or self.cue_ball is None:
            return False
        self.aiming      = True
        self.mode        = "aiming"
        self.pointer_pos = np.array(pos)
        self._update_aim()
        return True

    def _update_aim(self) -> None:
        cue = self.cue_ball
        if cue is None:
            return
        dx, dy = self.pointer_pos - cue.position
        self.shot_power = min(distance(cue.position, self.pointer_pos), self.MAX_SHOT_POWER)
        self.shot_angle = math.atan2(dy, dx)

    def _release_shot(self) -> None:
        """Aiming → Released → Idle: strike away from the pointer."""
        if self.any_moving():
            self._reset_aim()
            return
        self._update_aim()
        self.strike(self.shot_angle + math.pi, self.shot_power)
        self._reset_aim()

    def _reset_aim(self) -> None:
        self.aiming     = False
        self.shot_power = 0.0
        self.shot_angle = 0.0
        if self.mode == "aiming":
            self.mode = "idle"

    def strike(self, angle: float, power: float) -> None:
        """Give the cue ball a velocity along `angle` (radians) scaled by power."""
        cue = self.cue_ball
        if cue is None:
            return
        power = max(0.0, min(power, self.MAX_SHOT_POWER))
        speed = min(power / self.MAX_SHOT_POWER * self.MAX_SHOT_SPEED, self.MAX_SHOT_SPEED)
        cue.velocity = np.array([math.cos(angle), math.sin(angle)]) * speed
        if cue.is_moving():
            self.mode = "running"
            self.status_msg = "Running..."
            self.pending_events.append({"type": "shot", "speed": cue.speed})

    def aim_line(self):
        """(start, end, alpha) of the aim indicator, or None when not aiming."""
        cue = self.cue_ball
        if not self.aiming or cue is None:
            return None
        direction = np.array([math.cos(self.shot_angle + math.pi),
                              math.sin(self.shot_angle + math.pi)])
        start = cue.position + direction * (cue.radius + self.AIM_LINE_GAP)
        end   = start + direction * self.shot_power * self.AIM_LINE_SCALE
        return start, end, self.shot_power / self.MAX_SHOT_POWER

    # ──────────────────────────────────────────────────────────────────────────
    # Main loop
    # ──────────────────────────────────────────────────────────────────────────

    def step(self) -> None:
        """Advance one fixed tick. Called once per display refresh by L3."""
        self._consume_input()

        self.engine.advance(self.balls)
        if self._resolve_pockets():
            self.physics_events.clear()
            return
        self.engine.collide(self.balls)
        self.physics_events = list(self.engine.events)

        if self.aiming:
            self._update_aim()

        if self.mode == "running" and not self.any_moving():
            self.mode = "idle"
            self.status_msg = "Stopped. Drag from the cue ball to shoot."
            self.pending_events.append({"type": "stopped"})

    def _resolve_pockets(self) -> bool:
        """Capture policy for this tick. Returns True if the tick must stop here."""
        captured = self.engine.find_captures(self.balls)
        if not captured:
            return False

        if any(b.rank == EIGHT_BALL_RANK and not b.is_cue for b in captured):
            print("[POCKET] 8-ball captured, racking again")
            self._notify(self.GAME_OVER_MSG)
            self.new_rack()
            return True

        scratched = any(b.is_cue for b in captured)
        removed = [b for b in captured if not b.is_cue]
        if removed:
            self.balls = [b for b in self.balls if b not in removed]
            for b in removed:
                print(f"[POCKET] {b.name} captured")
                self.pending_events.append({"type": "ball_pocketed", "ball": b.name, "rank": b.rank})

        if scratched:
            cue = self.cue_ball
            cue.position = break_position(self.table)
            cue.velocity[:] = 0.0
            print("[POCKET] scratch, cue ball re-spotted")
            self.pending_events.append({"type": "cue_respotted"})
            self._notify(self.SCRATCH_MSG)
        return False

    def _notify(self, message: str) -> None:
        self.status_msg = message
        self.pending_events.append({"type": "notify", "message": message})

    # ──────────────────────────────────────────────────────────────────────────
    # Rack management
    # ──────────────────────────────────────────────────────────────────────────

    def new_rack(self) -> None:
        """Replace the whole population with a fresh rack and return to Idle."""
        self.balls = create_rack(self.table)
        self.pending_input.clear()
        self._reset_aim()
        self.mode = "idle"
        self.pointer_pos = np.array([0.0, 0.0])
        print(f"[RACK] new rack: {len(self.balls)} balls")
        self.pending_events.append({"type": "rack_reset"})

    # ──────────────────────────────────────────────────────────────────────────
    # Debug command interface
    # ──────────────────────────────────────────────────────────────────────────

    def get_state_json(self) -> str:
        """Return current ball state as compact single-line set-command JSON."""
        balls = {}
        for b in self.balls:
            balls[b.name] = {
                "pos": [round(float(b.position[0]), 4), round(float(b.position[1]), 4)],
                "vel": [round(float(b.velocity[0]), 4), round(float(b.velocity[1]), 4)],
            }
        return json.dumps({"cmd": "set", "balls": balls}, separators=(',', ':'))

    def execute_command(self, text: str) -> None:
        """Parse a JSON command string and dispatch to handlers."""
        if not text:
            print("[CMD] execute_command: empty text")
            return
        try:
            data = json.loads(text.replace('\r', ''))
        except json.JSONDecodeError as exc:
            print(f"[CMD] JSON parse error: {exc}")
            self.status_msg = f"JSON error: {exc}"
            return
        if not isinstance(data, dict):
            print(f"[CMD] expected a JSON object, got {type(data).__name__}")
            self.status_msg = "JSON error: expected an object like {\"cmd\": ...}"
            return
        cmd = str(data.get("cmd", "")).lower().strip()
        print(f"[CMD] cmd={cmd}")
        if cmd == "set":
            self._cmd_set(data)
        elif cmd == "rack":
            self.new_rack()
        else:
            self.status_msg = f"Unknown cmd '{cmd}'. Use set/rack."

    def _cmd_set(self, data: dict) -> None:
        """set: update ball positions/velocities and/or physics params."""
        params = data.get("params") or {}
        balls_data = data.get("balls") or {}
        if not isinstance(params, dict) or not isinstance(balls_data, dict):
            self.status_msg = "set: \"params\" and \"balls\" must be objects"
            return
        new_params = {}
        for k, v in params.items():
            if k not in ("FRICTION", "REST_EPSILON"):
                print(f"[CMD] unknown param {k}")
                continue
            try:
                new_params[k] = float(v)
            except (TypeError, ValueError):
                self.status_msg = f"set: param {k} must be a number"
                return
        if balls_data:
            try:
                self.set_balls(balls_data)
            except ValueError as exc:
                self.status_msg = str(exc)
                return
        for k, v in new_params.items():
            setattr(_phys, k, v)
        self.status_msg = "State updated."

    def set_balls(self, balls_info: dict) -> "BilliardsController":
        """Update positions/velocities of balls already on the table.

        Accepts the ``get_state_json`` ``balls`` sub-dict::

            ctrl.set_balls({
                "cue": {"pos": [450, 225], "vel": [3.0, 0.0]},
                "8":   {"pos": [880, 20]},
            })

        Every entry is checked before any ball changes; a bad entry raises
        ``ValueError`` and leaves the table untouched.

        Returns:
            ``self`` for chaining.
        """
        updates = []
        for name, bd in balls_info.items():
            ball = self.find_ball(name)
            if ball is None:
                raise ValueError(f"set_balls: ball '{name}' not on the table")
            try:
                pos = bd.get("pos")
                if pos is not None:
                    pos = np.array([float(pos[0]), float(pos[1])])
                vel = bd.get("vel", [0.0, 0.0])
                vel = np.array([float(vel[0]), float(vel[1])])
            except (AttributeError, IndexError, TypeError, ValueError) as exc:
                raise ValueError(f"set_balls: bad entry for '{name}': {exc}") from exc
            updates.append((ball, pos, vel))

        for ball, pos, vel in updates:
            if pos is not None:
                ball.position = pos
            ball.velocity = vel

        if self.any_moving():
            # A shot may not be released once the table is in motion
            if self.aiming:
                self._reset_aim()
            if self.mode == "idle":
                self.mode = "running"
        return self

    # ──────────────────────────────────────────────────────────────────────────
    # Headless shot
    # ──────────────────────────────────────────────────────────────────────────

    def simulate_shot(self, angle_deg: float, power: float, max_ticks: int = 10000) -> dict:
        """Strike the cue ball and step until the table is at rest.

        Args:
            angle_deg: Travel direction in degrees (0 = +x, 90 = +y / down the screen).
            power: Shot power in pointer units, clamped to ``MAX_SHOT_POWER``.
            max_ticks: Safety cap on simulated ticks.

        Returns:
            dict with ``ticks``, ``pocketed`` (names in capture order),
            ``scratched``, ``rack_reset`` and ``balls`` (name → pos/vel).
        """
        if self.any_moving():
            raise ValueError("simulate_shot: balls are still moving")
        if self.cue_ball is None:
            raise ValueError("simulate_shot: no cue ball on the table")

        start = len(self.pending_events)
        self.strike(math.radians(angle_deg), power)

        ticks = 0
        while ticks < max_ticks:
            self.step()
            ticks += 1
            if not self.any_moving():
                break

        events = self.pending_events[start:]
        return {
            "ticks":      ticks,
            "pocketed":   [e["ball"] for e in events if e["type"] == "ball_pocketed"],
            "scratched":  any(e["type"] == "cue_respotted" for e in events),
            "rack_reset": any(e["type"] == "rack_reset" for e in events),
            "balls":      json.loads(self.get_state_json())["balls"],
        }
