"""
2D Pool Table Visualizer (3-Tier Architecture)
Layer 3: Ursina rendering / input handling.
Layer 2: controller.py (BilliardsController)
Layer 1: physics.py (PhysicsEngine)

Left-drag away from the cue ball and release to shoot. N racks again.
"""

from ursina import (
    Ursina, Entity, Text, Mesh, Vec3, camera, color, mouse, scene,
    time as ursina_time,
)

from physics import TABLE_WIDTH, TABLE_HEIGHT
from controller import BilliardsController, DEFAULT_INFO_MSG
from render import FELT_COLOR, draw_frame

# ── Layer 2: controller instance ──────────────────────────────────────────────
ctrl = BilliardsController()

HW = TABLE_WIDTH / 2
HH = TABLE_HEIGHT / 2
LABEL_SCALE = 320       # Text.size (0.025) * scale ≈ 8 table units
DRAW_DEPTH_STEP = 0.01  # later draw calls sit closer to the camera


def _to_world(x, y, order=0):
    """Table coords (origin top-left, y down) → world coords (origin centre, y up)."""
    return Vec3(x - HW, HH - y, -order * DRAW_DEPTH_STEP)


def _to_color(name, alpha=1.0):
    c = color.hex(name) if name.startswith("#") else getattr(color, name)
    return color.rgba(c[0], c[1], c[2], alpha)


class UrsinaSurface:
    """Render surface backed by pooled entities; clear() hides everything."""

    def __init__(self):
        self.circles: list[Entity] = []
        self.labels:  list[Text]   = []
        self.line_entity = Entity(enabled=False)
        self._n_circles = 0
        self._n_labels  = 0
        self._order     = 0

    def clear(self, width, height):
        for e in self.circles:
            e.enabled = False
        for t in self.labels:
            t.enabled = False
        self.line_entity.enabled = False
        self._n_circles = self._n_labels = self._order = 0

    def circle(self, center, radius, fill):
        if self._n_circles == len(self.circles):
            self.circles.append(Entity(model="circle"))
        ent = self.circles[self._n_circles]
        self._n_circles += 1
        self._order += 1
        ent.position = _to_world(center[0], center[1], self._order)
        ent.scale    = (radius * 2, radius * 2)
        ent.color    = _to_color(fill)
        ent.enabled  = True

    def label(self, center, text, fill):
        if self._n_labels == len(self.labels):
            self.labels.append(Text(parent=scene, scale=LABEL_SCALE, origin=(0, 0)))
        t = self.labels[self._n_labels]
        self._n_labels += 1
        self._order += 1
        t.position = _to_world(center[0], center[1], self._order)
        t.text     = text
        t.color    = _to_color(fill)
        t.enabled  = True

    def line(self, start, end, stroke, alpha, width):
        self._order += 1
        self.line_entity.model = Mesh(
            vertices=[_to_world(start[0], start[1], self._order),
                      _to_world(end[0], end[1], self._order)],
            mode="line", thickness=width,
        )
        self.line_entity.color   = _to_color(stroke, alpha)
        self.line_entity.enabled = True


# ──────────────────────────────────────────
# Ursina App
# ──────────────────────────────────────────

app = Ursina(borderless=False, title="Pool Table", size=(1100, 640))

camera.orthographic = True
camera.fov = TABLE_HEIGHT + 120

table_surface = Entity(
    model="quad",
    color=_to_color(FELT_COLOR),
    scale=(TABLE_WIDTH, TABLE_HEIGHT),
    position=(0, 0, 1),
)

RAIL = 18
for pos, scl in [
    ((0,  HH + RAIL / 2, 1), (TABLE_WIDTH + RAIL * 2, RAIL)),
    ((0, -HH - RAIL / 2, 1), (TABLE_WIDTH + RAIL * 2, RAIL)),
    (( HW + RAIL / 2, 0, 1), (RAIL, TABLE_HEIGHT)),
    ((-HW - RAIL / 2, 0, 1), (RAIL, TABLE_HEIGHT)),
]:
    Entity(model="quad", color=color.hsv(25, 0.6, 0.35), position=pos, scale=scl)

surface = UrsinaSurface()

# ── UI ────────────────────────────────────────────────────────────────────────
info_text = Text(
    text=DEFAULT_INFO_MSG,
    position=(-0.7, 0.47),
    scale=1.0,
    color=color.white,
)

status_text = Text(
    text="",
    position=(-0.7, -0.43),
    scale=1.0,
    color=color.light_gray,
)

result_text = Text(text="", position=(0, 0.1), origin=(0, 0), scale=2.0,
                   color=color.yellow)
result_text_timer: float = 0.0
RESULT_DISPLAY_TIME: float = 2.5

mouse_held = False


def _mouse_table_pos():
    """UI-space mouse → table coords (orthographic: world = ui * fov)."""
    wx = mouse.position[0] * camera.fov + camera.x
    wy = mouse.position[1] * camera.fov + camera.y
    return wx + HW, HH - wy


def _consume_events():
    global result_text_timer
    for ev in ctrl.pending_events:
        if ev["type"] == "notify":
            result_text.text = ev["message"]
            result_text_timer = RESULT_DISPLAY_TIME
    ctrl.pending_events.clear()


# ──────────────────────────────────────────
# Per-frame update
# ──────────────────────────────────────────

def update():
    global result_text_timer
    if mouse_held:
        ctrl.pointer_move(*_mouse_table_pos())

    ctrl.step()
    _consume_events()
    draw_frame(ctrl, surface)

    if result_text_timer > 0:
        result_text_timer -= ursina_time.dt
        if result_text_timer <= 0:
            result_text.text = ""

    status_text.text = ctrl.status_msg
    info_text.text   = ctrl.info_msg


# ──────────────────────────────────────────
# Input handler
# ──────────────────────────────────────────

def input(key):
    global mouse_held
    if key == "left mouse down":
        mouse_held = True
        ctrl.pointer_down(*_mouse_table_pos())
    elif key == "left mouse up":
        if mouse_held:
            mouse_held = False
            ctrl.pointer_up()
    elif key == "n":
        mouse_held = False
        ctrl.new_rack()


# ──────────────────────────────────────────
# Run
# ──────────────────────────────────────────

if __name__ == "__main__":
    app.run()
