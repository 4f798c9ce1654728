"""
2D Pool Table Physics Engine
Per-tick integration, rail reflection, equal-mass ball collision, pocket capture.

Units are table units (pixels of the reference 900x450 table); velocities are
table units per tick. Nothing here depends on wall-clock time.
"""

import math
import numpy as np
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

# ──────────────────────────────────────────────
# Constants (table units, per tick)
# ──────────────────────────────────────────────
TABLE_WIDTH: float = 900.0
TABLE_HEIGHT: float = 450.0
BALL_RADIUS: float = 10.0
POCKET_RADIUS: float = 25.0

# ── Runtime-editable behavior constants ───────────────────────────────────────
# These are read by name every call, so front ends can mutate them live via:
#   import physics as _phys;  _phys.FRICTION = 0.985
FRICTION: float = 0.99       # multiplicative velocity decay per tick
REST_EPSILON: float = 0.05   # per-axis speed below which a ball snaps to rest


# ──────────────────────────────────────────────
# Vector helpers
# ──────────────────────────────────────────────
def distance(a, b) -> float:
    """Euclidean distance between two 2D points."""
    return float(math.hypot(b[0] - a[0], b[1] - a[1]))


def normalize(v) -> Tuple[np.ndarray, float]:
    """Return (unit vector, length). A zero vector yields (zeros, 0.0)."""
    v = np.asarray(v, dtype=float)
    length = float(np.linalg.norm(v))
    if length == 0.0:
        return np.zeros_like(v), 0.0
    return v / length, length


# ──────────────────────────────────────────────
# Table model
# ──────────────────────────────────────────────
@dataclass(frozen=True)
class Pocket:
    x: float
    y: float
    radius: float = POCKET_RADIUS

    @property
    def position(self) -> np.ndarray:
        return np.array([self.x, self.y])


def standard_pockets(width: float, height: float,
                     pocket_radius: float = POCKET_RADIUS) -> Tuple[Pocket, ...]:
    """Six pockets: four corners first, then the two long-rail midpoints."""
    return (
        Pocket(0.0, 0.0, pocket_radius),
        Pocket(width, 0.0, pocket_radius),
        Pocket(0.0, height, pocket_radius),
        Pocket(width, height, pocket_radius),
        Pocket(width / 2, 0.0, pocket_radius),
        Pocket(width / 2, height, pocket_radius),
    )


@dataclass(frozen=True)
class Table:
    """Axis-aligned playing surface [0, width] x [0, height] with fixed pockets.

    Leaving ``pockets`` out gives the six standard pockets for the table size.
    """
    width: float = TABLE_WIDTH
    height: float = TABLE_HEIGHT
    pockets: Tuple[Pocket, ...] = ()

    def __post_init__(self):
        if not self.pockets:
            object.__setattr__(self, "pockets", standard_pockets(self.width, self.height))
        else:
            object.__setattr__(self, "pockets", tuple(self.pockets))

    @classmethod
    def standard(cls, width: float = TABLE_WIDTH, height: float = TABLE_HEIGHT,
                 pocket_radius: float = POCKET_RADIUS) -> "Table":
        return cls(width=width, height=height,
                   pockets=standard_pockets(width, height, pocket_radius))


# ──────────────────────────────────────────────
# Ball
# ──────────────────────────────────────────────
@dataclass(eq=False)
class Ball:
    """Pool ball: rank 0 is the cue ball, 1-15 object balls, 8 ends the rack."""
    rank: int
    color: str
    position: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0]))
    velocity: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0]))
    radius: float = BALL_RADIUS
    is_cue: bool = False

    def __post_init__(self):
        self.position = np.array(self.position, dtype=float)
        self.velocity = np.array(self.velocity, dtype=float)

    @property
    def name(self) -> str:
        return "cue" if self.is_cue else str(self.rank)

    @property
    def speed(self) -> float:
        return float(np.linalg.norm(self.velocity))

    def is_moving(self) -> bool:
        return bool(self.velocity[0] != 0.0 or self.velocity[1] != 0.0)


class PhysicsEngine:
    """Per-tick billiards physics on an axis-aligned table."""

    def __init__(self, table: Optional[Table] = None):
        self.table = table if table is not None else Table.standard()
        self.events: list = []

    # ──────────────────────────────────────────
    # Integration & friction
    # ──────────────────────────────────────────
    @staticmethod
    def integrate(ball: Ball) -> None:
        """Snap creeping balls to rest, otherwise decay then move.

        Decay happens before the position update, so a ball struck at speed v
        travels v*f + v*f^2 + ... and never the undecayed v.
        """
        v = ball.velocity
        if abs(v[0]) < REST_EPSILON and abs(v[1]) < REST_EPSILON:
            v[:] = 0.0
            return
        ball.velocity = v * FRICTION
        ball.position = ball.position + ball.velocity

    # ──────────────────────────────────────────
    # Rails
    # ──────────────────────────────────────────
    def resolve_wall_collision(self, ball: Ball) -> bool:
        """Reflect off the rails. Each axis is checked independently."""
        r = ball.radius
        w, h = self.table.width, self.table.height
        hit = False

        x, y = ball.position
        if x + r > w or x - r < 0:
            impact_speed = abs(float(ball.velocity[0]))
            ball.velocity[0] = -ball.velocity[0]
            ball.position[0] = min(max(x, r), w - r)
            self.events.append({"type": "cushion", "ball": ball.name, "speed": impact_speed})
            hit = True

        if y + r > h or y - r < 0:
            impact_speed = abs(float(ball.velocity[1]))
            ball.velocity[1] = -ball.velocity[1]
            ball.position[1] = min(max(y, r), h - r)
            self.events.append({"type": "cushion", "ball": ball.name, "speed": impact_speed})
            hit = True

        return hit

    # ──────────────────────────────────────────
    # Ball-Ball Collision
    # ──────────────────────────────────────────
    @staticmethod
    def _check_ball_collision(b1: Ball, b2: Ball) -> bool:
        """Check if two balls are overlapping."""
        return distance(b1.position, b2.position) < (b1.radius + b2.radius)

    def resolve_ball_collision(self, b1: Ball, b2: Ball) -> bool:
        """
        Equal-mass elastic exchange along the line of centers.

        The full normal component of the relative velocity is transferred, then
        each ball is pushed back by half the overlap. Returns True if resolved.
        """
        normal, dist = normalize(b2.position - b1.position)
        if dist == 0.0:
            # Coincident centers: no usable normal this tick
            return False
        if dist >= b1.radius + b2.radius:
            return False

        # Closing speed; positive means approaching
        closing = float(np.dot(b1.velocity - b2.velocity, normal))
        if closing <= 0:
            return False

        b1.velocity = b1.velocity - closing * normal
        b2.velocity = b2.velocity + closing * normal

        overlap = (b1.radius + b2.radius) - dist
        b1.position = b1.position - normal * (overlap / 2)
        b2.position = b2.position + normal * (overlap / 2)

        self.events.append({
            "type": "ball_ball", "ball1": b1.name, "ball2": b2.name,
            "speed": closing,
        })
        return True

    # ──────────────────────────────────────────
    # Pockets
    # ──────────────────────────────────────────
    def find_captures(self, balls: List[Ball]) -> List[Ball]:
        """Balls whose center lies inside any pocket's capture radius, in scan order."""
        captured = []
        for ball in balls:
            for pocket in self.table.pockets:
                if distance(ball.position, pocket.position) < pocket.radius:
                    captured.append(ball)
                    break
        return captured

    # ──────────────────────────────────────────
    # Main Update Loop
    # ──────────────────────────────────────────
    def advance(self, balls: List[Ball]) -> None:
        """Integrate every ball by one tick."""
        self.events.clear()
        for ball in balls:
            self.integrate(ball)

    def collide(self, balls: List[Ball]) -> None:
        """Rails for every ball, then every unordered pair."""
        for ball in balls:
            self.resolve_wall_collision(ball)

        for i in range(len(balls)):
            for j in range(i + 1, len(balls)):
                if self._check_ball_collision(balls[i], balls[j]):
                    self.resolve_ball_collision(balls[i], balls[j])

    def update(self, balls: List[Ball]) -> None:
        """Advance one tick without pocket handling."""
        self.advance(balls)
        self.collide(balls)

    def simulate(self, balls: List[Ball], max_ticks: int = 10000) -> int:
        """
        Run until all balls stop or max_ticks is reached.

        Returns:
            Number of ticks simulated.
        """
        ticks = 0
        while ticks < max_ticks:
            self.update(balls)
            ticks += 1
            if all(not b.is_moving() for b in balls):
                break
        return ticks
