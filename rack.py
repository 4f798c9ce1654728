"""
Rack Layout — 8-ball triangle and cue break spot.

Pure functions of table geometry: every call builds brand-new Ball objects,
so a reset never shares state with the rack it replaces.
"""

import math
import numpy as np

from physics import Ball, Table, BALL_RADIUS

RACK_ROWS = 5
RACK_APEX_FRACTION = 0.75   # apex x as a fraction of table width
CUE_BREAK_X = 200.0         # break spot x; y is the table midline

EIGHT_BALL_RANK = 8
EIGHT_BALL_SLOT = (2, 1)    # (row, col): middle of the third row

# Non-8 ranks alternate from both ends of 1..15 so neighbours mix solids and stripes
RACK_ORDER = (1, 15, 2, 14, 3, 13, 4, 12, 5, 11, 6, 10, 7, 9)

CUE_COLOR = "white"
EIGHT_BALL_COLOR = "black"
SOLID_COLORS = ("red", "blue")     # (even, odd) for ranks 1-7
STRIPE_COLORS = ("pink", "green")  # (even, odd) for ranks 9-15


def ball_color(rank: int) -> str:
    """Colour from rank alone: cue, solids by parity, 8, stripes by parity."""
    if rank == 0:
        return CUE_COLOR
    if rank == EIGHT_BALL_RANK:
        return EIGHT_BALL_COLOR
    palette = SOLID_COLORS if rank < EIGHT_BALL_RANK else STRIPE_COLORS
    return palette[rank % 2]


def break_position(table: Table) -> np.ndarray:
    return np.array([CUE_BREAK_X, table.height / 2])


def rack_slots(table: Table, radius: float = BALL_RADIUS) -> list:
    """(row, col, x, y) for the fifteen rack slots, apex first.

    Row spacing is 2r*sin(60°); rows advance along x by that spacing times √3.
    Columns within a row are 2r apart, shifted up by half a row spacing per row.
    """
    spacing = 2 * radius * math.sin(math.radians(60))
    apex_x = table.width * RACK_APEX_FRACTION
    center_y = table.height / 2

    slots = []
    for row in range(RACK_ROWS):
        x = apex_x + row * spacing * math.sqrt(3)
        y_offset = row * spacing / 2
        for col in range(row + 1):
            y = center_y + col * radius * 2 - y_offset
            slots.append((row, col, x, y))
    return slots


def create_rack(table: Table, radius: float = BALL_RADIUS) -> list:
    """Cue ball on the break spot plus fifteen object balls; the cue ball is first."""
    balls = [Ball(0, CUE_COLOR, position=break_position(table), radius=radius, is_cue=True)]

    order = iter(RACK_ORDER)
    for row, col, x, y in rack_slots(table, radius):
        if (row, col) == EIGHT_BALL_SLOT:
            rank = EIGHT_BALL_RANK
        else:
            rank = next(order)
        balls.append(Ball(rank, ball_color(rank), position=[x, y], radius=radius))
    return balls
