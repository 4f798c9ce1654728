"""
Frame renderer — draws the table through a minimal surface interface.

A surface implements:
  clear(width, height)
  circle(center, radius, fill)
  label(center, text, fill)
  line(start, end, stroke, alpha, width)

CommandSurface records calls as JSON-ready dicts (server.py clients replay them
on a canvas); ImageSurface rasterizes with Pillow for headless snapshots.
"""

from PIL import Image, ImageColor, ImageDraw, ImageFont

POCKET_COLOR = "#121212"
FELT_COLOR   = "#0a6c3a"
AIM_COLOR    = "white"


def draw_frame(ctrl, surface) -> None:
    """Clear, then pockets, aim line and balls in that order."""
    table = ctrl.table
    surface.clear(table.width, table.height)

    for pocket in table.pockets:
        surface.circle((pocket.x, pocket.y), pocket.radius, POCKET_COLOR)

    aim = ctrl.aim_line()
    if aim is not None:
        start, end, alpha = aim
        surface.line(tuple(start), tuple(end), AIM_COLOR, alpha, ctrl.AIM_LINE_WIDTH)

    for ball in ctrl.balls:
        center = (float(ball.position[0]), float(ball.position[1]))
        surface.circle(center, ball.radius, ball.color)
        if ball.rank > 0:
            surface.label(center, str(ball.rank), "black" if ball.is_cue else "white")


class CommandSurface:
    """Records draw calls; `commands` holds the last frame."""

    def __init__(self):
        self.commands: list[dict] = []

    def clear(self, width, height):
        self.commands = [{"op": "clear", "w": width, "h": height}]

    def circle(self, center, radius, fill):
        self.commands.append({
            "op": "circle",
            "x": round(float(center[0]), 3), "y": round(float(center[1]), 3),
            "r": radius, "fill": fill,
        })

    def label(self, center, text, fill):
        self.commands.append({
            "op": "label",
            "x": round(float(center[0]), 3), "y": round(float(center[1]), 3),
            "text": text, "fill": fill,
        })

    def line(self, start, end, stroke, alpha, width):
        self.commands.append({
            "op": "line",
            "x1": round(float(start[0]), 3), "y1": round(float(start[1]), 3),
            "x2": round(float(end[0]), 3), "y2": round(float(end[1]), 3),
            "stroke": stroke, "alpha": round(float(alpha), 4), "width": width,
        })


class ImageSurface:
    """Pillow RGBA canvas; call `save(path)` or read `image` after draw_frame."""

    def __init__(self, background: str = FELT_COLOR):
        self.background = background
        self.image = Image.new("RGBA", (1, 1), background)
        self.font = ImageFont.load_default()

    def clear(self, width, height):
        size = (int(round(width)), int(round(height)))
        self.image = Image.new("RGBA", size, self.background)

    def circle(self, center, radius, fill):
        x, y = center
        draw = ImageDraw.Draw(self.image)
        draw.ellipse([x - radius, y - radius, x + radius, y + radius], fill=fill)

    def label(self, center, text, fill):
        draw = ImageDraw.Draw(self.image)
        left, top, right, bottom = draw.textbbox((0, 0), text, font=self.font)
        x = center[0] - (left + right) / 2
        y = center[1] - (top + bottom) / 2
        draw.text((x, y), text, fill=fill, font=self.font)

    def line(self, start, end, stroke, alpha, width):
        # Composite through an overlay so alpha blends with the felt
        overlay = Image.new("RGBA", self.image.size, (0, 0, 0, 0))
        rgb = ImageColor.getrgb(stroke)[:3]
        ImageDraw.Draw(overlay).line(
            [tuple(start), tuple(end)],
            fill=rgb + (int(round(alpha * 255)),), width=width,
        )
        self.image = Image.alpha_composite(self.image, overlay)

    def save(self, path) -> None:
        self.image.save(path)
