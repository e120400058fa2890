"""
poly_evolution/rasterizer.py - Rendering genomes and loading target images
"""
from typing import Optional, Protocol, Tuple

import numpy as np
from PIL import Image, ImageDraw

from .genome import Genome


class Rasterizer(Protocol):
    """Anything that turns a genome into a (height, width, 4) uint8 RGBA buffer"""

    def render(self, genome: Genome, width: int, height: int) -> np.ndarray:
        ...


class PillowRasterizer:
    """Paints polygons in stack order with per-polygon alpha blending"""

    def __init__(self, background: Tuple[int, int, int, int] = (0, 0, 0, 0)):
        # Transparent black, like a freshly created HTML canvas
        self.background = background

    def render_image(self, genome: Genome, width: int, height: int) -> Image.Image:
        """Render genome as a Pillow RGBA image"""
        canvas = Image.new('RGBA', (width, height), self.background)

        for polygon in genome.polygons:
            xs = [p.x for p in polygon.points]
            ys = [p.y for p in polygon.points]
            x0, y0 = max(min(xs), 0), max(min(ys), 0)
            x1, y1 = min(max(xs) + 1, width), min(max(ys) + 1, height)
            if x1 <= x0 or y1 <= y0:
                continue

            # Draw on a layer the size of the polygon's bounding box, then blend it in
            layer = Image.new('RGBA', (x1 - x0, y1 - y0), (0, 0, 0, 0))
            draw = ImageDraw.Draw(layer)
            draw.polygon([(p.x - x0, p.y - y0) for p in polygon.points], fill=polygon.color.to_rgba8())
            canvas.alpha_composite(layer, dest=(x0, y0))

        return canvas

    def render(self, genome: Genome, width: int, height: int) -> np.ndarray:
        return np.asarray(self.render_image(genome, width, height), dtype=np.uint8)


def load_target(filename: str, size: Optional[Tuple[int, int]] = None) -> np.ndarray:
    """Load an image file as a (height, width, 4) uint8 RGBA buffer, optionally resized to (width, height)"""
    with Image.open(filename) as img:
        img = img.convert('RGBA')
        if size is not None and img.size != tuple(size):
            img = img.resize(tuple(size), Image.Resampling.LANCZOS)
        return np.array(img, dtype=np.uint8)


def buffer_to_image(buffer: np.ndarray) -> Image.Image:
    return Image.fromarray(np.ascontiguousarray(buffer, dtype=np.uint8), 'RGBA')


def save_buffer(buffer: np.ndarray, filename: str, scale: int = 1) -> Image.Image:
    """Write an RGBA buffer to an image file"""
    img = buffer_to_image(buffer)
    if scale != 1:
        img = img.resize((img.width * scale, img.height * scale), Image.Resampling.NEAREST)
    img.save(filename)
    return img
