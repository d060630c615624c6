from __future__ import annotations

import io
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Tuple

import requests
from PIL import Image, UnidentifiedImageError

from config import get_settings
from geo import Coordinate

logger = logging.getLogger(__name__)

TILE_SIZE = 256
MAX_LATITUDE = 85.05112878
MIN_ZOOM = 1
MAX_ZOOM = 17
BACKGROUND = (229, 227, 223)


# --------------------------------------------------------------------------- #
# Web Mercator projection
# --------------------------------------------------------------------------- #
def lat_lon_to_pixel(coord: Coordinate, zoom: int) -> Tuple[float, float]:
    """Project a coordinate into world pixel space at ``zoom``."""
    latitude = max(-MAX_LATITUDE, min(MAX_LATITUDE, coord.latitude))
    scale = TILE_SIZE * (2 ** zoom)
    x = (coord.longitude + 180.0) / 360.0 * scale
    sin_lat = math.sin(math.radians(latitude))
    y = (0.5 - math.log((1 + sin_lat) / (1 - sin_lat)) / (4 * math.pi)) * scale
    return x, y


def pixel_to_lat_lon(x: float, y: float, zoom: int) -> Coordinate:
    scale = TILE_SIZE * (2 ** zoom)
    longitude = x / scale * 360.0 - 180.0
    n = math.pi - 2 * math.pi * y / scale
    latitude = math.degrees(math.atan(math.sinh(n)))
    return Coordinate(latitude=latitude, longitude=longitude)


def fit_zoom(coords: Iterable[Coordinate], width: int, height: int, padding: int = 40) -> int:
    """Largest zoom level at which every coordinate fits inside the viewport."""
    points = list(coords)
    if len(points) < 2:
        return 13 if points else MIN_ZOOM
    usable_w = max(width - 2 * padding, 1)
    usable_h = max(height - 2 * padding, 1)
    for zoom in range(MAX_ZOOM, MIN_ZOOM - 1, -1):
        projected = [lat_lon_to_pixel(point, zoom) for point in points]
        xs = [p[0] for p in projected]
        ys = [p[1] for p in projected]
        if max(xs) - min(xs) <= usable_w and max(ys) - min(ys) <= usable_h:
            return zoom
    return MIN_ZOOM


def center_of(coords: Iterable[Coordinate]) -> Coordinate:
    points = list(coords)
    if not points:
        raise ValueError("center_of requires at least one coordinate")
    latitudes = [p.latitude for p in points]
    longitudes = [p.longitude for p in points]
    return Coordinate(
        latitude=(min(latitudes) + max(latitudes)) / 2,
        longitude=(min(longitudes) + max(longitudes)) / 2,
    )


@dataclass
class MapViewport:
    center: Coordinate
    zoom: int
    width: int
    height: int

    @classmethod
    def fitting(cls, coords: Iterable[Coordinate], width: int, height: int) -> "MapViewport":
        points = list(coords)
        return cls(
            center=center_of(points),
            zoom=fit_zoom(points, width, height),
            width=width,
            height=height,
        )

    def origin(self) -> Tuple[float, float]:
        """World pixel position of the viewport's top-left corner."""
        cx, cy = lat_lon_to_pixel(self.center, self.zoom)
        return cx - self.width / 2, cy - self.height / 2

    def to_screen(self, coord: Coordinate) -> Tuple[float, float]:
        ox, oy = self.origin()
        x, y = lat_lon_to_pixel(coord, self.zoom)
        return x - ox, y - oy

    def to_coordinate(self, screen_x: float, screen_y: float) -> Coordinate:
        ox, oy = self.origin()
        return pixel_to_lat_lon(ox + screen_x, oy + screen_y, self.zoom)


# --------------------------------------------------------------------------- #
# Tile cache
# --------------------------------------------------------------------------- #
def cached_tile_path(x: int, y: int, zoom: int, tiles_dir: Optional[Path] = None) -> Path:
    base = tiles_dir or get_settings().tiles_dir
    return base / str(zoom) / str(x) / f"{y}.png"


def fetch_and_cache_tile(x: int, y: int, zoom: int, tiles_dir: Optional[Path] = None) -> Optional[Path]:
    """Download a map tile (if not cached yet) and return its path."""
    limit = 2 ** zoom
    if not (0 <= y < limit):
        return None
    x %= limit

    target_path = cached_tile_path(x, y, zoom, tiles_dir)
    if target_path.exists():
        return target_path

    settings = get_settings()
    url = settings.tile_url.format(z=zoom, x=x, y=y)
    try:
        response = requests.get(url, headers=settings.request_headers, timeout=settings.http_timeout)
        response.raise_for_status()
    except requests.RequestException as error:
        logger.warning("Unable to fetch tile %s/%s/%s: %s", zoom, x, y, error)
        return None

    try:
        Image.open(io.BytesIO(response.content)).load()
    except (UnidentifiedImageError, OSError) as error:
        logger.warning("Tile %s/%s/%s is not a usable image: %s", zoom, x, y, error)
        return None

    partial_path = target_path.with_name(target_path.name + ".part")
    try:
        target_path.parent.mkdir(parents=True, exist_ok=True)
        with open(partial_path, "wb") as handle:
            handle.write(response.content)
        partial_path.replace(target_path)
    except OSError as error:
        logger.warning("Unable to cache tile %s: %s", target_path, error)
        partial_path.unlink(missing_ok=True)
        return None
    return target_path


def _open_tile(path: Path) -> Optional[Image.Image]:
    try:
        with open(path, "rb") as handle:
            return Image.open(io.BytesIO(handle.read())).convert("RGB")
    except (UnidentifiedImageError, OSError):
        return None


def render_base_map(viewport: MapViewport, tiles_dir: Optional[Path] = None) -> Image.Image:
    """Compose the tiles covering ``viewport`` into a single image."""
    canvas = Image.new("RGB", (viewport.width, viewport.height), BACKGROUND)
    ox, oy = viewport.origin()
    first_x = int(math.floor(ox / TILE_SIZE))
    first_y = int(math.floor(oy / TILE_SIZE))
    last_x = int(math.floor((ox + viewport.width) / TILE_SIZE))
    last_y = int(math.floor((oy + viewport.height) / TILE_SIZE))

    for tile_x in range(first_x, last_x + 1):
        for tile_y in range(first_y, last_y + 1):
            path = fetch_and_cache_tile(tile_x, tile_y, viewport.zoom, tiles_dir)
            if path is None:
                continue
            tile = _open_tile(path)
            if tile is None:
                continue
            offset = (math.floor(tile_x * TILE_SIZE - ox), math.floor(tile_y * TILE_SIZE - oy))
            canvas.paste(tile, offset)
    return canvas
