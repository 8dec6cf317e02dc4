"""
Pure geometric primitives for zone resolution.

Coordinates are (lat, lng) in degrees. Ray casting treats lng as x and lat
as y. Nothing here touches the database.
"""
from dataclasses import dataclass
from math import asin, cos, radians, sin, sqrt
from typing import Iterable, Sequence, Tuple

EARTH_RADIUS_KM = 6371.0
# Cross products below this are treated as collinear
_EPSILON = 1e-12


@dataclass(frozen=True)
class Point:
    lat: float
    lng: float


@dataclass(frozen=True)
class Polygon:
    """Immutable ring of vertices; the last vertex connects back to the first."""
    vertices: Tuple[Point, ...]

    def __post_init__(self):
        vertices = tuple(self.vertices)
        # An explicitly closed ring repeats its first vertex; drop the duplicate
        if len(vertices) > 1 and vertices[0] == vertices[-1]:
            vertices = vertices[:-1]
        if len(vertices) < 3:
            raise ValueError("A polygon needs at least 3 distinct vertices.")
        object.__setattr__(self, "vertices", vertices)

    @classmethod
    def from_pairs(cls, pairs: Iterable[Sequence[float]]) -> "Polygon":
        return cls(tuple(Point(float(lat), float(lng)) for lat, lng in pairs))

    def to_pairs(self):
        return [[v.lat, v.lng] for v in self.vertices]

    def edges(self):
        n = len(self.vertices)
        for i in range(n):
            yield self.vertices[i], self.vertices[(i + 1) % n]


def point_in_polygon(point: Point, polygon: Polygon) -> bool:
    """
    Ray-casting parity test.

    Boundary points are half-open: for an axis-aligned ring the south and west
    edges count as inside, the north and east edges as outside. The answer for
    a given point never changes.
    """
    x, y = point.lng, point.lat
    inside = False
    vertices = polygon.vertices
    j = len(vertices) - 1
    for i in range(len(vertices)):
        xi, yi = vertices[i].lng, vertices[i].lat
        xj, yj = vertices[j].lng, vertices[j].lat
        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def haversine_distance_km(p1: Point, p2: Point) -> float:
    """Great-circle distance. Used for ranking only, never for membership."""
    dlat = radians(p2.lat - p1.lat)
    dlng = radians(p2.lng - p1.lng)
    a = sin(dlat / 2) ** 2 + cos(radians(p1.lat)) * cos(radians(p2.lat)) * sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_KM * asin(sqrt(a))


def polygon_area(polygon: Polygon) -> float:
    """Shoelace area in square degrees. Only meaningful for comparing zones."""
    total = 0.0
    for a, b in polygon.edges():
        total += a.lng * b.lat - b.lng * a.lat
    return abs(total) / 2


def _orientation(a: Point, b: Point, c: Point) -> int:
    value = (b.lng - a.lng) * (c.lat - a.lat) - (b.lat - a.lat) * (c.lng - a.lng)
    if value > _EPSILON:
        return 1
    if value < -_EPSILON:
        return -1
    return 0


def _on_segment(a: Point, b: Point, p: Point) -> bool:
    return (
        min(a.lng, b.lng) <= p.lng <= max(a.lng, b.lng)
        and min(a.lat, b.lat) <= p.lat <= max(a.lat, b.lat)
    )


def segments_intersect(p1: Point, p2: Point, q1: Point, q2: Point) -> bool:
    o1 = _orientation(p1, p2, q1)
    o2 = _orientation(p1, p2, q2)
    o3 = _orientation(q1, q2, p1)
    o4 = _orientation(q1, q2, p2)
    if o1 != o2 and o3 != o4:
        return True
    # Collinear cases
    if o1 == 0 and _on_segment(p1, p2, q1):
        return True
    if o2 == 0 and _on_segment(p1, p2, q2):
        return True
    if o3 == 0 and _on_segment(q1, q2, p1):
        return True
    if o4 == 0 and _on_segment(q1, q2, p2):
        return True
    return False


def polygons_overlap(a: Polygon, b: Polygon, touching_allowed: bool = True) -> bool:
    """
    True when the two rings share interior area.

    With ``touching_allowed`` two zones that only share an edge or a corner
    are not considered overlapping, so neighbouring zones can tile an area.

    Every edge is cut at the points where it meets the other ring. A piece
    whose midpoint lies strictly inside the other ring means the interiors
    meet. If no piece of either boundary leaves the other ring, the two
    boundaries coincide and so do the zones.
    """
    if not touching_allowed:
        for p1, p2 in a.edges():
            for q1, q2 in b.edges():
                if segments_intersect(p1, p2, q1, q2):
                    return True

    boundaries_coincide = True
    for ring, other in ((a, b), (b, a)):
        for p1, p2 in ring.edges():
            for sample in _edge_samples(p1, p2, other):
                if _on_ring(sample, other):
                    continue
                boundaries_coincide = False
                if point_in_polygon(sample, other):
                    return True
    return boundaries_coincide


def _edge_samples(p1: Point, p2: Point, other: Polygon):
    """Midpoints of the pieces of edge p1-p2 between its contacts with ``other``."""
    dx, dy = p2.lng - p1.lng, p2.lat - p1.lat
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return
    params = {0.0, 1.0}
    for v in other.vertices:
        if _orientation(p1, p2, v) == 0 and _on_segment(p1, p2, v):
            params.add(((v.lng - p1.lng) * dx + (v.lat - p1.lat) * dy) / length_sq)
    for q1, q2 in other.edges():
        if _proper_crossing(p1, p2, q1, q2):
            ex, ey = q2.lng - q1.lng, q2.lat - q1.lat
            params.add(((q1.lng - p1.lng) * ey - (q1.lat - p1.lat) * ex) / (dx * ey - dy * ex))
    ordered = sorted(t for t in params if 0.0 <= t <= 1.0)
    for t0, t1 in zip(ordered, ordered[1:]):
        if t1 - t0 <= _EPSILON:
            continue
        t = (t0 + t1) / 2
        yield Point(p1.lat + dy * t, p1.lng + dx * t)


def _on_ring(point: Point, polygon: Polygon) -> bool:
    return any(
        _orientation(a, b, point) == 0 and _on_segment(a, b, point)
        for a, b in polygon.edges()
    )


def _proper_crossing(p1: Point, p2: Point, q1: Point, q2: Point) -> bool:
    o1 = _orientation(p1, p2, q1)
    o2 = _orientation(p1, p2, q2)
    o3 = _orientation(q1, q2, p1)
    o4 = _orientation(q1, q2, p2)
    return 0 not in (o1, o2, o3, o4) and o1 != o2 and o3 != o4
