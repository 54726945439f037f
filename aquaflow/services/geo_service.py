"""
Location helpers for emergency dispatch.

``LocationDirectory`` maps place names to coordinates, loaded from a JSON
file (``{"name": [lat, lng], ...}``). The application loads one at startup
and keeps it on ``app.state``; tests build their own from a dict.
"""
import json
import logging
import math
import random
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from aquaflow.core.config import settings
from aquaflow.core.errors import BusinessRuleError, NotFoundError
from aquaflow.models.branch import Branch, BranchStatus

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
NEAREST_BRANCH_LIMIT = 5

Coordinates = Tuple[float, float]


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in kilometres."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def format_duration(hours: float) -> str:
    """``1.5`` -> ``"1h 30m"``, ``0.25`` -> ``"15m"``."""
    whole = int(hours)
    minutes = round((hours - whole) * 60)
    if minutes == 60:
        whole, minutes = whole + 1, 0
    return f"{whole}h {minutes}m" if whole > 0 else f"{minutes}m"


class LocationDirectory:
    """Place name -> (lat, lng) lookup table."""

    def __init__(self, entries: Dict[str, Any]):
        self.entries: Dict[str, Coordinates] = {
            name.lower(): (float(coords[0]), float(coords[1])) for name, coords in entries.items()
        }

    @classmethod
    def from_file(cls, path: str) -> "LocationDirectory":
        with open(path, encoding="utf-8") as f:
            entries = json.load(f)
        logger.info(f"Loaded {len(entries)} locations from {path}")
        return cls(entries)

    def __len__(self) -> int:
        return len(self.entries)

    def lookup(self, address: Optional[str]) -> Optional[Coordinates]:
        """Coordinates of the first known place name contained in ``address``."""
        if not address:
            return None
        lowered = address.lower()
        for name, coords in self.entries.items():
            if name in lowered:
                return coords
        return None

    def within(self, origin: Coordinates, max_distance_km: float) -> List[Coordinates]:
        return [
            coords for coords in self.entries.values()
            if haversine_km(origin[0], origin[1], coords[0], coords[1]) <= max_distance_km
        ]


def _branch_coordinates(branch: Branch) -> Coordinates:
    if branch.latitude is None or branch.longitude is None:
        raise BusinessRuleError(f"Branch {branch.name} has no coordinates")
    return branch.latitude, branch.longitude


def _branch_summary(branch: Branch) -> Dict[str, Any]:
    return {
        "id": branch.id,
        "code": branch.code,
        "name": branch.name,
        "location": branch.location,
        "coordinates": {"lat": branch.latitude, "lng": branch.longitude},
    }


class GeoService:
    """Branch distance, route estimate and location generation."""

    def __init__(self, db: Session, directory: LocationDirectory):
        self.db = db
        self.directory = directory

    def get_branch(self, branch_ref: Any) -> Branch:
        """Branch by primary key or by code."""
        branch = None
        if isinstance(branch_ref, int) or str(branch_ref).isdigit():
            branch = self.db.get(Branch, int(branch_ref))
        if branch is None:
            branch = self.db.query(Branch).filter(Branch.code == str(branch_ref)).first()
        if branch is None:
            raise NotFoundError("Branch not found")
        return branch

    def find_nearest_branches(self, lat: float, lng: float, max_distance_m: float = 50000) -> List[Dict[str, Any]]:
        """Up to five active branches nearest to (lat, lng).

        Only branches within ``max_distance_m`` are considered; when none are
        in range, any five active branches are returned instead.
        """
        active = (
            self.db.query(Branch)
            .filter(
                Branch.status == BranchStatus.ACTIVE,
                Branch.latitude.isnot(None),
                Branch.longitude.isnot(None),
            )
            .all()
        )
        ranked = sorted(
            (
                (haversine_km(lat, lng, b.latitude, b.longitude), b)
                for b in active
            ),
            key=lambda pair: pair[0],
        )
        in_range = [(d, b) for d, b in ranked if d * 1000 <= max_distance_m]
        if not in_range:
            logger.info(f"No active branch within {max_distance_m}m of ({lat}, {lng}), using fallback")
            in_range = ranked
        return [
            {**_branch_summary(b), "distance": round(d, 2)}
            for d, b in in_range[:NEAREST_BRANCH_LIMIT]
        ]

    def calculate_route(self, branch_ref: Any, lat: float, lng: float) -> Dict[str, Any]:
        branch = self.get_branch(branch_ref)
        origin = _branch_coordinates(branch)
        straight = haversine_km(origin[0], origin[1], lat, lng)
        road = straight * settings.route_road_factor
        speed = settings.route_average_speed_kmh
        return {
            "branch": _branch_summary(branch),
            "emergencyLocation": {"coordinates": {"lat": lat, "lng": lng}},
            "route": {
                "straightDistance": round(straight, 2),
                "roadDistance": round(road, 2),
                "estimatedTime": format_duration(road / speed),
                "averageSpeed": speed,
            },
        }

    def generate_location(self, branch_ref: Any, max_distance_km: float = 30) -> Dict[str, Any]:
        """Pick a known place within ``max_distance_km`` of a branch."""
        branch = self.get_branch(branch_ref)
        origin = _branch_coordinates(branch)
        candidates = self.directory.within(origin, max_distance_km)
        coords = random.choice(candidates) if candidates else origin
        return {
            "branch": _branch_summary(branch),
            "emergencyLocation": {
                "coordinates": {"lat": coords[0], "lng": coords[1]},
                "distance": round(haversine_km(origin[0], origin[1], coords[0], coords[1]), 2),
                "maxDistance": max_distance_km,
            },
        }
