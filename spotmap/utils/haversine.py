# Great-circle distance, used for client-side display only. Server-side
# ordering uses the planar approximation in spot_service.

from math import radians, sin, cos, sqrt, atan2

# Earth's radius in kilometers
R = 6371.0

def haversine(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great-circle distance between two points
    on the Earth (specified in decimal degrees) using the Haversine formula.

    Args:
        lat1: Latitude of point 1.
        lon1: Longitude of point 1.
        lat2: Latitude of point 2.
        lon2: Longitude of point 2.

    Returns:
        Distance between the two points in kilometers.
    """
    dlat = radians(lat2 - lat1)
    dlon = radians(lon2 - lon1)

    a = sin(dlat / 2)**2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(dlon / 2)**2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return R * c

def format_distance(km: float) -> str:
    """Render a distance as meters below one kilometer, otherwise km with one decimal."""
    if km < 1:
        return f"{round(km * 1000)}m"
    return f"{km:.1f}km"
