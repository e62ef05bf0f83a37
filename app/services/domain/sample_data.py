"""
Sample field used to seed a freshly reset store.
"""
from typing import Any

from app.domain.models import DEFAULT_DIRECTORY_ID

SAMPLE_POLYGON = [[
    [141.611141, 43.336851], [141.611441, 43.336063], [141.611688, 43.335977],
    [141.611549, 43.335797], [141.611924, 43.334931], [141.612107, 43.334986],
    [141.612364, 43.335079], [141.612622, 43.335064], [141.613062, 43.335228],
    [141.613308, 43.335236], [141.613695, 43.335267], [141.613362, 43.336344],
    [141.615529, 43.336765], [141.615239, 43.337631], [141.61495, 43.337647],
    [141.61451, 43.337608], [141.611441, 43.337007], [141.611141, 43.336851],
]]


def sample_field_data() -> dict[str, Any]:
    """Creation payload of the sample field, placed in the default directory."""
    return {
        "name": "Sample",
        "memo": "Sample field for seeding",
        "crop": "rice",
        "geometry": {"type": "Polygon", "coordinates": SAMPLE_POLYGON},
        "directoryId": DEFAULT_DIRECTORY_ID,
    }
