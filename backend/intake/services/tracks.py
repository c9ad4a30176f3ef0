"""Learning track catalogue.

The set of tracks an applicant can be routed into. Declaration order is
significant: it is the tie-break order of the track scoring engine, so the
first declared track wins when two tracks score equally.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Track:
    """A learning specialization.

    Attributes:
        track_id: Stable identifier used by question options and scores.
        name: Display name.
        description: One-line summary shown on the track selection step.
    """

    track_id: str
    name: str
    description: str


TRACKS: tuple[Track, ...] = (
    Track(
        track_id="builders",
        name="Builders Track",
        description="Technical, hands-on cybersecurity operations",
    ),
    Track(
        track_id="leaders",
        name="Leaders Track",
        description="Management & policy roles",
    ),
    Track(
        track_id="entrepreneurs",
        name="Entrepreneurs Track",
        description="Cyber startups & innovation",
    ),
    Track(
        track_id="educators",
        name="Educators Track",
        description="Cyber literacy & training specialization",
    ),
    Track(
        track_id="researchers",
        name="Researchers Track",
        description="Threat analysis & emerging tech R&D",
    ),
)

TRACK_IDS: tuple[str, ...] = tuple(track.track_id for track in TRACKS)

_TRACKS_BY_ID: dict[str, Track] = {track.track_id: track for track in TRACKS}

if len(_TRACKS_BY_ID) != len(TRACKS):
    raise RuntimeError("Track ids must be unique")


def get_track(track_id: str) -> Track | None:
    """Look up a track by id.

    Args:
        track_id: Track identifier (e.g., "builders").

    Returns:
        The Track, or None if the id is not declared.
    """
    return _TRACKS_BY_ID.get(track_id)
