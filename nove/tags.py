"""Tag extraction: genre and mood labels for a track."""

from __future__ import annotations

from nove.models import ContentItem

# Curated taxonomy.  Every new profile starts with a neutral entry per tag.
AVAILABLE_TAGS: tuple[str, ...] = (
    "Lofi", "Cinematic", "Electronic", "Hip-Hop", "Rock", "Pop",
    "Jazz", "Classical", "R&B", "Indie", "Metal", "Country",
    "Synthwave", "Phonk", "Techno", "Ambient", "Focus", "Workout",
    "Relax", "Party", "Sad", "Happy", "Energetic", "Chill",
)

GENRE_TAGS: dict[str, tuple[str, ...]] = {
    "Synthwave": ("Electronic", "Energetic", "Cinematic"),
    "Phonk": ("Hip-Hop", "Energetic", "Party"),
    "Lo-fi": ("Lofi", "Chill", "Relax", "Focus"),
    "Jazz": ("Chill", "Relax", "Classical"),
    "Techno": ("Electronic", "Energetic", "Party", "Workout"),
    "Deep Tech": ("Electronic", "Focus", "Chill"),
    "Hyperpop": ("Pop", "Energetic", "Electronic"),
}

# Lower-case title substrings and the moods they imply.  Checked in order.
KEYWORD_TAGS: dict[str, tuple[str, ...]] = {
    "chill": ("Chill", "Relax"),
    "relax": ("Relax", "Chill", "Ambient"),
    "energy": ("Energetic", "Workout"),
    "focus": ("Focus", "Ambient"),
    "sad": ("Sad", "Chill"),
    "happy": ("Happy", "Energetic"),
    "night": ("Chill", "Ambient"),
    "dream": ("Ambient", "Chill", "Cinematic"),
    "dark": ("Cinematic", "Ambient"),
    "cyber": ("Electronic", "Synthwave"),
    "neon": ("Synthwave", "Electronic"),
}


def extract_tags(item: ContentItem) -> list[str]:
    """Return the unique tags for *item* in first-seen order.

    The trimmed genre label always comes first, followed by the tags the
    genre implies, followed by moods inferred from title keywords.

    Args:
        item: The track to classify.

    Returns:
        De-duplicated list of tag strings.  Same item, same result.
    """
    tags: list[str] = []

    genre = (item.genre or "").strip()
    if genre:
        tags.append(genre)
        tags.extend(GENRE_TAGS.get(genre, ()))

    title = (item.title or "").lower()
    for keyword, moods in KEYWORD_TAGS.items():
        if keyword in title:
            tags.extend(moods)

    return list(dict.fromkeys(tags))
