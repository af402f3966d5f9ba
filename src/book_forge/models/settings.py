"""Generation settings: the immutable input to every stage."""

from pydantic import BaseModel, ConfigDict, Field, field_validator


GENRE_ALIASES = {
    "sci-fi": "science fiction",
    "scifi": "science fiction",
    "sf": "science fiction",
    "science-fiction": "science fiction",
    "historical": "historical fiction",
    "ya": "young adult",
    "young-adult": "young adult",
    "literary fiction": "literary",
    "epic fantasy": "fantasy",
    "crime": "mystery",
    "suspense": "thriller",
}


def normalize_genre(genre: str) -> str:
    """Lowercase a genre name and resolve common aliases."""
    key = genre.strip().lower()
    return GENRE_ALIASES.get(key, key)


class GenerationSettings(BaseModel):
    """Structural settings for one book run."""

    model_config = ConfigDict(frozen=True)

    genre: str = Field(default="fantasy")
    tone: str = Field(default="serious")
    target_audience: str = Field(default="adult")
    ending_type: str = Field(default="satisfying")
    structure: str = Field(default="three-act")
    language: str = Field(default="English")
    word_count: int = Field(default=50000, ge=1500, le=500000)
    character_names: tuple[str, ...] = Field(default=())
    inspiration_books: tuple[str, ...] = Field(default=())

    @field_validator("genre", "tone", "target_audience")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()

    @field_validator("character_names", "inspiration_books", mode="before")
    @classmethod
    def clean_names(cls, v):
        if v is None:
            return ()
        if isinstance(v, str):
            v = v.split(",")
        seen = []
        for name in v:
            name = str(name).strip()
            if name and name not in seen:
                seen.append(name)
        return tuple(seen)

    @property
    def normalized_genre(self) -> str:
        return normalize_genre(self.genre)
