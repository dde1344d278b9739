"""Configuration schema definitions using Pydantic."""

import json
import logging
import os
import re
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from book_structure.exceptions import ConfigurationError

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_CHAPTER_PATTERNS = [
    r"^chapter\s+(\d+|one|two|three|four|five|six|seven|eight|nine|ten)\b",
    r"^(\d+)\.\s+([A-Za-z][a-zA-Z\s]{8,40})$",
    r"^(introduction|conclusion|epilogue|prologue|preface|foreword|afterword)$",
    r"^(?-i:[A-Z][A-Z\s]{4,29})$",  # All-caps headings stay case-sensitive
]

DEFAULT_EXCLUDE_PATTERNS = [
    r"^(appendix|bibliography|index|notes|references|acknowledgements|about the author|glossary)$",
]


@lru_cache(maxsize=64)
def _compile_patterns(patterns: tuple[str, ...]) -> tuple[re.Pattern, ...]:
    return tuple(re.compile(pattern, re.IGNORECASE) for pattern in patterns)


class BookConfig(BaseModel):
    """Per-book parsing configuration.

    Accepts both snake_case and the camelCase keys used by existing book
    config files (``chapterPatterns``, ``skipFrontMatter``...). A nested
    ``metadata: {title, author}`` block is flattened onto the model.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    title: str | None = None
    author: str | None = None

    start_chapter: str | None = None
    chapter_names: list[str] = Field(default_factory=list)
    chapter_patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_CHAPTER_PATTERNS))
    exclude_patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS))
    skip_front_matter: bool = True
    chapter_start_number: int = Field(default=1, ge=0)

    words_per_chunk: int = Field(default=15, ge=1)
    min_words_per_chunk: int = Field(default=5, ge=1)

    toc_search_pages: int = Field(default=20, ge=1)
    line_tolerance: float = Field(default=5.0, ge=0.0)
    coordinate_tolerance: float = Field(default=50.0, ge=0.0)
    max_workers: int = Field(default=1, ge=1, le=32)

    @model_validator(mode="before")
    @classmethod
    def flatten_metadata(cls, data):
        """Lift ``metadata.title`` / ``metadata.author`` to top-level fields."""
        if isinstance(data, dict) and isinstance(data.get("metadata"), dict):
            data = dict(data)
            metadata = data.pop("metadata")
            for key in ("title", "author"):
                if metadata.get(key) is not None and data.get(key) is None:
                    data[key] = metadata[key]
        return data

    @field_validator("title", "author", mode="before")
    @classmethod
    def resolve_env_var(cls, v):
        """Resolve environment variables."""
        if isinstance(v, str) and v.startswith("${") and v.endswith("}"):
            env_var = v[2:-1]
            return os.getenv(env_var) or None
        return v

    @field_validator("chapter_patterns", "exclude_patterns")
    @classmethod
    def validate_patterns(cls, v: list[str]) -> list[str]:
        """Compile every pattern once so bad regexes fail at load time."""
        for pattern in v:
            try:
                re.compile(pattern, re.IGNORECASE)
            except re.error as e:
                raise ValueError(f"invalid regular expression {pattern!r}: {e}") from e
        return v

    @model_validator(mode="after")
    def check_chunk_bounds(self) -> "BookConfig":
        if self.min_words_per_chunk > self.words_per_chunk:
            raise ValueError("min_words_per_chunk cannot exceed words_per_chunk")
        return self

    @property
    def chapter_regexes(self) -> tuple[re.Pattern, ...]:
        """Compiled, case-insensitive chapter boundary patterns."""
        return _compile_patterns(tuple(self.chapter_patterns))

    @property
    def exclude_regexes(self) -> tuple[re.Pattern, ...]:
        """Compiled, case-insensitive exclusion patterns."""
        return _compile_patterns(tuple(self.exclude_patterns))

    @classmethod
    def from_yaml(cls, path: Path) -> "BookConfig":
        """Load configuration from YAML file."""
        import yaml

        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Could not read config {path}: {e}") from e

        return cls._from_data(data, path)

    @classmethod
    def from_json(cls, path: Path) -> "BookConfig":
        """Load configuration from JSON file."""
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Could not read config {path}: {e}") from e

        return cls._from_data(data, path)

    @classmethod
    def load(cls, path: Path | str | None = None) -> "BookConfig":
        """Load a config file by extension, or defaults when there is none."""
        if path is None:
            return cls()

        path = Path(path)
        if not path.exists():
            logger.info("Config file %s not found, using defaults", path)
            return cls()

        if path.suffix.lower() == ".json":
            return cls.from_json(path)
        return cls.from_yaml(path)

    @classmethod
    def _from_data(cls, data, path: Path) -> "BookConfig":
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config {path} must contain a mapping")
        try:
            return cls(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid config {path}: {e}") from e

    def to_yaml(self, path: Path) -> None:
        """Save configuration to YAML file."""
        import yaml

        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self.model_dump(mode="python"), f, default_flow_style=False)
