"""Cover generation domain entities and the pure batch accounting rules."""
from dataclasses import dataclass, field
from typing import Optional, Sequence

MAX_BATCH = 5

# Round-robin variations used when the caller does not pin a style
STYLE_MODIFIERS = (
    "professional and clean",
    "artistic and creative",
    "bold and dramatic",
    "elegant and sophisticated",
    "modern and minimalist",
)

DEFAULT_SINGLE_STYLE = "professional and eye-catching"


@dataclass(frozen=True)
class AttemptResult:
    """Outcome of one generation attempt inside a batch."""

    index: int
    style: str
    url: Optional[str] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.url is not None

    @classmethod
    def success(cls, index: int, style: str, url: str) -> "AttemptResult":
        return cls(index=index, style=style, url=url)

    @classmethod
    def failure(cls, index: int, style: str, error: str) -> "AttemptResult":
        return cls(index=index, style=style, error=error)


@dataclass
class BatchResult:
    """What the caller of a batch gets back."""

    artifacts: list[str] = field(default_factory=list)
    credits_used: int = 0
    credits_remaining: int = 0
    attempted: int = 0

    @property
    def failed(self) -> int:
        return self.attempted - len(self.artifacts)


def select_style(index: int, explicit_style: Optional[str] = None) -> str:
    """Style for attempt *index*: the explicit one, else round-robin."""
    if explicit_style:
        return explicit_style
    return STYLE_MODIFIERS[index % len(STYLE_MODIFIERS)]


def build_cover_prompt(prompt: str, style: str, title: str, genre: str) -> str:
    return f'{prompt}, {style} style, book cover design for "{title}", {genre} genre'


def summarize_attempts(attempts: Sequence[AttemptResult]) -> list[str]:
    """Successful artifact URLs in attempt order.

    The number of credits owed for a batch is exactly ``len()`` of this list.
    """
    ordered = sorted(attempts, key=lambda a: a.index)
    return [a.url for a in ordered if a.succeeded]


def build_single_cover_prompt(prompt: str, style: Optional[str], title: str, genre: str) -> str:
    style = style or DEFAULT_SINGLE_STYLE
    return (
        f'Create a {style} book cover design for a {genre} book titled "{title}". '
        f"{prompt}. The design should be suitable for Amazon Kindle Direct Publishing, "
        "with clear typography space and professional quality."
    )
