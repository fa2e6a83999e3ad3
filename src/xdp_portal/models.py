"""Public data models for the xdp-portal client."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from .errors import PortalPayloadError, ResponseDetails

T = TypeVar("T")

GLOB_PATTERN = 0
MIME_TYPE = 1

_adapter_cache: dict[Any, TypeAdapter[Any]] = {}


class UserInformation(BaseModel):
    id: str
    name: str = ""
    image: str = ""


class FileChooserResult(BaseModel):
    uris: list[str]
    choices: list[tuple[str, str]] = []
    current_filter: tuple[str, list[tuple[int, str]]] | None = None


class Color(BaseModel):
    red: float
    green: float
    blue: float


@dataclass(frozen=True, slots=True)
class FileFilter:
    """A named file filter offered by the file chooser.

    Encodes to the portal's ``(sa(us))`` shape where each entry is either a
    glob pattern (0) or a mime type (1).
    """

    name: str
    patterns: tuple[str, ...] = ()
    mime_types: tuple[str, ...] = ()

    def to_wire(self) -> list[Any]:
        entries = [[GLOB_PATTERN, pattern] for pattern in self.patterns]
        entries.extend([MIME_TYPE, mime_type] for mime_type in self.mime_types)
        return [self.name, entries]


@dataclass(frozen=True, slots=True)
class FileChoice:
    """An extra widget shown by the file chooser.

    An empty ``options`` tuple denotes a boolean choice whose values are
    ``"true"`` and ``"false"``.
    """

    id: str
    label: str
    options: tuple[tuple[str, str], ...] = ()
    initial: str = ""

    def __post_init__(self) -> None:
        if not self.id or not self.label:
            raise ValueError("file choice id and label must be non-empty")

    def to_wire(self) -> list[Any]:
        return [self.id, self.label, [list(option) for option in self.options], self.initial]


@dataclass(slots=True)
class PortalResponse:
    code: int
    results: dict[str, Any] = field(default_factory=dict)


def _adapter_for(model_type: Any) -> TypeAdapter[Any]:
    try:
        adapter = _adapter_cache.get(model_type)
    except TypeError:
        return TypeAdapter(model_type)

    if adapter is None:
        adapter = TypeAdapter(model_type)
        _adapter_cache[model_type] = adapter
    return adapter


def validate_result(model_type: type[T], value: Any, *, details: ResponseDetails) -> T:
    try:
        return _adapter_for(model_type).validate_python(value)
    except ValidationError as error:
        model_name = getattr(model_type, "__name__", repr(model_type))
        raise PortalPayloadError(
            f"{details.action} returned invalid results for {model_name}",
            details=details,
        ) from error
