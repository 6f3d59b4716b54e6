from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, Iterator, Optional

from sortedcontainers import SortedDict


class AttributeValueError(ValueError):
    ...


class AttributeKind(str, Enum):
    STRING = "string"
    INTEGER = "int"


class Attribute():
    """
    A named value living in a fixed field of a game executable
    """

    def __init__(self, attrId: str, value: Any, kind: AttributeKind = AttributeKind.STRING,
                 maxLength: Optional[int] = None, description: str = ""):
        """
            attrId:      Dotted identifier, eg. `filename.music.3`
            value:       Current value
            kind:        String or integer field
            maxLength:   Longest string the field can hold
            description: Human readable summary
        """
        self.id = attrId
        self.kind = AttributeKind(kind)
        self.maxLength = maxLength
        self.description = description
        self._value = None
        self.value = value
        self.originalValue = self._value

    def __repr__(self):
        return f"{self.__class__.__name__}<{self.id}={self._value!r}>"

    @property
    def value(self) -> Any:
        return self._value

    @value.setter
    def value(self, value: Any):
        self.check_value(value)
        self._value = value

    def check_value(self, value: Any):
        if self.kind == AttributeKind.STRING:
            if not isinstance(value, str):
                raise AttributeValueError(f"{self.id} must be a string, got {type(value).__name__}")
            if self.maxLength is not None and len(value) > self.maxLength:
                raise AttributeValueError(
                    f"\"{value}\" is too long for {self.id} ({len(value)} > {self.maxLength} chars)")
        elif not isinstance(value, int):
            raise AttributeValueError(f"{self.id} must be an integer, got {type(value).__name__}")

    def is_modified(self) -> bool:
        return self._value != self.originalValue


class AttributeMap(SortedDict):
    """
    Attributes keyed by id, kept sorted so related ids sit next to each other
    """

    def __init__(self, attributes: Iterable[Attribute] = ()):
        super().__init__()
        for attr in attributes:
            self[attr.id] = attr

    def add(self, attr: Attribute) -> Attribute:
        self[attr.id] = attr
        return attr

    def with_prefix(self, prefix: str) -> Iterator[Attribute]:
        """ Yield every attribute whose id starts with `prefix`, in id order """
        for key in self.irange(minimum=prefix):
            if not key.startswith(prefix):
                break
            yield self[key]

    def values_dict(self, exclude: Iterable[str] = ()) -> dict[str, Any]:
        """ Plain id -> value snapshot, skipping ids that start with any of `exclude` """
        exclude = tuple(exclude)
        return {key: attr.value for key, attr in self.items()
                if not (exclude and key.startswith(exclude))}

    def update_values(self, values: dict[str, Any]):
        """
        Apply an id -> value mapping. Every value is validated before any is
        assigned, so a bad value leaves the map untouched
        """
        for key, value in values.items():
            if key not in self:
                raise AttributeValueError(f"Unknown attribute {key}")
            self[key].check_value(value)

        for key, value in values.items():
            self[key].value = value

    def value_of(self, attrId: str, default: Any = None) -> Any:
        attr = self.get(attrId)
        if attr is None:
            return default
        return attr.value
