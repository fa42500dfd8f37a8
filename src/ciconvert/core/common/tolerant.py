"""
Building blocks for provider document models.

Many provider keys accept either a bare scalar or a full mapping. Such keys
are modelled as ShortFormModel subclasses: decoding expands the scalar into
the model's primary field, encoding collapses back to the scalar whenever no
other field differs from its default.
"""

from typing import Annotated, Any, ClassVar

from pydantic import BaseModel, BeforeValidator, ConfigDict, model_serializer, model_validator


class DocumentModel(BaseModel):
    """Base class for provider document nodes keyed by their YAML names."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def encode(self) -> Any:
        """Return the plain value this node serializes to."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ShortFormModel(DocumentModel):
    """
    A node that may be written as a bare scalar or as a mapping.

    Subclasses name the field a bare scalar populates in ``primary_field``
    and the scalar types accepted in ``scalar_types``. Fields with a more
    involved decode order override ``expand_short``.
    """

    primary_field: ClassVar[str] = ""
    scalar_types: ClassVar[tuple[type, ...]] = (str,)

    @model_validator(mode="before")
    @classmethod
    def _expand_short_form(cls, data: Any) -> Any:
        if isinstance(data, dict | BaseModel):
            return data
        return cls.expand_short(data)

    @classmethod
    def expand_short(cls, value: Any) -> dict[str, Any]:
        """
        Expand a non-mapping value into keyword data for the model.

        Raises:
            ValueError: If the value matches none of the accepted shapes
        """
        if isinstance(value, bool) and bool not in cls.scalar_types:
            raise ValueError(f"cannot decode {cls.__name__} from a boolean")
        if isinstance(value, cls.scalar_types):
            return {cls.primary_field: value}
        raise ValueError(
            f"cannot decode {cls.__name__} from {type(value).__name__}"
        )

    def is_short(self) -> bool:
        """True when only the primary field carries a value."""
        for name, info in type(self).model_fields.items():
            if name == self.primary_field:
                continue
            default = info.get_default(call_default_factory=True)
            if getattr(self, name) != default:
                return False
        return True

    def short_value(self) -> Any:
        return getattr(self, self.primary_field)

    @model_serializer(mode="wrap")
    def _collapse_short_form(self, handler):
        if self.is_short():
            return self.short_value()
        return handler(self)


def _string_or_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return value


def _scalar_to_string(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int | float):
        return str(value)
    return value


StringOrList = Annotated[list[str], BeforeValidator(_string_or_list)]
"""A list of strings that may also be written as a single string."""

ScalarString = Annotated[str, BeforeValidator(_scalar_to_string)]
"""A string value that tolerates numeric and boolean YAML scalars."""


def stringify(value: Any) -> str:
    """Render a loaded YAML scalar the way it was written in the document."""
    if value is None:
        return ""
    return str(_scalar_to_string(value))
