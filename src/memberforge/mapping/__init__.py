"""Bidirectional mapping between typed entities and storage rows."""

from memberforge.mapping.codecs import (
    BindCodec,
    ChoiceCodec,
    Codec,
    DateCodec,
    DateTimeCodec,
    TextCodec,
)
from memberforge.mapping.mapper import EntityMapper, FieldMapping

__all__ = [
    "BindCodec",
    "ChoiceCodec",
    "Codec",
    "DateCodec",
    "DateTimeCodec",
    "EntityMapper",
    "FieldMapping",
    "TextCodec",
]
