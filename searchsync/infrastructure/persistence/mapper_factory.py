"""Mappers derived from SQLAlchemy declarative metadata."""

import logging
from typing import Any, TypeVar

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    Integer,
    Numeric,
    String,
    Uuid,
    inspect,
)
from sqlalchemy.orm import Mapper as OrmMapper
from sqlalchemy.types import TypeEngine

from searchsync.domain.index.model.mapper import ChangeFeedSource, Mapper
from searchsync.domain.index.model.searchable import (
    SearchableInfo,
    qualified_name,
    searchable_info,
)
from searchsync.domain.shared.error import MappingError
from searchsync.util.serialization import json_safe

logger = logging.getLogger(__name__)

M = TypeVar("M")

# Order matters: Enum is a String and Float is a Numeric.
_FIELD_TYPES: list[tuple[type[TypeEngine], dict[str, Any]]] = [
    (Boolean, {"type": "boolean"}),
    (Enum, {"type": "keyword"}),
    (String, {"type": "text"}),
    (Integer, {"type": "long"}),
    (Float, {"type": "double"}),
    (Numeric, {"type": "double"}),
    (DateTime, {"type": "date"}),
    (Date, {"type": "date"}),
    (Uuid, {"type": "keyword"}),
    (JSON, {"type": "object"}),
]
_FALLBACK = {"type": "keyword"}

ID_SEPARATOR = ":"


def field_type(column_type: TypeEngine) -> dict[str, Any]:
    """Engine field mapping for a SQLAlchemy column type."""
    for sa_type, mapping in _FIELD_TYPES:
        if isinstance(column_type, sa_type):
            return dict(mapping)
    return dict(_FALLBACK)


class DeclarativeMapper(Mapper[M]):
    """Maps a declarative model's column attributes onto document fields.

    Classes can adjust the derived mapping with two optional attributes:
    ``__search_mapping__`` (field name -> engine mapping, overriding the
    derived one) and ``__search_exclude__`` (field names left out).
    """

    def __init__(self, domain_type: type[M], info: SearchableInfo, orm_mapper: OrmMapper) -> None:
        super().__init__(domain_type)
        self._info = info
        self._orm_mapper = orm_mapper

        excluded = set(getattr(domain_type, "__search_exclude__", ()))
        overrides: dict[str, Any] = dict(getattr(domain_type, "__search_mapping__", {}))

        self._fields: list[str] = []
        properties: dict[str, Any] = {}
        for attr in orm_mapper.column_attrs:
            if attr.key in excluded:
                continue
            self._fields.append(attr.key)
            properties[attr.key] = overrides.pop(attr.key, None) or field_type(
                attr.columns[0].type
            )
        if overrides:
            raise MappingError(
                f"{qualified_name(domain_type)} overrides unknown fields {sorted(overrides)}",
                domain_type=domain_type,
            )
        self._properties = properties

    @property
    def type_name(self) -> str:
        return self._info.type_name or self.domain_type.__name__.lower()

    @property
    def field_mapping(self) -> dict[str, Any]:
        return {"properties": {name: dict(spec) for name, spec in self._properties.items()}}

    @property
    def change_feed(self) -> ChangeFeedSource | None:
        return self._info.change_feed

    @property
    def fields(self) -> list[str]:
        return list(self._fields)

    def document(self, obj: M) -> dict[str, Any]:
        return {name: json_safe(getattr(obj, name)) for name in self._fields}

    def document_id(self, obj: M) -> str:
        identity = self._orm_mapper.primary_key_from_instance(obj)
        if any(part is None for part in identity):
            raise MappingError(
                f"{qualified_name(self.domain_type)} instance has no identifier yet",
                domain_type=self.domain_type,
            )
        return ID_SEPARATOR.join(str(part) for part in identity)


class DeclarativeMapperFactory:
    """MapperFactory for SQLAlchemy declarative classes marked @searchable."""

    def get_mapper(self, domain_type: type[M]) -> Mapper[M]:
        info = searchable_info(domain_type)
        if info is None:
            raise MappingError(
                f"{qualified_name(domain_type)} is not marked @searchable", domain_type=domain_type
            )

        orm_mapper = inspect(domain_type, raiseerr=False)
        if not isinstance(orm_mapper, OrmMapper):
            raise MappingError(
                f"{qualified_name(domain_type)} is not a mapped class", domain_type=domain_type
            )
        if not orm_mapper.primary_key:
            raise MappingError(
                f"{qualified_name(domain_type)} has no primary key", domain_type=domain_type
            )

        mapper = DeclarativeMapper(domain_type, info, orm_mapper)
        logger.debug(f"Built mapper for {qualified_name(domain_type)}: {mapper.type_name}")
        return mapper
