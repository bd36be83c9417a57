from collections.abc import Mapping
from dataclasses import asdict, fields, is_dataclass
from typing import Any, TypeVar

T = TypeVar("T")


class EntityMixin:
    @classmethod
    def from_dict(cls: type[T], data: dict[str, Any]) -> T:
        """
        Cria uma instância da entidade a partir de um dict.
        """
        return cls(**data)

    def to_dict(self) -> dict[str, Any]:
        """
        Converte a entidade em dict, recursivamente se for dataclass.
        """
        return asdict(self)

    @classmethod
    def from_row(cls: type[T], row: Mapping[str, Any]) -> T:
        """
        Cria uma entidade a partir de uma linha SQLAlchemy (`result.mappings()`).
        Colunas sem campo correspondente na dataclass são ignoradas.
        """
        if not is_dataclass(cls):
            raise TypeError(f"{cls.__name__} deve ser um dataclass")
        data: dict[str, Any] = {}
        for f in fields(cls):
            if f.name in row:
                data[f.name] = row[f.name]
        return cls(**data)
