"""
Descriptors of indexable models.

The host application introspects its ORM and hands these to the builder;
they are rebuilt for every generate/build call and never persisted here.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, get_args

import yaml

from .errors import ConfigurationLoadError


AttributeType = Literal[
    "uint", "bigint", "bool", "float", "timestamp", "str2ordinal", "string", "multi"
]
ATTRIBUTE_TYPES = get_args(AttributeType)
ASSOCIATION_MACROS = ("belongs_to", "has_many")


def snake_case(name: str) -> str:
    """Index-safe name for a class name.

    Examples:
        >>> snake_case("Person")
        'person'
        >>> snake_case("Admin::UserProfile")
        'admin_user_profile'
    """
    name = name.replace("::", "_")
    name = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
    name = re.sub(r"([a-z\d])([A-Z])", r"\1_\2", name)
    return name.lower()


@dataclass
class FieldDescriptor:
    """A full-text field.

    Attributes:
        name: Field name as seen by the daemon
        column: Source column (defaults to name)
        association: Association the column is read through (None = model table)
        prefixes: Index for prefix matching
        infixes: Index for infix matching
        sortable: Also expose a str2ordinal ``<name>_sort`` attribute
    """
    name: str
    column: Optional[str] = None
    association: Optional[str] = None
    prefixes: bool = False
    infixes: bool = False
    sortable: bool = False

    @property
    def source_column(self) -> str:
        return self.column or self.name


@dataclass
class AttributeDescriptor:
    """A filterable/sortable attribute."""
    name: str
    type: AttributeType = "uint"
    column: Optional[str] = None
    association: Optional[str] = None

    @property
    def source_column(self) -> str:
        return self.column or self.name


@dataclass
class AssociationDescriptor:
    """A joined table.

    ``belongs_to`` joins on ``<alias>.<primary_key> = <model>.<foreign_key>``;
    ``has_many`` joins on ``<alias>.<foreign_key> = <model>.<primary key>``
    and forces aggregation of its columns.
    """
    name: str
    table: str
    foreign_key: str
    macro: Literal["belongs_to", "has_many"] = "belongs_to"
    primary_key: str = "id"


@dataclass
class ModelDescriptor:
    """Everything the builder needs to know about one indexable model."""
    name: str
    table: Optional[str] = None
    primary_key: str = "id"
    fields: List[FieldDescriptor] = field(default_factory=list)
    attributes: List[AttributeDescriptor] = field(default_factory=list)
    associations: List[AssociationDescriptor] = field(default_factory=list)
    conditions: List[str] = field(default_factory=list)
    delta: bool = False
    # Descriptors sharing a distributed_name are aggregated into one
    # distributed index; None means the model's own index name.
    distributed_name: Optional[str] = None
    index_options: Dict[str, Any] = field(default_factory=dict)
    source_options: Dict[str, Any] = field(default_factory=dict)
    subclasses: List[str] = field(default_factory=list)
    inheritance_column: str = "type"

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Check attribute types and that every association used is declared.

        Raises:
            ConfigurationLoadError: On the first problem found
        """
        declared = set()
        for assoc in self.associations:
            if assoc.macro not in ASSOCIATION_MACROS:
                raise ConfigurationLoadError(
                    f"{self.name}: association '{assoc.name}' has unknown macro '{assoc.macro}'"
                )
            declared.add(assoc.name)

        for attribute in self.attributes:
            if attribute.type not in ATTRIBUTE_TYPES:
                raise ConfigurationLoadError(
                    f"{self.name}: attribute '{attribute.name}' has unknown type '{attribute.type}'"
                )

        for column in [*self.fields, *self.attributes]:
            if column.association is not None and column.association not in declared:
                raise ConfigurationLoadError(
                    f"{self.name}: '{column.name}' reads through undeclared association "
                    f"'{column.association}'"
                )

    @property
    def index_name(self) -> str:
        return snake_case(self.name)

    @property
    def table_name(self) -> str:
        return self.table or f"{self.index_name}s"

    @property
    def core_name(self) -> str:
        return f"{self.index_name}_core"

    @property
    def delta_name(self) -> str:
        return f"{self.index_name}_delta"

    @property
    def group_name(self) -> str:
        return self.distributed_name or self.index_name

    @property
    def prefix_fields(self) -> List[str]:
        return [f.name for f in self.fields if f.prefixes]

    @property
    def infix_fields(self) -> List[str]:
        return [f.name for f in self.fields if f.infixes]

    def association(self, name: str) -> AssociationDescriptor:
        for assoc in self.associations:
            if assoc.name == name:
                return assoc
        raise KeyError(f"{self.name} has no association named {name!r}")

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "ModelDescriptor":
        """Build a descriptor from plain data (e.g., parsed YAML).

        Raises:
            ConfigurationLoadError: If the mapping has unknown or missing keys
        """
        if not isinstance(data, dict):
            raise ConfigurationLoadError(f"Model descriptor must be a mapping, got {type(data).__name__}")

        data = dict(data)
        try:
            data["fields"] = [FieldDescriptor(**f) for f in data.get("fields", [])]
            data["attributes"] = [AttributeDescriptor(**a) for a in data.get("attributes", [])]
            data["associations"] = [AssociationDescriptor(**a) for a in data.get("associations", [])]
            return cls(**data)
        except TypeError as e:
            raise ConfigurationLoadError(f"Invalid model descriptor {data.get('name')!r}: {e}") from e


def load_model_descriptors(path: Path) -> List[ModelDescriptor]:
    """Load model descriptors from a YAML file.

    The file holds a list of descriptor mappings, or a mapping with a
    ``models`` key holding that list.

    Args:
        path: Path to YAML file

    Returns:
        Descriptors in file order

    Raises:
        FileNotFoundError: If the file doesn't exist
        ConfigurationLoadError: If the content has the wrong shape
    """
    if not path.exists():
        raise FileNotFoundError(f"Models file not found: {path}")

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or []

    if isinstance(data, dict):
        data = data.get("models", [])
    if not isinstance(data, list):
        raise ConfigurationLoadError(f"Models file must contain a list: {path}")

    return [ModelDescriptor.from_mapping(item) for item in data]
