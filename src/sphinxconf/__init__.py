"""Configuration generation and client construction for the Sphinx search daemon."""

__version__ = "0.1.0"

from sphinxconf.client import SearchClient, build_client
from sphinxconf.configuration import Configuration, get_configuration, reset_configuration
from sphinxconf.crc import CrcIndex, crc32
from sphinxconf.errors import (
    ConfigurationLoadError,
    CrcCollisionError,
    EmptyAddressError,
    RenderError,
    SphinxConfError,
    VersionProbeError,
)
from sphinxconf.models import (
    AssociationDescriptor,
    AttributeDescriptor,
    FieldDescriptor,
    ModelDescriptor,
)

__all__ = [
    "__version__",
    "Configuration",
    "get_configuration",
    "reset_configuration",
    "SearchClient",
    "build_client",
    "CrcIndex",
    "crc32",
    "ModelDescriptor",
    "FieldDescriptor",
    "AttributeDescriptor",
    "AssociationDescriptor",
    "SphinxConfError",
    "ConfigurationLoadError",
    "CrcCollisionError",
    "RenderError",
    "EmptyAddressError",
    "VersionProbeError",
]
