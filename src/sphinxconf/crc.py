"""Class-name checksums used to tag and resolve polymorphic search results."""

import zlib
from typing import Dict, Iterable, List

from .errors import CrcCollisionError
from .models import ModelDescriptor


def crc32(name: str) -> int:
    """Unsigned 32-bit CRC of a class name (stable across processes)."""
    return zlib.crc32(name.encode("utf-8")) & 0xFFFFFFFF


class CrcIndex:
    """Maps every indexable class name to its checksum and back.

    Subclasses declared on a descriptor (single-table inheritance) are
    included, since their rows come back from the same index.
    """

    def __init__(self, descriptors: Iterable[ModelDescriptor]):
        self.class_names: List[str] = []
        for descriptor in descriptors:
            for name in [descriptor.name, *descriptor.subclasses]:
                if name not in self.class_names:
                    self.class_names.append(name)

    def crc(self, name: str) -> int:
        return crc32(name)

    def models_by_crc(self) -> Dict[int, str]:
        """
        Build the checksum to class name mapping.

        Returns:
            Dict of crc -> class name for every known class

        Raises:
            CrcCollisionError: If two distinct names share a checksum
        """
        mapping: Dict[int, str] = {}
        for name in self.class_names:
            code = crc32(name)
            existing = mapping.get(code)
            if existing is not None and existing != name:
                raise CrcCollisionError(code, existing, name)
            mapping[code] = name
        return mapping

    def check(self) -> None:
        """Fail fast on collisions without keeping the mapping."""
        self.models_by_crc()
