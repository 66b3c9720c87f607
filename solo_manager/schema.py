# /*
# Copyright 2026 The Solo Manager Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Versioned schemas and the forward migration engine."""

from __future__ import annotations

import copy
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from solo_manager import logger as package_logger
from solo_manager.errors import (
    ForwardIncompatibleSchemaError,
    IllegalArgumentError,
    InvalidSchemaVersionError,
    MissingMigrationError,
    SchemaDefinitionError,
)
from solo_manager.mapper import ObjectMapper

T = TypeVar("T")

SCHEMA_VERSION_KEY = "schemaVersion"


@dataclass(frozen=True)
class VersionRange:
    """Half-open range ``[begin, end)`` of integer schema versions."""

    begin: int
    end: int

    def __post_init__(self) -> None:
        if self.begin >= self.end:
            raise IllegalArgumentError(f"Invalid version range [{self.begin}, {self.end})")

    @classmethod
    def from_integer_version(cls, version: int) -> VersionRange:
        return cls(version, version + 1)

    def contains(self, version: int) -> bool:
        return self.begin <= version < self.end

    def __str__(self) -> str:
        return f"[{self.begin}, {self.end})"


def document_version(document: dict, default: int = 0) -> int:
    """Read the declared schema version of a plain document.

    Raises:
        InvalidSchemaVersionError: If the declared version is not an integer.
    """
    version = document.get(SCHEMA_VERSION_KEY)
    if version is None:
        return default
    if isinstance(version, bool) or not isinstance(version, int):
        raise InvalidSchemaVersionError(version, default)
    return version


class SchemaMigration(ABC):
    """One step of a migration chain, turning version N into N+1."""

    @property
    @abstractmethod
    def range(self) -> VersionRange:
        """Versions this step accepts as input."""

    @property
    @abstractmethod
    def version(self) -> int:
        """Version this step produces."""

    @abstractmethod
    def _apply(self, document: dict) -> None:
        """Rewrite *document* in place; it is already a private copy."""

    def migrate(self, source: dict) -> dict:
        """Return a migrated deep copy of *source*.

        Raises:
            IllegalArgumentError: If *source* is empty.
            InvalidSchemaVersionError: If the declared version is outside ``range``.
        """
        if source is None:
            raise IllegalArgumentError("source must not be null")
        declared = document_version(source)
        if not self.range.contains(declared):
            raise InvalidSchemaVersionError(declared, self.range.begin)
        document = copy.deepcopy(source)
        self._apply(document)
        document[SCHEMA_VERSION_KEY] = self.version
        return document


class Schema(ABC, Generic[T]):
    """A versioned document type with its migration chain.

    Subclasses set ``name``, ``version``, ``model`` and ``migrations``.
    """

    name: str
    version: int
    model: type[T]
    migrations: tuple[SchemaMigration, ...] = ()

    def __init__(self, mapper: ObjectMapper | None = None, logger: logging.Logger | None = None) -> None:
        self._mapper = mapper or ObjectMapper()
        self._logger = logger or package_logger

    def transform(self, data: dict | T, source_version: int | None = None) -> T:
        """Migrate *data* to the current version and map it to ``model``.

        Args:
            data: A plain document, or an instance of ``model``.
            source_version: Version to assume when the document declares none.

        Returns:
            The typed model instance.
        """
        if isinstance(data, self.model):
            data = self._mapper.to_object(data)
        return self._mapper.from_object(self.model, self.migrate(data, source_version))

    def migrate(self, data: dict, source_version: int | None = None) -> dict:
        """Migrate a plain document forward to the current version.

        Raises:
            ForwardIncompatibleSchemaError: If the document is newer than ``version``.
            MissingMigrationError: If a link of the chain is missing.
            SchemaDefinitionError: If a step produces an unexpected version.
        """
        if data is None:
            raise IllegalArgumentError("data must not be null")
        document = copy.deepcopy(data)
        current = document_version(document, source_version or 0)
        if current > self.version:
            raise ForwardIncompatibleSchemaError(self.name, current, self.version)
        if SCHEMA_VERSION_KEY not in document:
            document[SCHEMA_VERSION_KEY] = current

        while current < self.version:
            step = self._find_migration(current)
            if step is None:
                raise MissingMigrationError(self.name, current)
            self._logger.debug("Migrating %s from version %d to %d", self.name, current, step.version)
            document = step.migrate(document)
            produced = document_version(document)
            if produced != step.version or produced <= current:
                raise SchemaDefinitionError(
                    f"Migration of '{self.name}' from {current} produced version {produced}")
            current = produced
        return document

    def _find_migration(self, version: int) -> SchemaMigration | None:
        for step in sorted(self.migrations, key=lambda m: m.range.begin):
            if step.range.contains(version):
                return step
        return None

    def needs_migration(self, data: dict) -> bool:
        return document_version(data) != self.version

    def validate_migrations(self) -> None:
        """Check that the chain from version 0 reaches ``version`` without gaps.

        Raises:
            SchemaDefinitionError: On duplicate targets or a broken chain.
        """
        targets = [m.version for m in self.migrations]
        if len(targets) != len(set(targets)):
            raise SchemaDefinitionError(f"Schema '{self.name}' has duplicate migration targets: {targets}")
        current = 0
        while current < self.version:
            step = self._find_migration(current)
            if step is None:
                raise SchemaDefinitionError(f"Schema '{self.name}' has no migration from version {current}")
            if step.version <= current:
                raise SchemaDefinitionError(f"Schema '{self.name}' migration from {current} does not advance")
            current = step.version
        if current != self.version:
            raise SchemaDefinitionError(
                f"Schema '{self.name}' migrations end at {current}, expected {self.version}")

    def to_object(self, instance: T) -> dict[str, Any]:
        return self._mapper.to_object(instance)
