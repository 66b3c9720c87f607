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

"""Exception hierarchy for configuration, resource, and lock failures."""

from __future__ import annotations

from dataclasses import dataclass


class SoloError(Exception):
    """Base class for all errors raised by solo_manager.

    Attributes:
        cause: The underlying exception, if this error wraps another one.
    """

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause


class IllegalArgumentError(SoloError):
    """An argument was empty, malformed, or otherwise unusable."""


class HelmError(SoloError):
    """A helm invocation failed."""


# ============================================================================
# Schema errors
# ============================================================================

class SchemaError(SoloError):
    """Base class for schema and migration failures."""


class InvalidSchemaVersionError(SchemaError):
    """A migration received a document whose version it does not accept."""

    def __init__(self, found: int | None, expected: int, cause: BaseException | None = None) -> None:
        super().__init__(f"Invalid schema version: found {found}, expected {expected}", cause)
        self.found = found
        self.expected = expected


class MissingMigrationError(SchemaError):
    """No migration accepts an intermediate document version."""

    def __init__(self, schema_name: str, version: int) -> None:
        super().__init__(f"No migration found for schema '{schema_name}' at version {version}")
        self.schema_name = schema_name
        self.version = version


class ForwardIncompatibleSchemaError(SchemaError):
    """A stored document is newer than the schema this tool understands."""

    def __init__(self, schema_name: str, version: int, current: int) -> None:
        super().__init__(
            f"Schema '{schema_name}' document version {version} is newer than the supported "
            f"version {current}; upgrade the tool to read it"
        )
        self.schema_name = schema_name
        self.version = version
        self.current = current


class SchemaDefinitionError(SchemaError):
    """The migration chain of a schema is inconsistent."""


class ObjectMappingError(SoloError):
    """Converting between plain objects and model instances failed."""


# ============================================================================
# Validation errors
# ============================================================================

@dataclass(frozen=True)
class Violation:
    """A single field-level validation failure.

    Attributes:
        field: Dotted path of the offending field.
        message: Human readable description.
    """

    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


class ValidationError(SoloError):
    """A document failed structural validation."""

    def __init__(self, message: str, violations: list[Violation] | None = None) -> None:
        self.violations = list(violations or [])
        if self.violations:
            message = f"{message}: " + "; ".join(str(v) for v in self.violations)
        super().__init__(message)


class LocalConfigValidationError(ValidationError):
    """The local config document is invalid."""


class RemoteConfigValidationError(ValidationError):
    """The remote config document is invalid."""


# ============================================================================
# Resource errors
# ============================================================================

class ResourceError(SoloError):
    """A Kubernetes resource operation failed.

    Attributes:
        resource_type: Kind of resource (e.g. ``configmap``).
        namespace: Namespace of the resource, if namespaced.
        name: Name of the resource.
    """

    operation = "access"

    def __init__(
        self,
        resource_type: str,
        namespace: str | None,
        name: str | None,
        cause: BaseException | None = None,
        detail: str = "",
    ) -> None:
        location = f"{resource_type} '{name}'" if name else resource_type
        if namespace:
            location += f" in namespace '{namespace}'"
        message = f"Failed to {self.operation} {location}"
        if detail:
            message += f": {detail}"
        super().__init__(message, cause)
        self.resource_type = resource_type
        self.namespace = namespace
        self.name = name


class ResourceNotFoundError(ResourceError):
    operation = "find"


class ResourceCreateError(ResourceError):
    operation = "create"


class ResourceReadError(ResourceError):
    operation = "read"


class ResourceReplaceError(ResourceError):
    operation = "replace"


class ResourceDeleteError(ResourceError):
    operation = "delete"


# ============================================================================
# Component errors
# ============================================================================

class ComponentNotFoundError(SoloError):
    """A component lookup by type and id found nothing."""

    def __init__(self, component_type: str, component_id: int, action: str = "read") -> None:
        super().__init__(
            f"Component {component_id} of type {component_type} not found while attempting to {action}"
        )
        self.component_type = component_type
        self.component_id = component_id


class ComponentExistsError(SoloError):
    """A component with the same type and id is already registered."""

    def __init__(self, component_type: str, component_id: int) -> None:
        super().__init__(f"Component exists: {component_type} with id {component_id}")
        self.component_type = component_type
        self.component_id = component_id


class InvalidPhaseTransitionError(SoloError):
    """A lifecycle phase change is not allowed."""

    def __init__(self, subject: str, current: str, target: str) -> None:
        super().__init__(f"Invalid phase transition for {subject}: {current} -> {target}")
        self.current = current
        self.target = target


class ComponentValidationError(SoloError):
    """A remote config component has no matching live pod."""

    def __init__(self, component_type: str, name: str, namespace: str, cluster: str) -> None:
        super().__init__(
            f"{component_type} in remote config with name {name} was not found in "
            f"namespace: {namespace}, cluster: {cluster}"
        )
        self.component_type = component_type
        self.name = name
        self.namespace = namespace
        self.cluster = cluster


# ============================================================================
# Lock errors
# ============================================================================

class LockError(SoloError):
    """Base class for lease lock failures."""


class LockAcquisitionError(LockError):
    """The lease is held by somebody else."""


class LockRenewalError(LockError):
    """The lease could not be extended."""


class LockRelinquishmentError(LockError):
    """The lease could not be released."""


# ============================================================================
# Remote config lifecycle
# ============================================================================

class RemoteConfigNotLoadedError(SoloError):
    """A projection was requested before the remote config was loaded."""

    def __init__(self) -> None:
        super().__init__("Remote config is not loaded")


class RemoteConfigExistsError(SoloError):
    """A remote config already exists where a new one was to be created."""

    def __init__(self, namespace: str, context: str | None = None) -> None:
        where = f"namespace '{namespace}'"
        if context:
            where += f" (context '{context}')"
        super().__init__(f"Remote config already exists in {where}")
        self.namespace = namespace
        self.context = context
