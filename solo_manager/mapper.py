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

"""Conversion between plain structures and typed model instances."""

from __future__ import annotations

import copy
import dataclasses
import logging
import re
import types
import typing
from datetime import datetime
from enum import Enum
from typing import Any, TypeVar

from solo_manager import logger as package_logger
from solo_manager.errors import IllegalArgumentError, ObjectMappingError

T = TypeVar("T")

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def to_camel(name: str) -> str:
    """Convert ``snake_case`` to ``camelCase``."""
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def to_snake(name: str) -> str:
    """Convert ``camelCase`` to ``snake_case``."""
    return _CAMEL_BOUNDARY.sub("_", name).lower()


class ObjectMapper:
    """Maps plain dict/list/scalar structures to dataclass models and back.

    Keys are camelCase on the wire and snake_case on the models. Enums are
    stored by value and datetimes as ISO-8601 strings. A class may take over
    its own mapping by defining a ``from_object(cls, data, mapper)``
    classmethod and a ``to_object(self, mapper)`` method.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or package_logger

    # ------------------------------------------------------------------
    # Typed conversion
    # ------------------------------------------------------------------

    def from_object(self, cls: type[T], obj: Any) -> T:
        """Build an instance of *cls* from a plain structure.

        Raises:
            ObjectMappingError: If *obj* does not fit the declared fields of *cls*.
        """
        try:
            return self._load(cls, obj, cls.__name__)
        except ObjectMappingError:
            raise
        except (TypeError, ValueError, KeyError, AttributeError) as err:
            raise ObjectMappingError(
                f"Error converting object to class instance [ cls = '{cls.__name__}' ]: {err}", err
            ) from err

    def to_object(self, instance: Any) -> Any:
        """Render a model instance as plain dicts, lists, and scalars.

        Raises:
            ObjectMappingError: If a value cannot be represented.
        """
        try:
            return self._dump(instance)
        except ObjectMappingError:
            raise
        except (TypeError, ValueError, AttributeError) as err:
            raise ObjectMappingError(
                f"Error converting class instance to object [ cls = '{type(instance).__name__}' ]: {err}", err
            ) from err

    def _load(self, tp: Any, value: Any, path: str) -> Any:
        if tp is Any:
            return copy.deepcopy(value)

        origin = typing.get_origin(tp)
        args = typing.get_args(tp)

        if origin is typing.Union or origin is types.UnionType:
            if value is None:
                return None
            candidates = [a for a in args if a is not type(None)]
            return self._load(candidates[0], value, path)

        if value is None:
            raise ObjectMappingError(f"Missing value for '{path}'")

        if origin in (list, tuple):
            if not isinstance(value, (list, tuple)):
                raise ObjectMappingError(f"Expected a list at '{path}', got {type(value).__name__}")
            item_type = args[0] if args else Any
            items = [self._load(item_type, item, f"{path}.{i}") for i, item in enumerate(value)]
            return items if origin is list else tuple(items)

        if origin is dict:
            if not isinstance(value, dict):
                raise ObjectMappingError(f"Expected a mapping at '{path}', got {type(value).__name__}")
            key_type, value_type = args if args else (Any, Any)
            return {
                self._load(key_type, k, path): self._load(value_type, v, f"{path}.{k}")
                for k, v in value.items()
            }

        if isinstance(tp, type) and hasattr(tp, "from_object") and isinstance(value, dict):
            return tp.from_object(value, self)

        if dataclasses.is_dataclass(tp):
            return self._load_dataclass(tp, value, path)

        if isinstance(tp, type) and issubclass(tp, Enum):
            return tp(value)

        if tp is datetime:
            if isinstance(value, datetime):
                return value
            return datetime.fromisoformat(str(value))

        return self._load_scalar(tp, value, path)

    def _load_dataclass(self, cls: type, value: Any, path: str) -> Any:
        if isinstance(value, cls):
            return copy.deepcopy(value)
        if not isinstance(value, dict):
            raise ObjectMappingError(f"Expected a mapping at '{path}', got {type(value).__name__}")
        hints = typing.get_type_hints(cls)
        kwargs = {}
        for f in dataclasses.fields(cls):
            if not f.init:
                continue
            key = to_camel(f.name)
            if key in value:
                kwargs[f.name] = self._load(hints[f.name], value[key], f"{path}.{key}")
        return cls(**kwargs)

    @staticmethod
    def _load_scalar(tp: Any, value: Any, path: str) -> Any:
        if tp is bool:
            if isinstance(value, bool):
                return value
            if isinstance(value, str) and value.lower() in ("true", "false"):
                return value.lower() == "true"
        elif tp is int:
            if isinstance(value, int) and not isinstance(value, bool):
                return value
            if isinstance(value, str):
                return int(value)
        elif tp is float:
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                return float(value)
            if isinstance(value, str):
                return float(value)
        elif tp is str:
            if isinstance(value, str):
                return value
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                return str(value)
        elif isinstance(value, tp):
            return value
        raise ObjectMappingError(
            f"Expected {getattr(tp, '__name__', tp)} at '{path}', got {type(value).__name__}")

    def _dump(self, value: Any) -> Any:
        if value is None or isinstance(value, (bool, int, float, str)) and not isinstance(value, Enum):
            return value
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, datetime):
            return value.isoformat()
        if hasattr(value, "to_object") and not isinstance(value, type):
            return value.to_object(self)
        if dataclasses.is_dataclass(value) and not isinstance(value, type):
            result = {}
            for f in dataclasses.fields(value):
                item = getattr(value, f.name)
                if item is not None:
                    result[to_camel(f.name)] = self._dump(item)
            return result
        if isinstance(value, (list, tuple)):
            return [self._dump(item) for item in value]
        if isinstance(value, dict):
            return {str(self._dump(k)): self._dump(v) for k, v in value.items()}
        raise ObjectMappingError(f"Unsupported value of type {type(value).__name__}")

    # ------------------------------------------------------------------
    # Flat key maps
    # ------------------------------------------------------------------

    def to_flat_key_map(self, obj: Any) -> dict[str, str]:
        """Flatten *obj* into dotted-path keys with string values.

        ``None`` leaves are omitted and booleans are rendered as ``true``/``false``.
        """
        plain = obj if isinstance(obj, (dict, list)) else self.to_object(obj)
        flat: dict[str, str] = {}
        self._flatten(plain, "", flat)
        return flat

    def _flatten(self, node: Any, prefix: str, out: dict[str, str]) -> None:
        if node is None:
            return
        if isinstance(node, dict):
            for key, value in node.items():
                self._flatten(value, f"{prefix}.{key}" if prefix else str(key), out)
        elif isinstance(node, list):
            for index, value in enumerate(node):
                self._flatten(value, f"{prefix}.{index}" if prefix else str(index), out)
        elif isinstance(node, bool):
            out[prefix] = "true" if node else "false"
        elif isinstance(node, Enum):
            out[prefix] = str(node.value)
        elif isinstance(node, datetime):
            out[prefix] = node.isoformat()
        else:
            out[prefix] = str(node)

    def apply_property_value(self, obj: Any, key: str, value: Any) -> None:
        """Write *value* at the dotted path *key* inside *obj*.

        Intermediate segments may be dict keys, list indices, or attribute
        names (camelCase names are resolved to snake_case attributes).

        Raises:
            IllegalArgumentError: If *obj* is None or *key* is empty.
            ObjectMappingError: If an intermediate is missing or not a container.
        """
        if obj is None:
            raise IllegalArgumentError("obj must not be null")
        if not key or not key.strip():
            raise IllegalArgumentError("key must not be empty")

        parts = key.split(".")
        node = obj
        for depth, part in enumerate(parts[:-1]):
            walked = ".".join(parts[: depth + 1])
            node = self._child(node, part, walked)
            if node is None:
                raise ObjectMappingError(f"Property is null: {walked}")
            if isinstance(node, (str, int, float, bool, Enum, datetime)):
                raise ObjectMappingError(f"Non-terminal property is not an object: {walked}")

        self._assign(node, parts[-1], value, key)
        self._logger.debug("Applied property %s", key)

    @staticmethod
    def _child(node: Any, part: str, walked: str) -> Any:
        if isinstance(node, dict):
            if part not in node:
                raise ObjectMappingError(f"Property not found: {walked}")
            return node[part]
        if isinstance(node, list):
            if not part.isdigit() or int(part) >= len(node):
                raise ObjectMappingError(f"Property not found: {walked}")
            return node[int(part)]
        attr = to_snake(part)
        if not hasattr(node, attr):
            raise ObjectMappingError(f"Property not found: {walked}")
        return getattr(node, attr)

    @staticmethod
    def _assign(node: Any, part: str, value: Any, key: str) -> None:
        if isinstance(node, dict):
            node[part] = value
        elif isinstance(node, list):
            if not part.isdigit() or int(part) > len(node):
                raise ObjectMappingError(f"Invalid list index in {key}")
            if int(part) == len(node):
                node.append(value)
            else:
                node[int(part)] = value
        else:
            attr = to_snake(part)
            if not hasattr(node, attr):
                raise ObjectMappingError(f"Property not found: {key}")
            try:
                setattr(node, attr, value)
            except dataclasses.FrozenInstanceError as err:
                raise ObjectMappingError(f"Property is read-only: {key}", err) from err
