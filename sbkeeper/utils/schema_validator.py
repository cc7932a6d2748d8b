#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2025 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""Schema based configuration validation and commented templates.

Configurations are validated with JSON schemas compiled by fastjsonschema. The
same schemas carry titles, descriptions and template values used to export
a commented YAML template of the configuration.
"""

import copy
import io
import logging
import os
import re
import textwrap
from typing import Any, Callable, Optional, Union

import fastjsonschema
from deepmerge import Merger, always_merger
from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap as CMap
from ruamel.yaml.comments import CommentedSeq as CSeq

from sbkeeper import SBKEEPER_YML_INDENT
from sbkeeper.exceptions import SBKConfigError, SBKError
from sbkeeper.utils.misc import find_dir, find_file

logger = logging.getLogger(__name__)


class SBKMerger(Merger):
    """Configuration merger, nested dictionaries are merged and lists are replaced."""

    def __init__(self) -> None:
        super().__init__([(dict, ["merge"]), (list, ["override"])], ["override"], ["override"])


def _is_digest(param: Any) -> bool:
    return isinstance(param, str) and bool(re.fullmatch("[0-9a-fA-F]{64}", param))


def _is_guid(param: Any) -> bool:
    return isinstance(param, str) and bool(
        re.fullmatch(
            "[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}", param
        )
    )


def _print_validation_fail_reason(exc: fastjsonschema.JsonSchemaValueException) -> str:
    """Format schema validation failure into human readable message.

    :param exc: The schema validation exception to process.
    :return: Formatted error message explaining the validation failure reason.
    """
    message = str(exc)
    if exc.rule == "required":
        missing = filter(lambda x: x not in exc.value.keys(), exc.rule_definition)
        message += f"; Missing field(s): {', '.join(missing)}"
    elif exc.rule == "format":
        if exc.rule_definition == "file":
            message += f"; Non-existing file: {exc.value}"
        elif exc.rule_definition == "dir":
            message += f"; Non-existing directory: {exc.value}"
        elif exc.rule_definition == "guid":
            message += f"; Value '{exc.value}' is not a GUID"
    elif exc.rule == "additionalProperties":
        message += "; Check the configuration for misspelled keys"
    return message


def check_config(
    config: dict[str, Any],
    schemas: list[dict[str, Any]],
    extra_formatters: Optional[dict[str, Callable[[str], bool]]] = None,
    search_paths: Optional[list[str]] = None,
) -> None:
    """Check the configuration by provided list of validation schemas.

    :param config: Configuration dictionary to validate.
    :param schemas: List of schema dictionaries, merged together before validation.
    :param extra_formatters: Additional custom format validators.
    :param search_paths: List of directories to search for files during validation.
    :raises SBKError: Invalid validation schema.
    :raises SBKConfigError: Configuration validation failed.
    """
    custom_formatters: dict[str, Callable[[str], bool]] = {
        "dir": lambda x: bool(find_dir(x, search_paths=search_paths, raise_exc=False)),
        "file": lambda x: bool(find_file(x, search_paths=search_paths, raise_exc=False)),
        "file_name": lambda x: os.path.basename(x.replace("\\", "/")) not in ("", None),
        "optional_file": lambda x: not x
        or bool(find_file(x, search_paths=search_paths, raise_exc=False)),
        "digest": _is_digest,
        "guid": _is_guid,
    }

    schema: dict[str, Any] = {}
    for sch in schemas:
        always_merger.merge(schema, copy.deepcopy(sch))
    formats = always_merger.merge(custom_formatters, extra_formatters or {})

    try:
        validator = fastjsonschema.compile(schema, formats=formats)
    except (TypeError, fastjsonschema.JsonSchemaDefinitionException) as exc:
        raise SBKError(f"Invalid validation schema to check config: {str(exc)}") from exc
    try:
        validator(copy.deepcopy(config))
    except fastjsonschema.JsonSchemaValueException as exc:
        message = _print_validation_fail_reason(exc)
        raise SBKConfigError(f"Configuration validation failed: {message}") from exc


class CommentedConfig:
    """Configuration template generator.

    Every schema property becomes a YAML key, its value is taken from
    ``template_value`` (or ``default``) and its title and description are written
    as a comment block above it.

    :cvar MAX_LINE_LENGTH: Maximum line length of generated comments.
    """

    MAX_LINE_LENGTH = 100 - 2  # Minus '# '

    def __init__(self, main_title: str, schemas: list[dict[str, Any]]) -> None:
        """Initialize configuration template generator.

        :param main_title: Main title of the generated configuration template.
        :param schemas: Schemas describing the configuration.
        """
        self.main_title = main_title
        self.schemas = schemas
        self.indent = 0

    @property
    def max_line(self) -> int:
        """Maximum comment line length adjusted for current indentation level."""
        return self.MAX_LINE_LENGTH - max(SBKEEPER_YML_INDENT * (self.indent - 1), 0)

    def _get_value(self, block: dict[str, Any]) -> Any:
        if block.get("type") == "object" and "properties" in block and "template_value" not in block:
            return self._create_object_block(block)
        value = copy.deepcopy(block.get("template_value", block.get("default")))
        if isinstance(value, dict):
            ret = CMap()
            ret.update(value)
            return ret
        if isinstance(value, list):
            return CSeq(value)
        if value is None:
            return "" if block.get("type") == "string" else None
        return value

    def _add_comment(self, cfg: CMap, key: str, block: dict[str, Any], required: bool) -> None:
        title = block.get("title", key)
        comment = f"===== {title} [{'Required' if required else 'Optional'}] =====".center(
            self.max_line, "-"
        )
        description = block.get("description")
        if description:
            comment += "\n" + textwrap.fill("Description: " + description, width=self.max_line)
        enum = block.get("enum")
        if enum:
            comment += "\n" + textwrap.fill(
                "Possible options: <" + ", ".join(str(x) for x in enum) + ">",
                width=self.max_line,
            )
        cfg.yaml_set_comment_before_after_key(
            key, comment, indent=SBKEEPER_YML_INDENT * (self.indent - 1)
        )

    def _create_object_block(self, block: dict[str, Any]) -> CMap:
        self.indent += 1
        required = block.get("required", [])
        cfg = CMap()
        for key, val_p in block["properties"].items():
            if val_p.get("skip_in_template", False):
                continue
            cfg[key] = self._get_value(val_p)
            self._add_comment(cfg, key, val_p, key in required)
        self.indent -= 1
        return cfg

    def export(self) -> CMap:
        """Export configuration template into commented map.

        :raises SBKError: Template generation failed.
        :return: Configuration template.
        """
        merged: dict[str, Any] = {}
        for schema in self.schemas:
            always_merger.merge(merged, copy.deepcopy(schema))
        if "properties" not in merged:
            raise SBKError("Template generation failed: schema has no properties")
        self.indent = 0
        cfg = self._create_object_block(merged)
        cfg.yaml_set_start_comment(f"  {self.main_title}  ".center(self.MAX_LINE_LENGTH, "=") + "\n")
        return cfg

    def get_template(self) -> str:
        """Export configuration template into YAML string.

        :return: Commented configuration template.
        """
        return self.convert_cm_to_yaml(self.export())

    @staticmethod
    def convert_cm_to_yaml(config: Union[CMap, dict]) -> str:
        """Convert commented map into final YAML string.

        :param config: Configuration in commented map format.
        :raises SBKError: Configuration is empty.
        :return: YAML string.
        """
        if not config:
            raise SBKError("Configuration cannot be empty")
        yaml = YAML(pure=True)
        yaml.indent(sequence=SBKEEPER_YML_INDENT * 2, offset=SBKEEPER_YML_INDENT)
        yaml.width = 200
        stream = io.StringIO()
        yaml.dump(config, stream)
        return stream.getvalue()
