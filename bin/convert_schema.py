#!/usr/bin/env python3
"""Convert a legacy plugin schema into JSON Schema (2020-12) documents."""
import os
import re
import sys
import json
import argparse

from schema_node import ABSENT, build_root_schema

SCHEMA_DIR = "schema"
DEFAULT_SCHEMA_TYPE = "component"

# http://localhost/plugins/content/component/model.schema -> component
MODEL_SCHEMA_RE = re.compile(r'/content/([^/]+)/model\.schema$')
# course.model.schema -> course
MODEL_FILE_RE = re.compile(r'^([^.]+)\.model\.schema$')


class ConvertError(Exception):
    pass


class ConfigurationError(ConvertError):
    pass


class InputReadError(ConvertError):
    pass


def load_input(input_path):
    try:
        with open(input_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise InputReadError(f"Failed to read {input_path}: {e}") from e

    if not isinstance(data, dict):
        raise InputReadError(f"Failed to read {input_path}: expected a JSON object")
    return data


def save_new_json(data, path):
    """Writes data to path; raises FileExistsError if the file is already there."""
    content = json.dumps(data, indent=2) + '\n'
    with open(path, 'x', encoding='utf-8') as f:
        f.write(content)


def get_schema_type(input_schema, input_path=None):
    """Works out which schema family the legacy schema contributes to."""
    ref = input_schema.get('$ref')
    if isinstance(ref, str):
        match = MODEL_SCHEMA_RE.search(ref)
        if match:
            return match.group(1)

    if input_path:
        match = MODEL_FILE_RE.match(os.path.basename(input_path))
        if match:
            return match.group(1)

    return DEFAULT_SCHEMA_TYPE


def get_theme_variables(properties):
    variables = properties.get('variables')
    if not isinstance(variables, dict):
        return {}
    # Either a bare mapping of variables or an object descriptor wrapping them
    if variables.get('type') == 'object' and isinstance(variables.get('properties'), dict):
        return variables['properties']
    return variables


def get_sections(input_schema, schema_type):
    """
    Splits a legacy schema into one root fragment per target schema type.
    {
      "component": {"properties": {...}},
      "course": {"properties": {...}, "globals": {...}}
    }
    """
    properties = input_schema.get('properties')
    if not isinstance(properties, dict):
        properties = {}

    sections = {}

    if schema_type == 'extension':
        locations = (properties.get('pluginLocations') or {}).get('properties') or {}
        for location_type, location in locations.items():
            if isinstance(location, dict):
                sections[location_type] = {"properties": location.get('properties', {})}
    elif schema_type == 'theme':
        sections['theme'] = {"properties": get_theme_variables(properties)}
    else:
        sections[schema_type] = {"properties": properties}

    globals_ = input_schema.get('globals')
    if globals_:
        sections.setdefault('course', {})['globals'] = globals_

    return sections


def get_output_path(schema_type, cwd="."):
    return os.path.join(cwd, SCHEMA_DIR, f"{schema_type}.schema.json")


def construct(schema_type, input_schema, input_id, cwd=".", logger=print):
    """Returns (output_schema, output_path); output_schema is None if there is nothing to write."""
    output_schema = build_root_schema(input_schema, schema_type, input_id, logger=logger)
    output_path = get_output_path(schema_type, cwd)
    if output_schema is ABSENT:
        return None, output_path
    return output_schema, output_path


def write_schema(output_schema, output_path, logger=print):
    """Writes output_schema unless a file already exists at output_path."""
    if output_schema is None:
        return False

    os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
    try:
        save_new_json(output_schema, output_path)
    except FileExistsError:
        logger(f" -> Skipping {output_path} (already exists)")
        return False
    logger(f"converted JSON schema written to {output_path}")
    return True


def convert(input_path, input_id, cwd=".", logger=print):
    """Runs a full conversion and returns the paths that were written."""
    if not input_path:
        raise ConfigurationError("No input path specified")
    if not input_id:
        raise ConfigurationError("No ID specified")

    input_schema = load_input(os.path.join(cwd, input_path))
    schema_type = get_schema_type(input_schema, input_path)
    logger(f"Converting {input_path} ({schema_type})...")

    written = []
    for section_type, section in get_sections(input_schema, schema_type).items():
        output_schema, output_path = construct(section_type, section, input_id, cwd, logger)
        if output_schema is None:
            logger(f"{section_type}: nothing to convert")
            continue
        if write_schema(output_schema, output_path, logger):
            written.append(output_path)

    return written


def main():
    parser = argparse.ArgumentParser(description="Convert a legacy plugin schema to JSON Schema 2020-12")
    parser.add_argument("input", nargs="?", help="Legacy schema file (e.g. properties.schema)")
    parser.add_argument("--id", dest="input_id", help="Identifier of the plugin that owns the schema")
    parser.add_argument("--cwd", default=".", help="Plugin root; output goes to <cwd>/schema/")
    args = parser.parse_args()

    try:
        convert(args.input, args.input_id, cwd=args.cwd)
    except ConvertError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
