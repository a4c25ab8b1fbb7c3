"""
Builds JSON Schema (2020-12) nodes from legacy plugin schema fragments.

Legacy property definitions carry editor metadata (title, help, inputType,
translatable, ...). Each fragment is turned into a plain dict that can be
dumped straight to JSON. Root documents compose against a base schema with
$merge (core schemas) or $patch (extensions).
"""
import re
from collections import namedtuple
from enum import Enum

JSON_SCHEMA_URI = "https://json-schema.org/draft/2020-12/schema"

# Core schemas merge into the universal content schema
CONTENT_SCHEMA_REF = "content"

# Editor/runtime hints copied into the _adapt namespace
ADAPT_OPTIONS = ("editorOnly", "isSetting", "translatable")

OBJECT_ID_TYPE = "objectid"
ASSET_INPUT_PREFIX = "Asset:"


class _Absent:
    """Marks a field with no value. None is a real (null) value and is kept."""

    def __repr__(self):
        return "ABSENT"


ABSENT = _Absent()

# Fallback defaults for optional fields, keyed by legacy type.
# Factories so every node gets its own mutable default.
TYPE_DEFAULTS = {
    "string": lambda: "",
    "number": lambda: 0,
    "integer": lambda: 0,
    "boolean": lambda: False,
    "object": dict,
    "array": list,
}


class NodeKind(Enum):
    ROOT = "root"
    PROPERTY = "properties"
    ITEMS = "items"


BuildContext = namedtuple(
    "BuildContext",
    ["node_kind", "schema_type", "owner_id", "key", "logger"],
    defaults=(None, None, None, print),
)

FRAGMENT_FIELDS = (
    "type", "title", "legend", "help", "default", "required", "validators",
    "translatable", "editorOnly", "isSetting", "inputType", "originalEnum",
    "items", "properties", "globals",
)

Fragment = namedtuple("Fragment", FRAGMENT_FIELDS, defaults=(ABSENT,) * len(FRAGMENT_FIELDS))


def read_fragment(raw):
    """Reads the known fields of a raw legacy mapping; anything missing is ABSENT."""
    if isinstance(raw, Fragment):
        return raw
    if not isinstance(raw, dict):
        return Fragment()
    return Fragment(**{k: raw[k] for k in FRAGMENT_FIELDS if k in raw})


def strip_object(obj):
    """
    Returns a copy of obj without its ABSENT entries, or ABSENT if nothing is left.
    Falsy values (None, False, 0, '') are kept.
    """
    stripped = {k: v for k, v in obj.items() if v is not ABSENT}
    if not stripped:
        return ABSENT
    return stripped


def title_from_key(key):
    # user_name -> Username, displayTitle -> Display title
    s = key.replace("_", "")
    s = re.sub(r"([a-z])([A-Z])", r"\1 \2", s)
    s = s.lower()
    return s[:1].upper() + s[1:]


def is_required(fragment):
    if fragment.required is True:
        return True
    validators = fragment.validators
    return isinstance(validators, list) and "required" in validators


def get_is_object_id(fragment):
    if fragment.type == OBJECT_ID_TYPE:
        return True
    input_type = fragment.inputType
    if isinstance(input_type, str) and input_type.startswith(ASSET_INPUT_PREFIX):
        return True
    return ABSENT


def get_title(fragment, key):
    if fragment.title is not ABSENT:
        return fragment.title
    if fragment.legend is not ABSENT:
        return fragment.legend
    if key is None:
        return ABSENT
    return title_from_key(key)


def get_description(fragment):
    return fragment.help


def get_default(fragment, context):
    if fragment.default is not ABSENT:
        return fragment.default
    if is_required(fragment):
        return ABSENT
    if get_is_object_id(fragment) is True:
        return ABSENT
    # Arrays default to [] whether or not they declare items
    factory = TYPE_DEFAULTS.get(fragment.type) if isinstance(fragment.type, str) else None
    if factory is None:
        if fragment.type is ABSENT:
            context.logger(f"Warning: no default for '{context.key}' (no type)")
        else:
            context.logger(f"Warning: no default for '{context.key}' of type '{fragment.type}'")
        return ABSENT
    return factory()


def get_enumerated_values(fragment):
    if fragment.originalEnum is not ABSENT:
        return fragment.originalEnum
    input_type = fragment.inputType
    if isinstance(input_type, dict) and input_type.get("type") == "Select":
        options = input_type.get("options")
        if isinstance(options, list):
            return options
    return ABSENT


def get_adapt_options(fragment):
    return strip_object({name: getattr(fragment, name) for name in ADAPT_OPTIONS})


def get_backbone_forms(fragment):
    return fragment.inputType


def get_properties(properties, context):
    """Builds each entry of a legacy properties mapping as a property node."""
    if not isinstance(properties, dict):
        return ABSENT
    built = {}
    for key, value in properties.items():
        built[key] = build_schema_node(
            value, context._replace(node_kind=NodeKind.PROPERTY, key=key)
        )
    return strip_object(built)


def get_items(fragment, context):
    if not isinstance(fragment.items, dict):
        return ABSENT
    return build_schema_node(fragment.items, context._replace(node_kind=NodeKind.ITEMS, key=None))


def get_root_properties(fragment, context):
    properties = fragment.properties if isinstance(fragment.properties, dict) else {}
    combined = dict(properties)

    globals_ = fragment.globals
    if isinstance(globals_, dict) and globals_:
        # Each plugin's globals live under _globals._<owner> so contributions
        # from different plugins never collide in the shared document.
        combined["_globals"] = {
            "type": "object",
            "properties": {
                f"_{context.owner_id}": {
                    "type": "object",
                    "properties": globals_,
                }
            },
        }

    if not combined:
        return ABSENT
    return get_properties(combined, context)


def get_required_fields(fragment, built_properties):
    if not isinstance(fragment.properties, dict) or built_properties is ABSENT:
        return ABSENT
    required = []
    for key, value in fragment.properties.items():
        node = built_properties.get(key)
        if node is None or "default" in node:
            continue
        if is_required(read_fragment(value)):
            required.append(key)
    return required or ABSENT


def build_root(fragment, context):
    fragment = read_fragment(fragment)
    schema_type = context.schema_type
    owner_id = context.owner_id
    is_core = owner_id == schema_type

    properties = get_root_properties(fragment, context)
    payload = strip_object({
        "properties": properties,
        "required": get_required_fields(fragment, properties),
    })
    if payload is ABSENT:
        return ABSENT

    if is_core:
        anchor = owner_id
        keyword = "$merge"
        source = CONTENT_SCHEMA_REF
    else:
        anchor = f"{owner_id}-{schema_type}"
        keyword = "$patch"
        source = schema_type

    return {
        "$anchor": anchor,
        "$schema": JSON_SCHEMA_URI,
        "type": "object",
        keyword: {
            "source": {"$ref": source},
            "with": payload,
        },
    }


def build_property(fragment, context):
    fragment = read_fragment(fragment)
    is_object = fragment.type == "object"
    # Never ABSENT: the title falls back to the key
    return strip_object({
        "type": fragment.type,
        "isObjectId": get_is_object_id(fragment),
        "title": get_title(fragment, context.key),
        "description": get_description(fragment),
        "default": get_default(fragment, context),
        "enum": get_enumerated_values(fragment),
        "properties": get_properties(fragment.properties, context) if is_object else ABSENT,
        "items": get_items(fragment, context),
        "_adapt": get_adapt_options(fragment),
        "_backboneForms": get_backbone_forms(fragment),
    })


def build_items(fragment, context):
    fragment = read_fragment(fragment)
    item_type = fragment.type if fragment.type is not ABSENT else "object"
    return strip_object({
        "type": item_type,
        "properties": get_properties(fragment.properties, context),
    })


BUILDERS = {
    NodeKind.ROOT: build_root,
    NodeKind.PROPERTY: build_property,
    NodeKind.ITEMS: build_items,
}


def build_schema_node(fragment, context):
    """
    Builds the schema node for a legacy fragment in the role given by
    context.node_kind. Returns a dict, or ABSENT when a root has nothing to
    contribute.
    """
    return BUILDERS[context.node_kind](fragment, context)


def build_root_schema(fragment, schema_type, owner_id, logger=print):
    context = BuildContext(NodeKind.ROOT, schema_type, owner_id, None, logger)
    return build_schema_node(fragment, context)
