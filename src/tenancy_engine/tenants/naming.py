"""Deterministic tenant identifiers derived from an external entity id.

An entity id is accepted only if it consists of ASCII letters, digits and
hyphens and starts with a letter or digit. Hyphens are the only characters
substituted when deriving a schema name, and underscores are rejected on
input, so ``entity_id -> schema_name`` is injective: two distinct entity ids
can never collide on the same namespace.
"""

import re

from tenancy_engine.common.exceptions import InvalidEntityIdError, InvalidSchemaNameError

TENANT_ID_PREFIX = "tenant_"
SCHEMA_PREFIX = "tenant_entity_"

# PostgreSQL truncates identifiers at 63 bytes.
MAX_IDENTIFIER_LENGTH = 63
MAX_ENTITY_ID_LENGTH = MAX_IDENTIFIER_LENGTH - len(SCHEMA_PREFIX)

_ENTITY_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9-]*$")
_SCHEMA_NAME_RE = re.compile(
    rf"^{SCHEMA_PREFIX}[A-Za-z0-9][A-Za-z0-9_]{{0,{MAX_ENTITY_ID_LENGTH - 1}}}$"
)


def validate_entity_id(entity_id: str) -> str:
    if not entity_id or len(entity_id) > MAX_ENTITY_ID_LENGTH:
        raise InvalidEntityIdError(
            f"entityId must be 1-{MAX_ENTITY_ID_LENGTH} characters long"
        )
    if not _ENTITY_ID_RE.match(entity_id):
        raise InvalidEntityIdError(
            "entityId may only contain letters, digits and hyphens "
            f"and must start with a letter or digit, got {entity_id!r}"
        )
    return entity_id


def validate_schema_name(schema_name: str) -> str:
    if not schema_name or not _SCHEMA_NAME_RE.match(schema_name):
        raise InvalidSchemaNameError(f"Not a tenant schema name: {schema_name!r}")
    return schema_name


def is_tenant_schema(name: str) -> bool:
    return bool(name) and _SCHEMA_NAME_RE.match(name) is not None


def tenant_id_for(entity_id: str) -> str:
    return f"{TENANT_ID_PREFIX}{validate_entity_id(entity_id)}"


def schema_name_for(entity_id: str) -> str:
    """Map an entity id to its namespace name, e.g. ``acme-1`` -> ``tenant_entity_acme_1``."""
    validate_entity_id(entity_id)
    return f"{SCHEMA_PREFIX}{entity_id.replace('-', '_')}"
