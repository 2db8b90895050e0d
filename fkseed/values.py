from __future__ import annotations

import logging
import random
import uuid
from datetime import timezone
from typing import Any, Optional

from faker import Faker

logger = logging.getLogger(__name__)

JSON_PLACEHOLDER = '{"generated": true}'


# -------------------------
# Typed generators
# -------------------------
def generate_integer(bits: Optional[int] = 32) -> int:
    safe_bits = max(2, min(bits or 32, 63))
    return random.randint(1, 2 ** (safe_bits - 1) - 1)


def generate_numeric(precision: Optional[int] = 10, scale: Optional[int] = 2) -> float:
    """Value that fits numeric(precision, scale): at most precision - scale integer digits."""
    safe_prec = max(1, min(precision or 10, 10))
    safe_scale = max(0, min(2 if scale is None else scale, safe_prec))
    upper = 10 ** (safe_prec - safe_scale) - 10 ** -safe_scale
    return round(random.uniform(0, upper), safe_scale)


def generate_string(fake: Faker, limit: Optional[int] = 10, column_name: Optional[str] = None) -> str:
    maxlen = max(1, min(limit or 10, 100))
    name = (column_name or "").lower()

    if name == "email" or name.endswith("_email") or name.endswith("email"):
        value = fake.email()
    elif "phone" in name:
        value = fake.phone_number()
    elif name in {"first_name", "firstname"}:
        value = fake.first_name()
    elif name in {"last_name", "lastname", "surname"}:
        value = fake.last_name()
    elif name in {"name", "full_name", "nome"} or name.endswith("_name"):
        value = fake.name()
    elif name in {"city", "cidade"}:
        value = fake.city()
    elif maxlen <= 20:
        value = fake.word()
    elif maxlen <= 80:
        value = fake.sentence(nb_words=6)
    else:
        value = fake.sentence(nb_words=10)

    # short words can fall below the minimum; pad with random letters
    min_len = min(5, maxlen)
    if len(value) < min_len:
        value = value + fake.pystr(min_chars=min_len, max_chars=min_len)
    return value[:maxlen]


def generate_timestamp(fake: Faker):
    return fake.date_time_between(start_date="-2y", end_date="now", tzinfo=timezone.utc)


# -------------------------
# Value generator
# -------------------------
def synthesize_value(
    fake: Faker,
    data_type: Optional[str],
    limit: Optional[int] = None,
    fk_value: Any = None,
    column_name: Optional[str] = None,
    scale: Optional[int] = None,
) -> Any:
    """
    Return a plausible literal for a column of `data_type`.

    A resolved foreign-key value always wins and is returned unchanged.
    """
    if fk_value is not None:
        return fk_value

    dt = (data_type or "unknown").lower()

    if dt == "uuid":
        return str(uuid.uuid4())

    if dt in {"smallint", "int2"}:
        return generate_integer(min(limit or 16, 16))
    if dt in {"integer", "int4", "int"}:
        return generate_integer(min(limit or 32, 32))
    if dt in {"bigint", "int8"}:
        return generate_integer(min(limit or 64, 64))

    if dt in {"numeric", "decimal"}:
        return generate_numeric(limit or 10, scale)
    if dt in {"real", "double precision", "float4", "float8"}:
        return round(random.uniform(0, 1000), 2)

    if dt in {"character varying", "varchar"}:
        return generate_string(fake, limit or 50, column_name)
    if dt == "text":
        return generate_string(fake, min(limit or 100, 200), column_name)
    if dt in {"character", "char", "bpchar"}:
        return generate_string(fake, limit or 10, column_name)

    if dt in {"boolean", "bool"}:
        return random.random() < 0.5

    if dt == "date":
        return fake.date_between(start_date="-2y", end_date="+1y")
    if dt.startswith("timestamp") or dt == "timestamptz":
        return generate_timestamp(fake)

    if dt in {"json", "jsonb"}:
        return JSON_PLACEHOLDER
    if dt == "array":
        return "{}"

    logger.warning("Unrecognised data type: %s, using a generic string", data_type)
    return generate_string(fake, 10)
