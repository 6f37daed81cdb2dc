"""JSON extraction stage.

Parses the log line (or a previously extracted field named by ``source``) as
JSON and stores the result of each configured path expression in the entry's
extraction map::

    json:
      expressions:
        out: message                         # path query
        app:                                 # empty: top-level "app"
        first: complex.log.array[0].test1
      source: extra                          # optional
      drop_malformed: true                   # optional, default false
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

import jsonschema
from jsonschema.exceptions import best_match

from logpipe.expression import (
    CompiledExpression,
    ExpressionSyntaxError,
    compile_expression,
    evaluate,
)
from logpipe.metrics import Counter, Registry
from logpipe.models import Entry
from logpipe.values import MalformedJSONError, coerce, decode

logger = logging.getLogger(__name__)

MALFORMED_DROPPED_METRIC = "json_stage_malformed_dropped_total"

_CONFIG_SCHEMA = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "properties": {
        "expressions": {
            "type": ["object", "null"],
            "additionalProperties": {"type": ["string", "null"]},
        },
        "source": {"type": ["string", "null"]},
        "drop_malformed": {"type": ["boolean", "null"]},
        "dropMalformed": {"type": ["boolean", "null"]},
    },
}

_validator = jsonschema.Draft202012Validator(_CONFIG_SCHEMA)
_KNOWN_KEYS = frozenset(_CONFIG_SCHEMA["properties"])


class StageConfigError(ValueError):
    """Base class for json stage construction failures."""


class ExpressionsRequiredError(StageConfigError):
    def __init__(self, message: str = "json stage requires at least one expression"):
        super().__init__(message)


class CouldNotCompileExpressionError(StageConfigError):
    def __init__(self, key: str, query: str, cause: ExpressionSyntaxError):
        super().__init__(f"could not compile expression {key!r} ({query!r}): {cause}")
        self.key = key
        self.query = query


class EmptyJSONStageSourceError(StageConfigError):
    def __init__(self, message: str = "json stage source must not be empty"):
        super().__init__(message)


class InvalidStageConfigError(StageConfigError):
    """Raised when the raw config has the wrong shape or field types."""


@dataclass(frozen=True)
class JSONConfig:
    expressions: tuple[CompiledExpression, ...]
    source: str | None = None
    drop_malformed: bool = False

    @classmethod
    def from_dict(cls, raw) -> "JSONConfig":
        """Validate a raw stage config and compile its expressions.

        Raises:
            ExpressionsRequiredError: ``raw`` is None or has no expressions.
            InvalidStageConfigError: A field has the wrong type.
            CouldNotCompileExpressionError: An expression is not a valid path.
            EmptyJSONStageSourceError: ``source`` is set to an empty string.
        """
        if raw is None:
            raise ExpressionsRequiredError()
        if not isinstance(raw, Mapping):
            raise InvalidStageConfigError(
                f"json stage config must be a mapping, got {type(raw).__name__}"
            )

        data = dict(raw)
        if isinstance(data.get("expressions"), Mapping):
            data["expressions"] = {str(k): v for k, v in data["expressions"].items()}

        error = best_match(_validator.iter_errors(data))
        if error is not None:
            where = ".".join(str(p) for p in error.absolute_path) or "json"
            raise InvalidStageConfigError(f"invalid json stage config at {where}: {error.message}")

        unknown = sorted(str(k) for k in data if k not in _KNOWN_KEYS)
        if unknown:
            logger.debug("ignoring unknown json stage config keys: %s", ", ".join(unknown))

        expressions = data.get("expressions")
        if not expressions:
            raise ExpressionsRequiredError()

        compiled = []
        for key, query in expressions.items():
            try:
                compiled.append(compile_expression(key, query))
            except ExpressionSyntaxError as e:
                raise CouldNotCompileExpressionError(key, query, e) from e

        source = data.get("source")
        if source == "":
            raise EmptyJSONStageSourceError()

        drop_malformed = data.get("drop_malformed")
        if drop_malformed is None:
            drop_malformed = data.get("dropMalformed")

        return cls(
            expressions=tuple(compiled),
            source=source,
            drop_malformed=bool(drop_malformed),
        )


def validate_json_config(raw) -> JSONConfig:
    return JSONConfig.from_dict(raw)


class JSONStage:
    """Extracts values from JSON log lines into ``Entry.extracted``."""

    name = "json"

    def __init__(self, config: JSONConfig, registry: Registry | None = None):
        self._config = config
        description = "Entries dropped by the json stage because their input was not valid JSON"
        if registry is not None:
            self._dropped = registry.counter(MALFORMED_DROPPED_METRIC, description)
        else:
            self._dropped = Counter(MALFORMED_DROPPED_METRIC, description)
        logger.debug(
            "json stage created: %d expression(s), source=%s, drop_malformed=%s",
            len(config.expressions), config.source, config.drop_malformed,
        )

    @classmethod
    def from_dict(cls, raw, registry: Registry | None = None) -> "JSONStage":
        return cls(JSONConfig.from_dict(raw), registry)

    @property
    def config(self) -> JSONConfig:
        return self._config

    @property
    def dropped(self) -> int:
        return self._dropped.value

    def process(self, entry: Entry) -> bool:
        """Run every expression against one entry. Returns False to drop it."""
        extracted = entry.extracted
        source = self._config.source

        if source is None:
            text = entry.line
        else:
            text = extracted.get(source)
            if not isinstance(text, str):
                logger.debug("source %r missing or not a string, skipping entry", source)
                return True

        try:
            tree = decode(text)
        except MalformedJSONError as e:
            if self._config.drop_malformed:
                self._dropped.inc()
                logger.debug("dropping malformed json entry: %s", e)
                return False
            logger.debug("could not parse json, passing entry through: %s", e)
            return True

        for expr in self._config.expressions:
            value, found = evaluate(tree, expr)
            extracted[expr.key] = coerce(value) if found else None
        return True

    def run(self, entries: Iterable[Entry]) -> list[Entry]:
        """Process *entries* in order, omitting the dropped ones."""
        return [entry for entry in entries if self.process(entry)]
