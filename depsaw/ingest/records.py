"""Raw target-record parsing.

Accepts ``bazel query --output streamed_jsonproto`` lines and a native
``{"label", "kind", "deps", "data"}`` shape. Each raw mapping is validated
into one of a closed set of variants and converted to a graph record
(``Target`` or ``File``) before it reaches the graph builder. Package groups
carry no dependency information and convert to ``None``.
"""

from __future__ import annotations

import json
import logging
from typing import Annotated, Any, Iterable, Iterator, Literal, Mapping, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from depsaw.errors import MalformedRecordError
from depsaw.analysis.graph_models import File, Target

logger = logging.getLogger(__name__)

# Rule attributes whose labels are data/source inputs rather than target deps
DATA_ATTRIBUTES = frozenset({"srcs", "hdrs", "textual_hdrs", "data", "resources"})
DEP_ATTRIBUTES = frozenset({"deps", "runtime_deps", "exports", "implementation_deps"})


class _Attribute(BaseModel):
    name: str
    type: str | None = None
    stringValue: str | None = None
    stringListValue: list[str] = Field(default_factory=list)

    def labels(self) -> list[str]:
        if self.type == "LABEL" and self.stringValue:
            return [self.stringValue]
        return list(self.stringListValue)


class _Rule(BaseModel):
    name: str
    ruleClass: str
    attribute: list[_Attribute] = Field(default_factory=list)
    ruleInput: list[str] = Field(default_factory=list)


class _NamedNode(BaseModel):
    name: str


class _GeneratedFile(BaseModel):
    name: str
    generatingRule: str


class RuleEntry(BaseModel):
    type: Literal["RULE"]
    rule: _Rule

    def to_record(self) -> Target:
        data: set[str] = set()
        deps: set[str] = set(self.rule.ruleInput)
        for attr in self.rule.attribute:
            if attr.name in DATA_ATTRIBUTES:
                data.update(attr.labels())
            elif attr.name in DEP_ATTRIBUTES:
                deps.update(attr.labels())
        return Target(
            label=self.rule.name,
            kind=self.rule.ruleClass,
            deps=frozenset(deps - data),
            data=frozenset(data),
        )


class SourceFileEntry(BaseModel):
    type: Literal["SOURCE_FILE"]
    sourceFile: _NamedNode

    def to_record(self) -> File:
        return File.from_label(self.sourceFile.name)


class GeneratedFileEntry(BaseModel):
    type: Literal["GENERATED_FILE"]
    generatedFile: _GeneratedFile

    def to_record(self) -> Target:
        # Changes to the generating rule reach every consumer of the output
        return Target(
            label=self.generatedFile.name,
            kind="generated_file",
            deps=frozenset({self.generatedFile.generatingRule}),
        )


class PackageGroupEntry(BaseModel):
    type: Literal["PACKAGE_GROUP"]
    packageGroup: _NamedNode

    def to_record(self) -> None:
        return None


class NativeTargetEntry(BaseModel):
    label: str
    kind: str = "target"
    deps: list[str] = Field(default_factory=list)
    data: list[str] = Field(default_factory=list)

    def to_record(self) -> Target:
        return Target(
            label=self.label,
            kind=self.kind,
            deps=frozenset(self.deps),
            data=frozenset(self.data),
        )


QueryEntry = Annotated[
    Union[RuleEntry, SourceFileEntry, GeneratedFileEntry, PackageGroupEntry],
    Field(discriminator="type"),
]

_QUERY_ENTRY: TypeAdapter = TypeAdapter(QueryEntry)


def describe_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "record"
        parts.append(f"{loc}: {err.get('msg', 'invalid')}")
    return "; ".join(parts)


def parse_record(raw: Any, index: int | None = None) -> Target | File | None:
    """Validate one raw mapping and convert it to a graph record."""
    if not isinstance(raw, Mapping):
        raise MalformedRecordError(f"expected an object, got {type(raw).__name__}", index)
    try:
        if "type" in raw:
            entry = _QUERY_ENTRY.validate_python(raw)
        elif "label" in raw:
            entry = NativeTargetEntry.model_validate(raw)
        else:
            raise MalformedRecordError("record has neither 'type' nor 'label'", index)
    except ValidationError as e:
        raise MalformedRecordError(describe_validation_error(e), index) from e
    return entry.to_record()


def parse_record_line(line: str, index: int | None = None) -> Target | File | None:
    try:
        raw = json.loads(line)
    except json.JSONDecodeError as e:
        raise MalformedRecordError(f"invalid JSON: {e.msg}", index) from e
    return parse_record(raw, index)


def iter_records(lines: Iterable[str]) -> Iterator[Target | File]:
    """Parse JSON lines into graph records, skipping blanks and package groups."""
    skipped = 0
    for index, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        record = parse_record_line(line, index)
        if record is None:
            skipped += 1
            continue
        yield record
    if skipped:
        logger.debug("Skipped %d package-group records", skipped)
