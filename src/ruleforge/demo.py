"""Demo records: feature flags with tags and rollout segments.

Flag, Tag and Segment model a feature-flag service whose flags must carry a
JIRA tag and, for the stricter rule, a segment rolled out beyond 10%.
They implement to_parameter_mapping() so expressions can refer to their
fields by the capitalised names used in the rules.
"""

from dataclasses import dataclass, field
from typing import Any, Iterator

from ruleforge.engine import RuleEngine

TAG_PATTERN = "^JIRA:[A-Za-z]{3}[A-Za-z]*$"

TAG_EXPRESSION = f'regexMatch(tag, "{TAG_PATTERN}")'

FLAG_EXPRESSIONS = (
    f'any("regexMatch(Value, \\"{TAG_PATTERN}\\")", Tags)',
    f'any("regexMatch(Value, \\"{TAG_PATTERN}\\")", Tags) && '
    'any("RolloutPercent > 10", Segments)',
)


@dataclass(frozen=True)
class Tag:
    id: int
    value: str

    def to_parameter_mapping(self) -> dict[str, Any]:
        return {"ID": self.id, "Value": self.value}


@dataclass(frozen=True)
class Segment:
    id: int
    rollout_percent: int

    def to_parameter_mapping(self) -> dict[str, Any]:
        return {"ID": self.id, "RolloutPercent": self.rollout_percent}


@dataclass(frozen=True)
class Flag:
    id: int
    key: str = ""
    tags: tuple[Tag, ...] = field(default_factory=tuple)
    segments: tuple[Segment, ...] = field(default_factory=tuple)

    def to_parameter_mapping(self) -> dict[str, Any]:
        return {
            "ID": self.id,
            "Key": self.key,
            "Tags": list(self.tags),
            "Segments": list(self.segments),
        }


TAG_EXAMPLES = (
    "JIRA:EPLT",
    "FOO:BAR",
    "JIRA:TS",
    "JIRA:TLA",
    "JIRA:EP123",
    "EXTRA_STUFF kljalkj JIRA:EPLT EXTRA",
)

FLAG_EXAMPLES = (
    Flag(id=1),
    Flag(id=2, tags=(Tag(3, "FOO:BAR"), Tag(6, "JIRA:EPLT"))),
    Flag(id=4, tags=(Tag(5, "JIRA:EPLT"),)),
    Flag(id=7, tags=(Tag(8, "JIRA:EP12"),)),
    Flag(id=9, tags=(Tag(10, "JIRA:EPLT"),), segments=(Segment(11, 20),)),
    Flag(id=12, tags=(Tag(13, "JIRA:EPLT"),), segments=(Segment(14, 5),)),
)


def run_demo(engine: RuleEngine | None = None) -> Iterator[tuple[str, str, bool]]:
    """Evaluate the demo expressions.

    Yields:
        (expression, subject, result) for each tag string and each flag
    """
    engine = engine or RuleEngine()

    tag_rule = engine.compile(TAG_EXPRESSION)
    for tag in TAG_EXAMPLES:
        yield TAG_EXPRESSION, tag, engine.evaluate(tag_rule, {"tag": tag})

    for source in FLAG_EXPRESSIONS:
        compiled = engine.compile(source)
        for flag in FLAG_EXAMPLES:
            yield source, f"flag {flag.id}", engine.evaluate(compiled, flag)
