"""
File assignment: decides which output file a capability's symbols go to.

Providers ship default rules (``Provider.file_defaults``); callers can
override them per capability pattern. The first rule whose pattern is a
prefix of the capability wins.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass

from .utils import to_snake_case


@dataclass(frozen=True)
class FileNamingContext:
    """What a file naming function can use to build a path.

    Attributes:
        name: Symbol name ("UserRow", "find_user_by_id")
        entity_name: Entity the capability belongs to ("User")
        folder_name: Module-friendly entity name ("user")
        capability: Full capability key
        variant: Shape variant ("row", "insert"), if any
        schema: Schema the entity belongs to, if known
    """

    name: str
    entity_name: str
    folder_name: str
    capability: str
    variant: str | None = None
    schema: str = ""


FileNaming = Callable[[FileNamingContext], str]


@dataclass(frozen=True)
class FileRule:
    """Map capabilities starting with ``pattern`` to an output file.

    ``file_naming`` is either a fixed file name or a function of the
    naming context.
    """

    pattern: str
    file_naming: str | FileNaming
    output_dir: str = ""

    def matches(self, capability: str) -> bool:
        return capability.startswith(self.pattern)

    def file_for(self, context: FileNamingContext) -> str:
        file_name = self.file_naming if isinstance(self.file_naming, str) else self.file_naming(context)
        if self.output_dir:
            return f"{self.output_dir.rstrip('/')}/{file_name}"
        return file_name


def merge_file_rules(defaults: Iterable[FileRule], overrides: Iterable[FileRule]) -> list[FileRule]:
    """Combine provider defaults with overrides; an override replaces the default for its pattern."""
    overrides = list(overrides)
    overridden = {rule.pattern for rule in overrides}
    return [rule for rule in defaults if rule.pattern not in overridden] + overrides


class FileAssigner:
    """Resolve output paths for capabilities from an ordered rule list."""

    def __init__(self, rules: Iterable[FileRule], default_file: str | None = None):
        self.rules = list(rules)
        self.default_file = default_file

    def path_for(
        self,
        capability: str,
        name: str,
        entity: str = "",
        variant: str | None = None,
        schema: str = "",
    ) -> str:
        """
        Compute the output path for one symbol.

        Args:
            capability: Capability key ("types:User:row")
            name: Symbol name
            entity: Entity name; taken from the capability when omitted
            variant: Shape variant; taken from the capability when omitted
            schema: Schema name passed through to naming functions

        Returns:
            Output path relative to the output directory

        Raises:
            ValueError: If no rule matches and there is no default file
        """
        segments = capability.split(":")
        entity = entity or (segments[1] if len(segments) > 1 else "")
        if variant is None and len(segments) > 2:
            variant = segments[2]

        context = FileNamingContext(
            name=name,
            entity_name=entity,
            folder_name=to_snake_case(entity),
            capability=capability,
            variant=variant,
            schema=schema,
        )

        for rule in self.rules:
            if rule.matches(capability):
                return rule.file_for(context)

        if self.default_file:
            return self.default_file

        raise ValueError(f'No file rule matches capability "{capability}" and no default file is configured')
