"""Command grammar for inbound chat text.

A closed set of command shapes, each with a matcher and a constructor,
evaluated in a fixed priority order. Admin-only rules are skipped for
everybody else, so their syntax is plain text for regular users.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Union

from .catalog import ContentKind
from .partitions import Partition

START_PREFIXES = ("/start", "/info")

BROADCAST_PREFIXES: dict[str, Partition] = {
    "!toEveryone!": Partition.ALL,
    "!toEveryIt!": Partition.IT,
    "!toEveryEs!": Partition.ES,
    "!toEveryEn!": Partition.OTHER,
}

SEND_ADV = "/sendadv"
TEST_ADV = "/testadv"


@dataclass(frozen=True)
class StartInfo:
    pass


@dataclass(frozen=True)
class Broadcast:
    partition: Partition
    body: str


@dataclass(frozen=True)
class SendAdvertisement:
    test_only: bool


@dataclass(frozen=True)
class ContentRequest:
    kind: ContentKind


Command = Union[StartInfo, Broadcast, SendAdvertisement, ContentRequest]

ADMIN_COMMANDS = (Broadcast, SendAdvertisement)


@dataclass(frozen=True)
class CommandRule:
    name: str
    admin_only: bool
    matches: Callable[[str], bool]
    build: Callable[[str], Command]


def classify_content(text: str) -> ContentKind:
    """Content kind requested by free text. Defaults to a photo."""
    lowered = text.lower()
    if "audio" in lowered:
        return ContentKind.AUDIO
    if "video" in lowered:
        return ContentKind.VIDEO
    return ContentKind.PHOTO


def _broadcast_rule(prefix: str, partition: Partition) -> CommandRule:
    return CommandRule(
        name=f"broadcast:{partition.value}",
        admin_only=True,
        matches=lambda text: text.startswith(prefix),
        build=lambda text: Broadcast(partition=partition, body=text[len(prefix):].strip()),
    )


RULES: tuple[CommandRule, ...] = (
    CommandRule(
        name="start",
        admin_only=False,
        matches=lambda text: text.startswith(START_PREFIXES),
        build=lambda text: StartInfo(),
    ),
    *(_broadcast_rule(prefix, partition) for prefix, partition in BROADCAST_PREFIXES.items()),
    CommandRule(
        name="sendadv",
        admin_only=True,
        matches=lambda text: text == SEND_ADV,
        build=lambda text: SendAdvertisement(test_only=False),
    ),
    CommandRule(
        name="testadv",
        admin_only=True,
        matches=lambda text: text == TEST_ADV,
        build=lambda text: SendAdvertisement(test_only=True),
    ),
)


def parse_command(text: str, is_admin: bool) -> Command:
    """Classify message text. First matching rule wins; fallback is content."""
    for rule in RULES:
        if rule.admin_only and not is_admin:
            continue
        if rule.matches(text):
            return rule.build(text)
    return ContentRequest(kind=classify_content(text))


def bypasses_gatekeeping(command: Command) -> bool:
    """Start/info replies are shown to everybody, subscribed or not."""
    return isinstance(command, StartInfo)
