"""Broadcast audience partitions."""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Protocol


class Partition(str, Enum):
    ALL = "all"
    IT = "it"
    ES = "es"
    OTHER = "other"


class RecipientSource(Protocol):
    def get_all_user_ids(self) -> set[int]: ...

    def get_user_ids_by_locale(self, locale: str) -> set[int]: ...


def resolve_other_partition(
    all_ids: Iterable[int],
    it_ids: Iterable[int],
    es_ids: Iterable[int],
) -> set[int]:
    """Users outside the explicit locale sets: all - (it | es).

    "other" is not stored anywhere. It covers English speakers and every
    unrecognized language, so ids that only appear in a locale set are
    never included.
    """
    return set(all_ids) - (set(it_ids) | set(es_ids))


def resolve_recipients(partition: Partition, source: RecipientSource) -> set[int]:
    """Recipient ids for a partition."""
    if partition is Partition.ALL:
        return source.get_all_user_ids()
    if partition is Partition.IT:
        return source.get_user_ids_by_locale("it")
    if partition is Partition.ES:
        return source.get_user_ids_by_locale("es")
    return resolve_other_partition(
        source.get_all_user_ids(),
        source.get_user_ids_by_locale("it"),
        source.get_user_ids_by_locale("es"),
    )
