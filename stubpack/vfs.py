"""Virtual filesystem index embedded in the prelude."""

from dataclasses import dataclass

from stubpack.stripe import Entry


@dataclass(frozen=True, slots=True)
class VfsRecord:
    """Physical location of one entry inside the payload region.

    :ivar snapshot_id: Entry snapshot id.
    :ivar storage_kind: Storage kind key (``CODE`` / ``CONTENT``).
    :ivar offset: Offset from the first byte after the payload header box.
    :ivar length: Exact entry byte count.
    """

    snapshot_id: str
    storage_kind: str
    offset: int
    length: int


class VirtualFilesystem:
    """Maps ``snapshot_id -> storage kind -> [offset, length]``.

    Recording the same snapshot/kind pair twice keeps the later location in
    :meth:`as_dict`; :attr:`records` keeps every record in insertion order.
    """

    def __init__(self, snapshot_ids: list[str] | None = None) -> None:
        self._index: dict[str, dict[str, list[int]]] = {}
        self.records: list[VfsRecord] = []
        for snapshot_id in snapshot_ids or []:
            self._index.setdefault(snapshot_id, {})

    def record(self, entry: Entry, byte_length: int, position: int) -> dict[str, dict[str, list[int]]]:
        """Record an entry's location once its bytes have been counted.

        :param entry: Completed entry.
        :param byte_length: Exact number of bytes emitted for the entry.
        :param position: Payload offset at which the entry started.
        :returns: The updated index.
        """

        kind: str = entry.storage_kind.value
        self._index.setdefault(entry.snapshot_id, {})[kind] = [position, byte_length]
        self.records.append(
            VfsRecord(snapshot_id=entry.snapshot_id, storage_kind=kind, offset=position, length=byte_length)
        )
        return self._index

    def as_dict(self) -> dict[str, dict[str, list[int]]]:
        """A deep copy of the index, safe to serialize or hand out."""
        return {snap: {kind: list(loc) for kind, loc in kinds.items()} for snap, kinds in self._index.items()}
