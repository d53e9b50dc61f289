from typing import Any, Dict, Iterator, Mapping, Sequence, Tuple, TypeVar

T = TypeVar("T")


def document_id(row: Mapping[str, Any], index: int) -> str:
    """Firestore id for the row at absolute fetch position `index`."""
    row_id = row.get("id")
    if row_id is not None:
        return str(row_id)
    return f"doc-{index}"


def chunked(items: Sequence[T], size: int) -> Iterator[Tuple[int, Sequence[T]]]:
    """Yield (offset, slice) pairs of at most `size` items, in order."""
    if size < 1:
        raise ValueError(f"Chunk size must be at least 1, got {size}")
    for offset in range(0, len(items), size):
        yield offset, items[offset:offset + size]


def iter_documents(
    chunk: Sequence[Mapping[str, Any]], offset: int
) -> Iterator[Tuple[str, Dict[str, Any]]]:
    # synthetic ids use the absolute fetch index, never the index within the chunk
    for i, row in enumerate(chunk):
        yield document_id(row, offset + i), dict(row)
