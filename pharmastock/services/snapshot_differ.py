from collections.abc import Sequence

from pharmastock.schemas.snapshot import AddedBatch, BatchSnapshotEntry, ChangeSet, RemovedBatch, StockChange


def _index(entries: Sequence[BatchSnapshotEntry]) -> dict[int, BatchSnapshotEntry]:
    # Inputs are expected to be unique by batch_id; on duplicates the last entry wins
    return {e.batch_id: e for e in entries}


def diff_snapshots(
    previous: Sequence[BatchSnapshotEntry],
    current: Sequence[BatchSnapshotEntry],
) -> ChangeSet:
    """Compare two captures by batch_id.

    Only consumption shows up in ``stock_changes``; a batch whose stock went up
    (restocked) or stayed flat is left out.
    """
    prev_by_id = _index(previous)
    curr_by_id = _index(current)
    changes = ChangeSet()

    for entry in current:
        before = prev_by_id.get(entry.batch_id)
        if before is None:
            changes.added.append(
                AddedBatch(
                    batch_id=entry.batch_id,
                    product_name=entry.product_name,
                    batch_number=entry.batch_number,
                    initial_stock=entry.initial_stock,
                )
            )
            continue
        used = before.current_stock - entry.current_stock
        if used > 0:
            changes.stock_changes.append(
                StockChange(
                    batch_id=entry.batch_id,
                    product_name=entry.product_name,
                    batch_number=entry.batch_number,
                    previous_stock=before.current_stock,
                    current_stock=entry.current_stock,
                    used=used,
                )
            )

    for entry in previous:
        if entry.batch_id not in curr_by_id:
            changes.removed.append(
                RemovedBatch(
                    batch_id=entry.batch_id,
                    product_name=entry.product_name,
                    batch_number=entry.batch_number,
                    last_stock=entry.current_stock,
                )
            )

    return changes
