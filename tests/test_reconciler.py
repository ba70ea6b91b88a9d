"""Tests for reconciliation against a list store."""

import itertools

import pytest

from conftest import MemoryListStore
from msgraph_list_sync.models import DestinationRecord, OutputRecord
from msgraph_list_sync.reconciler import Reconciler, build_key_index, plan_reconciliation


def record(key: str, name: str = None, **fields) -> OutputRecord:
    name = name or key.upper()
    return OutputRecord(key=key, display=name, fields={"DisplayName": name, "AppId": key, **fields})


def store_with(*keys: str) -> MemoryListStore:
    return MemoryListStore(
        {str(i + 1): {"AppId": key, "DisplayName": key.upper()} for i, key in enumerate(keys)}
    )


class TestBuildKeyIndex:
    """Test the natural key -> row id index."""

    def test_index(self):
        rows = [
            DestinationRecord(row_id="1", fields={"AppId": "a"}),
            DestinationRecord(row_id="2", fields={"AppId": "b"}),
        ]
        assert build_key_index(rows, "AppId") == {"a": "1", "b": "2"}

    def test_duplicate_key_last_write_wins(self, caplog):
        rows = [
            DestinationRecord(row_id="1", fields={"AppId": "a"}),
            DestinationRecord(row_id="2", fields={"AppId": "a"}),
        ]
        assert build_key_index(rows, "AppId") == {"a": "2"}
        assert "shadowed" in caplog.text

    def test_rows_without_key_are_ignored(self):
        rows = [
            DestinationRecord(row_id="1", fields={"Title": "orphan"}),
            DestinationRecord(row_id="2", fields={"AppId": "b"}),
        ]
        assert build_key_index(rows, "AppId") == {"b": "2"}


class TestPlanReconciliation:
    """Test plan computation."""

    def test_mixed(self):
        plan = plan_reconciliation([record("b"), record("c")], {"a": "1", "b": "2"})
        assert plan.create_keys == {"c"}
        assert plan.update_keys == {"b"}
        assert plan.delete_keys == {"a"}
        assert plan.updates[0][0] == "2"
        assert plan.deletes == [("a", "1")]

    def test_duplicate_fresh_keys_last_wins(self):
        first = record("a", "First")
        second = record("a", "Second")
        plan = plan_reconciliation([first, second], {})
        assert len(plan.creates) == 1
        assert plan.creates[0].display == "Second"

    @pytest.mark.parametrize(
        "fresh_keys,dest_keys",
        [
            (fresh, dest)
            for fresh, dest in itertools.product(
                [(), ("a",), ("a", "b"), ("b", "c", "d")],
                [(), ("a",), ("b", "c"), ("a", "d", "e")],
            )
        ],
    )
    def test_partition_is_complete_and_disjoint(self, fresh_keys, dest_keys):
        index = {key: f"row-{key}" for key in dest_keys}
        plan = plan_reconciliation([record(k) for k in fresh_keys], index)

        creates, updates, deletes = plan.create_keys, plan.update_keys, plan.delete_keys
        assert creates | updates | deletes == set(fresh_keys) | set(dest_keys)
        assert not creates & updates
        assert not creates & deletes
        assert not updates & deletes
        assert creates == set(fresh_keys) - set(dest_keys)
        assert updates == set(fresh_keys) & set(dest_keys)
        assert deletes == set(dest_keys) - set(fresh_keys)


class TestReconciler:
    """Test applying plans to a store."""

    @pytest.mark.asyncio
    async def test_pure_create(self):
        store = store_with()
        result = await Reconciler(store).reconcile([record("a"), record("b")], "AppId")

        assert (result.created, result.updated, result.deleted) == (2, 0, 0)
        assert store.keys() == {"a", "b"}

    @pytest.mark.asyncio
    async def test_pure_delete(self):
        store = store_with("a", "b")
        result = await Reconciler(store).reconcile([], "AppId")

        assert (result.created, result.updated, result.deleted) == (0, 0, 2)
        assert store.rows == {}

    @pytest.mark.asyncio
    async def test_mixed(self):
        store = store_with("a", "b")
        result = await Reconciler(store).reconcile([record("b"), record("c")], "AppId")

        assert (result.created, result.updated, result.deleted) == (1, 1, 1)
        assert ("update", "2") in store.operations
        assert ("delete", "1") in store.operations
        assert store.keys() == {"b", "c"}

    @pytest.mark.asyncio
    async def test_update_overwrites_all_fields(self):
        store = MemoryListStore({"1": {"AppId": "a", "DisplayName": "Old", "Stale": "x"}})
        await Reconciler(store).reconcile([record("a", "New")], "AppId")

        assert store.rows["1"] == {"DisplayName": "New", "AppId": "a"}

    @pytest.mark.asyncio
    async def test_idempotent(self):
        store = store_with("a", "x")
        fresh = [record("a"), record("b"), record("c")]
        await Reconciler(store).reconcile(fresh, "AppId")
        rows_after_first = {k: dict(v) for k, v in store.rows.items()}

        second = await Reconciler(store).reconcile(fresh, "AppId")

        assert second.created == 0
        assert second.deleted == 0
        assert second.updated == 3
        assert store.rows == rows_after_first

    @pytest.mark.asyncio
    async def test_mirror_invariant(self):
        store = store_with("a", "b", "c", "d")
        fresh = [record("c"), record("e"), record("f")]
        await Reconciler(store).reconcile(fresh, "AppId")
        assert store.keys() == {"c", "e", "f"}

    @pytest.mark.asyncio
    async def test_apply_order_follows_display_name(self):
        store = store_with("m")
        fresh = [record("z", "zulu"), record("m", "Mike"), record("a", "alpha")]
        await Reconciler(store).reconcile(fresh, "AppId")

        kinds = [op for op, _ in store.operations]
        assert kinds == ["create", "update", "create"]
        assert [store.rows[row_id]["AppId"] for op, row_id in store.operations] == ["a", "m", "z"]

    @pytest.mark.asyncio
    async def test_failures_do_not_stop_processing(self):
        store = store_with("a", "b", "old")
        store.fail_keys.add("c")
        store.fail_row_ids.add("2")  # update of b fails
        fresh = [record("a"), record("b"), record("c"), record("d")]

        result = await Reconciler(store).reconcile(fresh, "AppId")

        assert result.created == 1
        assert result.updated == 1
        assert result.deleted == 1
        assert result.failed == 2
        assert any("create c" in e for e in result.errors)
        assert any("update b" in e for e in result.errors)
        assert "d" in store.keys()
        assert "old" not in store.keys()

    @pytest.mark.asyncio
    async def test_dry_run_changes_nothing(self):
        store = store_with("a", "b")
        result = await Reconciler(store).reconcile([record("b"), record("c")], "AppId", dry_run=True)

        assert result.dry_run
        assert (result.created, result.updated, result.deleted) == (1, 1, 1)
        assert store.operations == []
        assert store.keys() == {"a", "b"}

    @pytest.mark.asyncio
    async def test_list_failure_is_fatal(self):
        class BrokenStore(MemoryListStore):
            async def list_rows(self):
                raise RuntimeError("list not reachable")

        with pytest.raises(RuntimeError):
            await Reconciler(BrokenStore()).reconcile([record("a")], "AppId")
