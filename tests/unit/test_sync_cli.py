"""
Unit tests for the vsl-sync maintenance CLI.
"""

import json
from unittest.mock import patch

import pytest

from vsl_platform.cli import sync as sync_cli


@pytest.fixture
def patched_synchronizer(synchronizer):
    with patch.object(sync_cli, "create_index_synchronizer", return_value=synchronizer):
        yield synchronizer


class TestRunSweeps:

    def test_syncs_everything(self, synchronizer, store, make_entry):
        for i in range(3):
            store.save(make_entry(word=f"word-{i}"))

        totals = sync_cli.run_sweeps(synchronizer)

        assert totals == {"synced": 3}
        assert store.count_unsynced() == 0

    def test_reindex_resyncs_synced_entries(self, synchronizer, store, fake_index, make_entry):
        store.save(make_entry())
        sync_cli.run_sweeps(synchronizer)
        fake_index.documents.clear()

        totals = sync_cli.run_sweeps(synchronizer, reindex=True)

        assert totals == {"synced": 1}
        assert len(fake_index.documents) == 1

    def test_nothing_to_do(self, synchronizer):
        assert sync_cli.run_sweeps(synchronizer) == {}


class TestMain:

    def test_reconcile_exit_code(self, patched_synchronizer, store, make_entry, capsys):
        store.save(make_entry())

        assert sync_cli.main(["reconcile"]) == 0

        output = json.loads(capsys.readouterr().out)
        assert output == {"outcomes": {"synced": 1}, "unsynced_remaining": 0}

    def test_reconcile_reports_remaining_when_index_down(
        self, patched_synchronizer, store, fake_index, make_entry, capsys
    ):
        store.save(make_entry())
        fake_index.available = False
        patched_synchronizer.stop(timeout=0.1)

        assert sync_cli.main(["reconcile"]) == 2

        output = json.loads(capsys.readouterr().out)
        assert output["unsynced_remaining"] == 1
        assert output["outcomes"] == {"retry_scheduled": 1}

    def test_status(self, patched_synchronizer, capsys):
        assert sync_cli.main(["status"]) == 0

        output = json.loads(capsys.readouterr().out)
        assert output["queue_capacity"] == 100
        assert output["unsynced_entries"] == 0

    def test_init(self, patched_synchronizer, capsys):
        with patch.object(sync_cli, "create_all_tables") as create_tables:
            assert sync_cli.main(["init"]) == 0

        create_tables.assert_called_once_with()
        assert json.loads(capsys.readouterr().out) == {"tables": "ok", "index_created": False}

    def test_init_fails_when_index_down(self, patched_synchronizer, fake_index):
        fake_index.available = False

        with patch.object(sync_cli, "create_all_tables"):
            assert sync_cli.main(["init"]) == 1

    def test_command_required(self):
        with pytest.raises(SystemExit):
            sync_cli.main([])
