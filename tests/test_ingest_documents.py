"""Tests for the index rebuild script."""
import sys
sys.path.insert(0, 'backend')

import json
import os

from ingest_documents import main, parse_args


def test_parse_args_defaults():
    args = parse_args(["book"])
    assert args.project_id == "book"
    assert args.base_path


def test_rebuild_writes_snapshot(tmp_path):
    chapters = tmp_path / "book" / "chapters"
    chapters.mkdir(parents=True)
    (chapters / "01.md").write_text("# One\n---\n---\nFirst chapter.", encoding="utf-8")
    (chapters / "02.md").write_text("# Two\n---\n---\nSecond chapter.", encoding="utf-8")

    exit_code = main(["book", "--base-path", str(tmp_path)])

    assert exit_code == 0
    with open(os.path.join(str(tmp_path), "book", ".index.json"), encoding="utf-8") as f:
        snapshot = json.load(f)
    assert sorted(snapshot) == ["01", "02"]


def test_missing_chapters_dir_fails(tmp_path):
    assert main(["book", "--base-path", str(tmp_path)]) == 1
