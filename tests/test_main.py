import csv
import json

import pytest

from photo_dedupe import config
from photo_dedupe.main import load_skip_dirs, main, parse_args


@pytest.fixture
def listing(tmp_path):
    path = tmp_path / "photos.json"
    path.write_text(json.dumps([
        {"id": "1", "name": "a.jpg", "size": 1000, "contentHash": "H"},
        {"id": "2", "name": "a_copy.jpg", "size": 1000, "contentHash": "H"},
        {"id": "3", "name": "unrelated.png", "size": 77},
    ]), encoding="utf-8")
    return path


def test_parse_args_defaults(tmp_path):
    args = parse_args(["detect", str(tmp_path)])
    assert args.threshold == config.DEFAULT_SIMILARITY_THRESHOLD
    assert args.methods == list(config.ALL_METHODS)
    assert args.chunk_size == config.DEFAULT_CHUNK_SIZE
    assert args.csv is None


def test_load_skip_dirs(tmp_path):
    skip_file = tmp_path / "skip.txt"
    skip_file.write_text("# comment\n/mnt/photos/cache\n\n/mnt/photos/tmp\n", encoding="utf-8")

    skips = load_skip_dirs(skip_file)
    assert len(skips) == 2
    assert load_skip_dirs(tmp_path / "missing.txt") == set()


def test_detect_command(listing, tmp_path, capsys):
    out = tmp_path / "groups.csv"
    code = main(["detect", str(listing), "--threshold", "85", "--csv", str(out)])

    assert code == 0
    assert "Group 1 (100.0% similar)" in capsys.readouterr().out
    with open(out, newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))
    assert [r[3] for r in rows[1:]] == ["1", "2"]


def test_detect_command_with_no_methods_matching(listing, capsys):
    code = main(["detect", str(listing), "--methods", "filename", "--threshold", "95"])
    assert code == 0
    assert "No duplicate groups found." in capsys.readouterr().out


def test_sweep_command(listing, tmp_path, capsys):
    out = tmp_path / "sweep.json"
    code = main(["sweep", str(listing), "--thresholds", "95", "50", "--methods", "hash", "--output", str(out)])

    assert code == 0
    assert "Best result" in capsys.readouterr().out
    payload = json.loads(out.read_text(encoding="utf-8"))
    assert [r["groupsFound"] for r in payload["results"]] == [1, 1]


def test_profiles_command(listing, capsys):
    assert main(["profiles", str(listing)]) == 0
    out = capsys.readouterr().out
    assert "strict-hash-only" in out
    # 2 grouped photos against 6 expected
    assert "Most accurate: strict-hash-only (33% of expected results)" in out


def test_missing_source_fails(tmp_path):
    assert main(["detect", str(tmp_path / "nowhere")]) == 1


def test_bad_listing_fails(tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps([{"id": "1", "name": "a.jpg", "size": -5}]), encoding="utf-8")
    assert main(["detect", str(bad)]) == 1


def test_sweep_with_duplicate_ids_fails(tmp_path):
    listing = tmp_path / "dupes.json"
    listing.write_text(json.dumps([
        {"id": "same", "name": "a.jpg", "size": 1, "contentHash": "H"},
        {"id": "same", "name": "b.jpg", "size": 1, "contentHash": "H"},
    ]), encoding="utf-8")
    assert main(["sweep", str(listing), "--methods", "hash"]) == 1
