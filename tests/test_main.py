import json

import pytest

import main
from config.settings import settings
from conftest import make_items


@pytest.fixture(autouse=True)
def no_image(monkeypatch):
    monkeypatch.setattr(settings, "POST_RUN_IMAGE", "")


def _write_pages(tmp_path, pages):
    path = tmp_path / "pages.json"
    path.write_text(
        json.dumps(
            [[{"id": i.id, "title": i.title, "age": i.relative_time_label} for i in page] for page in pages]
        )
    )
    return str(path)


def test_successful_run_exits_zero(tmp_path, capsys):
    path = _write_pages(tmp_path, [make_items("a", 30), make_items("b", 30)])

    status = main.main(["--fetcher", "replay", "--replay-file", path, "--target", "50"])

    assert status == 0
    assert json.loads(capsys.readouterr().out)["total_items"] == 50


def test_failed_run_exits_one(tmp_path, capsys):
    path = _write_pages(tmp_path, [make_items("a", 10)])

    status = main.main(["--fetcher", "replay", "--replay-file", path, "--target", "50"])

    assert status == 1
    assert json.loads(capsys.readouterr().out)["error"]["kind"] == "IncompleteCollectionError"


def test_fetcher_that_cannot_start_exits_one(monkeypatch, capsys):
    monkeypatch.setattr(settings, "REPLAY_FILE", "")

    status = main.main(["--fetcher", "replay"])

    assert status == 1
    assert json.loads(capsys.readouterr().out)["error"]["kind"] == "ValueError"


def test_zero_target_is_rejected(tmp_path, capsys):
    path = _write_pages(tmp_path, [make_items("a", 150)])

    status = main.main(["--fetcher", "replay", "--replay-file", path, "--target", "0"])

    assert status == 1
    assert json.loads(capsys.readouterr().out)["error"]["kind"] == "ValueError"
