import json

import db
import main


def test_dry_prints_configuration_without_touching_storage(capsys, storage):
    (storage / "rage.db").unlink()

    main.main(["--dry", "--feed-only", "--limit", "5"])

    report = json.loads(capsys.readouterr().out)
    assert report["ok"] is True
    assert report["mode"] == "dry"
    assert report["base_url"] == "https://rage.dk"
    assert report["flags"]["feed_only"] is True
    assert report["flags"]["limit"] == 5
    assert report["flags"]["since_hours"] is None
    assert not (storage / "rage.db").exists()


def test_trends_flag_reports_over_stored_articles(capsys):
    db.add_articles([
        {"url": "https://rage.dk/musik/a/", "hash": "1", "title": "Koncert anmeldelse: et album for livet",
         "category": "Musik", "body_text": "Bandet spillede i to timer for et udsolgt Royal Arena i aftes."},
        {"url": "https://rage.dk/vejr/", "hash": "2", "title": "Regn i morgen", "body_text": "Vådt."},
    ])

    main.main(["--trends"])

    report = json.loads(capsys.readouterr().out)
    assert report["total_articles"] == 1
    assert report["top_categories"] == [{"category": "Musik", "count": 1}]
    assert report["highlights"][0]["url"] == "https://rage.dk/musik/a/"
    assert report["highlights"][0]["key_points"] == [
        "Bandet spillede i to timer for et udsolgt Royal Arena i aftes."
    ]
    assert "relevant_articles" not in report
