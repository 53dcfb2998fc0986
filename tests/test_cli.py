import json

from nearmap.cli import main

CATALOG = "data/catalogs/providers.json"


def test_distance_command(capsys):
    assert main(["distance", "0", "0", "0", "1"]) == 0
    assert capsys.readouterr().out.strip() == "111.195 km"


def test_rank_json_with_explicit_consumer(capsys):
    assert main(["rank", "--catalog", CATALOG, "--lat", "-33.9249", "--lng", "18.4241", "--json"]) == 0
    payload = json.loads(capsys.readouterr().out)

    ids = [r["id"] for r in payload["results"]]
    assert ids[0] == "m-001"
    assert ids[-1] == "m-005"
    assert payload["results"][0]["distance_km"] == 0
    assert payload["precision"] == {"exact": 3, "region": 2, "unknown": 1}
    assert payload["consumer"] == {"lat": -33.9249, "lng": 18.4241}


def test_rank_nearby_keeps_close_online_only(capsys):
    argv = ["rank", "--catalog", CATALOG, "--lat", "-33.9249", "--lng", "18.4241", "--nearby", "--json"]
    assert main(argv) == 0
    payload = json.loads(capsys.readouterr().out)
    assert [r["id"] for r in payload["results"]] == ["m-001"]
    assert payload["viewport"]["zoom"] == 6


def test_rank_text_without_location(capsys):
    assert main(["rank", "--catalog", CATALOG, "--max-results", "2"]) == 0
    out = capsys.readouterr().out
    assert "Thandi Nkosi" in out
    assert "Amelia Hart" in out
    assert "Pieter van Wyk" not in out


def test_regions_command(capsys):
    assert main(["regions"]) == 0
    names = capsys.readouterr().out.split("\n")
    assert "south africa" in names
    assert "uk" in names
