import pytest

from src.analytics.models import Sector
from src.analytics.sectors import detect_sector


@pytest.mark.parametrize(
    "title, sector",
    [
        ("Will Trump win the 2028 election?", Sector.POLITICS),
        ("Will Bitcoin hit $150k by June?", Sector.CRYPTO),
        ("Chiefs vs. Eagles: who wins?", Sector.SPORTS),
        ("Will the Fed cut interest rates in March?", Sector.BUSINESS),
        ("Which film wins the Oscar for Best Picture?", Sector.ENTERTAINMENT),
        ("Will it rain in London tomorrow?", Sector.OTHER),
    ],
)
def test_detect_sector(title, sector):
    assert detect_sector(title) is sector


def test_earlier_sector_wins_when_several_match():
    assert detect_sector("Will the President attend the Super Bowl?") is Sector.POLITICS


def test_matching_is_case_insensitive():
    assert detect_sector("NBA FINALS GAME 7") is Sector.SPORTS


@pytest.mark.parametrize("title", [None, "", 42, ["Trump"]])
def test_missing_or_non_string_title_is_other(title):
    assert detect_sector(title) is Sector.OTHER
