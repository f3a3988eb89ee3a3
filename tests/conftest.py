import json
import os

import pytest

from helpers import NOW_MS, make_bookmark


@pytest.fixture
def now_ms():
    return NOW_MS


@pytest.fixture
def sample_bookmarks():
    """Sample bookmarks, newest first like a real bookmark source."""
    return [
        make_bookmark("b1", "React Docs", "https://react.dev", age_days=1,
                      description="The library for web and native user interfaces",
                      folder="Dev"),
        make_bookmark("b2", "Python Documentation", "https://docs.python.org", age_days=3,
                      description="Official Python documentation", folder="Dev"),
        make_bookmark("b3", "GitHub", "https://github.com", age_days=10,
                      description="Code hosting platform", folder="Dev"),
        make_bookmark("b4", "React Native", "https://reactnative.dev", age_days=20,
                      folder="Mobile"),
        make_bookmark("b5", "Weather", "https://weather.com", age_days=40),
        make_bookmark("b6", "Hacker News", "https://news.ycombinator.com", age_days=60,
                      description="Tech news"),
        make_bookmark("b7", "MDN Web Docs", "https://developer.mozilla.org", age_days=120,
                      description="Resources for developers, by developers"),
    ]


@pytest.fixture
def many_bookmarks():
    """Fifty bookmarks, one per day, newest first."""
    return [
        make_bookmark(f"m{i}", f"Site {i}", f"https://site{i}.example.com", age_days=i)
        for i in range(50)
    ]


@pytest.fixture
def bookmarks_json_file(tmp_path, sample_bookmarks):
    """A JSON list export of the sample bookmarks."""
    path = tmp_path / "bookmarks.json"
    path.write_text(json.dumps([b.to_dict() for b in sample_bookmarks]), encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep tests away from real config files and BMCHAT_* variables."""
    for key in list(os.environ):
        if key.startswith("BMCHAT_"):
            monkeypatch.delenv(key, raising=False)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    return home
