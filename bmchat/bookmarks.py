"""
Bookmark sources for bmchat.

Reads bookmarks from a Chrome/Chromium ``Bookmarks`` file or from a flat
JSON list, and hands them to the search and chat code newest first.
"""
import os
import json
import logging
import platform
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from bmchat.constants import DEFAULT_SEARCH_LIMIT, MS_PER_DAY, RECENT_WINDOW_DAYS
from bmchat.models import BookmarkRecord
from bmchat.scoring import now_millis

logger = logging.getLogger(__name__)

# Chrome timestamps count microseconds from 1601-01-01
CHROME_EPOCH_OFFSET_US = 11644473600000000

# Top-level roots that are containers, not user folders
CHROME_ROOT_FOLDERS = ("Bookmarks bar", "Other bookmarks", "Mobile bookmarks")


def chrome_timestamp_to_millis(chrome_timestamp: Union[int, str, None]) -> int:
    """Convert a Chrome timestamp (microseconds since 1601) to epoch ms."""
    try:
        value = int(chrome_timestamp or 0)
    except (TypeError, ValueError):
        return 0
    if value <= 0:
        return 0
    return max((value - CHROME_EPOCH_OFFSET_US) // 1000, 0)


def _chrome_profile_roots() -> List[Path]:
    system = platform.system()
    if system == "Darwin":
        return [
            Path.home() / "Library/Application Support/Google/Chrome",
            Path.home() / "Library/Application Support/Chromium",
            Path.home() / "Library/Application Support/Microsoft Edge",
            Path.home() / "Library/Application Support/BraveSoftware/Brave-Browser",
        ]
    if system == "Linux":
        return [
            Path.home() / ".config/google-chrome",
            Path.home() / ".config/chromium",
            Path.home() / ".config/microsoft-edge",
            Path.home() / ".config/BraveSoftware/Brave-Browser",
        ]
    if system == "Windows":
        appdata = os.environ.get("LOCALAPPDATA", "")
        return [
            Path(appdata) / "Google/Chrome/User Data",
            Path(appdata) / "Chromium/User Data",
            Path(appdata) / "Microsoft/Edge/User Data",
            Path(appdata) / "BraveSoftware/Brave-Browser/User Data",
        ]
    return []


def find_chrome_bookmark_files() -> List[Path]:
    """
    Find Chrome-family ``Bookmarks`` files on this system.

    Returns:
        Existing files, default profiles first
    """
    found = []
    for root in _chrome_profile_roots():
        if not root.exists():
            continue
        profiles = [root / "Default"]
        profiles.extend(sorted(p for p in root.glob("Profile *") if p.is_dir()))
        for profile in profiles:
            bookmarks_file = profile / "Bookmarks"
            if bookmarks_file.exists():
                found.append(bookmarks_file)
    return found


def _walk_chrome_folder(items: List[Dict[str, Any]],
                        bookmarks: List[BookmarkRecord],
                        parent_folder: str = ""):
    """Recursively collect url nodes from a Chrome bookmark folder."""
    for item in items:
        if item.get("type") == "url":
            bookmarks.append(BookmarkRecord(
                id=str(item.get("id", "")),
                title=item.get("name", ""),
                url=item.get("url", ""),
                date_added=chrome_timestamp_to_millis(item.get("date_added")),
                folder=parent_folder or None,
            ))
        elif item.get("type") == "folder" and "children" in item:
            folder_name = item.get("name", "")
            if parent_folder and parent_folder not in CHROME_ROOT_FOLDERS:
                folder_name = f"{parent_folder}/{folder_name}"
            _walk_chrome_folder(item["children"], bookmarks, parent_folder=folder_name)


def parse_chrome_bookmarks(data: Dict[str, Any]) -> List[BookmarkRecord]:
    """Flatten a decoded Chrome ``Bookmarks`` document."""
    bookmarks = []
    for root_name, root_data in data.get("roots", {}).items():
        if isinstance(root_data, dict) and "children" in root_data:
            _walk_chrome_folder(
                root_data["children"],
                bookmarks,
                parent_folder=root_data.get("name", root_name),
            )
    return bookmarks


def sort_newest_first(bookmarks: Sequence[BookmarkRecord]) -> List[BookmarkRecord]:
    return sorted(bookmarks, key=lambda b: b.date_added, reverse=True)


def load_bookmarks(path: Union[str, Path]) -> List[BookmarkRecord]:
    """
    Load bookmarks from a file.

    Args:
        path: A Chrome ``Bookmarks`` file or a JSON list of bookmark objects

    Returns:
        Bookmarks sorted by date added, newest first

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file isn't a recognized bookmark document
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Bookmarks file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid bookmarks file {path}: {e}")

    if isinstance(data, dict) and "roots" in data:
        bookmarks = parse_chrome_bookmarks(data)
    elif isinstance(data, list):
        bookmarks = []
        for item in data:
            if isinstance(item, dict) and "id" in item and "url" in item:
                bookmarks.append(BookmarkRecord.from_dict(item))
            else:
                logger.debug(f"Skipping invalid bookmark entry: {item!r}")
    else:
        raise ValueError(f"Unrecognized bookmarks format in {path}")

    # Ids must be unique for the search and chat code
    seen = set()
    unique = []
    for bookmark in bookmarks:
        if bookmark.id in seen:
            logger.warning(f"Duplicate bookmark id {bookmark.id} in {path}, keeping first")
            continue
        seen.add(bookmark.id)
        unique.append(bookmark)

    logger.info(f"Loaded {len(unique)} bookmarks from {path}")
    return sort_newest_first(unique)


def recent_bookmarks(bookmarks: Sequence[BookmarkRecord],
                     limit: int = DEFAULT_SEARCH_LIMIT) -> List[BookmarkRecord]:
    """The ``limit`` most recently added bookmarks."""
    return sort_newest_first(bookmarks)[:limit]


def bookmark_stats(bookmarks: Sequence[BookmarkRecord],
                   now_ms: Optional[int] = None) -> Dict[str, int]:
    """
    Summary counts for a bookmark collection.

    Returns:
        Dictionary with ``total``, ``folders`` and ``recent`` (added in the
        last week)
    """
    if now_ms is None:
        now_ms = now_millis()
    week_ago = now_ms - RECENT_WINDOW_DAYS * MS_PER_DAY
    return {
        "total": len(bookmarks),
        "folders": len({b.folder for b in bookmarks if b.folder}),
        "recent": sum(1 for b in bookmarks if b.date_added > week_ago),
    }
