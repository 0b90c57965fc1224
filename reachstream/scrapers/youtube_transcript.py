"""
YouTube Transcript Scraper

Reads caption tracks from ``ytInitialPlayerResponse`` and downloads the
timed-text XML of the best matching language.
"""

import html as html_lib
import logging
import re
from typing import Any, Dict, List, Optional

import httpx

from reachstream.scrapers.base import BaseScraper
from reachstream.scrapers.errors import ExtractionError, InvalidInputError
from reachstream.scrapers.extract import dig, find_assigned_json, js_round, utc_now_iso
from reachstream.scrapers.youtube_scraper import watch_url

logger = logging.getLogger(__name__)

PLAYER_RESPONSE_MARKER = "var ytInitialPlayerResponse ="

VIDEO_ID_PATTERNS = (
    re.compile(r"(?:youtube\.com/watch\?v=|youtu\.be/)([^&?#/\s]+)"),
    re.compile(r"youtube\.com/embed/([^&?#/\s]+)"),
    re.compile(r"youtube\.com/v/([^&?#/\s]+)"),
)

_TEXT_RE = re.compile(r'<text start="([^"]+)" dur="([^"]+)"[^>]*>([^<]*)</text>')


def extract_video_id(url: str) -> str:
    """
    Video id from a watch, short, embed or /v/ URL.

    Anything that is not a YouTube URL is taken to be an id already.

    Raises:
        InvalidInputError: For a YouTube URL with no recognizable id
    """
    if "youtube.com" not in url and "youtu.be" not in url:
        return url
    for pattern in VIDEO_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    raise InvalidInputError("Invalid YouTube URL or video ID")


def parse_transcript_xml(xml: str) -> List[Dict[str, Any]]:
    segments = []
    for start, duration, text in _TEXT_RE.findall(xml):
        start_s = float(start)
        duration_s = float(duration)
        segments.append({
            "text": html_lib.unescape(text),
            "start": start_s,
            "duration": duration_s,
            "end": start_s + duration_s,
        })
    return segments


def extract_caption_tracks(html: str) -> List[Dict[str, Any]]:
    player = find_assigned_json(html, PLAYER_RESPONSE_MARKER, "player response")
    tracks = dig(player, "captions", "playerCaptionsTracklistRenderer", "captionTracks")
    if not tracks:
        raise ExtractionError("No captions available for this video")
    return tracks


def select_track(tracks: List[Dict[str, Any]], language: str) -> Dict[str, Any]:
    """Requested language (exact or prefix), then English, then the first track."""
    def matching(code: str) -> Optional[Dict[str, Any]]:
        return next(
            (t for t in tracks if (t.get("languageCode") or "").startswith(code)),
            None,
        )

    track = matching(language)
    if not track and language != "en":
        track = matching("en")
    return track or tracks[0]


def _language_name(track: Dict[str, Any]) -> str:
    return dig(track, "name", "simpleText") or track.get("languageCode")


def transcript_statistics(segments: List[Dict[str, Any]]) -> Dict[str, Any]:
    full_text = " ".join(s["text"] for s in segments)
    total_duration = segments[-1]["end"] if segments else 0
    word_count = len(full_text.split())
    return {
        "total_segments": len(segments),
        "total_duration_seconds": js_round(total_duration),
        "word_count": word_count,
        "avg_words_per_minute": js_round(word_count / total_duration * 60) if total_duration > 0 else 0,
    }


class YouTubeTranscriptScraper(BaseScraper):
    """Scraper for YouTube caption transcripts."""

    platform = "YouTube"

    def transcript(self, url: str, language: str = "en") -> Dict[str, Any]:
        if not url or not isinstance(url, str):
            raise InvalidInputError("Invalid URL or video ID provided")

        video_id = extract_video_id(url)
        video_url = watch_url(video_id)
        tracks = extract_caption_tracks(self.fetch_html(video_url))
        track = select_track(tracks, language or "en")

        segments = parse_transcript_xml(self.fetch_html(track.get("baseUrl")))
        logger.debug(f"Parsed {len(segments)} caption segments for {video_id}")

        return {
            "video_id": video_id,
            "video_url": video_url,
            "language": track.get("languageCode"),
            "language_name": _language_name(track),
            "is_auto_generated": track.get("kind") == "asr",
            "segments": segments,
            "full_text": " ".join(s["text"] for s in segments),
            "statistics": transcript_statistics(segments),
            "available_languages": [
                {
                    "code": t.get("languageCode"),
                    "name": _language_name(t),
                    "is_auto_generated": t.get("kind") == "asr",
                }
                for t in tracks
            ],
            "scraped_at": utc_now_iso(),
        }


def scrape_transcript(url: str, language: str = "en", client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """
    Scrape a video transcript.

    Args:
        url: Watch URL, short URL, embed URL or bare video id
        language: Preferred caption language code
        client: Optional httpx client

    Returns:
        Envelope dict with the segments and transcript statistics
    """
    scraper = YouTubeTranscriptScraper(client=client)
    return scraper.run(scraper.transcript, url, language=language)
