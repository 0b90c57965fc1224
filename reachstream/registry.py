"""
Endpoint registry.

Maps ``(platform, endpoint)`` to the scraping function, the parameters it
takes from a request and a usage example. Both the Lambda handlers and the
FastAPI app dispatch through this table.
"""

from typing import Dict, List, Optional

from reachstream.scrapers import (
    bluesky_scraper,
    facebook_scraper,
    instagram_media,
    instagram_scraper,
    linkedin_scraper,
    pinterest_scraper,
    reddit_scraper,
    threads_scraper,
    tiktok_analytics,
    tiktok_music,
    tiktok_scraper,
    tiktok_search,
    tiktok_shop,
    twitter_scraper,
    youtube_scraper,
    youtube_shorts,
    youtube_transcript,
)
from reachstream.services.types import Endpoint

LIMIT = {"limit": int}
PAGED = {"limit": int, "cursor": str}


def _ep(platform: str, name: str, func, required=(), optional=None, example: Optional[str] = None) -> Endpoint:
    return Endpoint(
        platform=platform,
        name=name,
        func=func,
        required=[group if isinstance(group, tuple) else (group,) for group in required],
        optional=optional or {},
        example=example,
    )


ENDPOINTS: List[Endpoint] = [
    # Bluesky
    _ep("bluesky", "profile", bluesky_scraper.scrape_profile, ["handle"], example="handle=bsky.app"),
    _ep("bluesky", "post", bluesky_scraper.scrape_post, [("post_uri", "url")],
        example="post_uri=https://bsky.app/profile/bsky.app/post/3l6oveex3ii2l"),
    _ep("bluesky", "posts", bluesky_scraper.scrape_posts, ["handle"], PAGED, example="handle=bsky.app&limit=20"),
    # Facebook
    _ep("facebook", "profile", facebook_scraper.scrape_profile, ["username"], example="username=nasa"),
    _ep("facebook", "posts", facebook_scraper.scrape_posts, ["username"], LIMIT, example="username=nasa&limit=20"),
    # Instagram
    _ep("instagram", "profile", instagram_scraper.scrape_profile, ["username"], example="username=instagram"),
    _ep("instagram", "post", instagram_scraper.scrape_post, ["shortcode"], example="shortcode=CxYz123AbC"),
    _ep("instagram", "posts", instagram_scraper.scrape_posts, ["username"], LIMIT, example="username=instagram&limit=12"),
    _ep("instagram", "comments", instagram_scraper.scrape_comments, ["shortcode"], LIMIT,
        example="shortcode=CxYz123AbC&limit=50"),
    _ep("instagram", "search", instagram_scraper.search_instagram, [("query", "q")], {"limit": int, "type": str},
        example="query=travel&type=hashtags"),
    _ep("instagram", "hashtag", instagram_media.scrape_hashtag, ["hashtag"], LIMIT, example="hashtag=travel"),
    _ep("instagram", "highlights", instagram_media.scrape_highlights, ["username"], LIMIT, example="username=nasa"),
    _ep("instagram", "reels", instagram_media.scrape_reels, ["username"], LIMIT, example="username=nasa&limit=12"),
    _ep("instagram", "stories", instagram_media.scrape_stories, ["username"], example="username=nasa"),
    _ep("instagram", "video", instagram_media.scrape_video, ["username"], LIMIT, example="username=nasa"),
    # LinkedIn
    _ep("linkedin", "company", linkedin_scraper.scrape_company, ["company_id"], example="company_id=microsoft"),
    _ep("linkedin", "profile", linkedin_scraper.scrape_profile, ["username"], example="username=williamhgates"),
    # Pinterest
    _ep("pinterest", "pin", pinterest_scraper.get_pin, ["pin_id"], example="pin_id=123456789012345678"),
    _ep("pinterest", "board", pinterest_scraper.get_board, ["username", "board_slug"], LIMIT,
        example="username=pinterest&board_slug=recipes"),
    _ep("pinterest", "boards", pinterest_scraper.get_user_boards, ["username"], example="username=pinterest"),
    _ep("pinterest", "search", pinterest_scraper.search_pins, [("query", "q")], LIMIT, example="query=recipes"),
    # Reddit
    _ep("reddit", "posts", reddit_scraper.scrape_posts, ["subreddit"], {"limit": int, "sort": str},
        example="subreddit=python&sort=top"),
    _ep("reddit", "comments", reddit_scraper.scrape_comments, ["post_id", "subreddit"], LIMIT,
        example="post_id=abc123&subreddit=python"),
    # Threads
    _ep("threads", "post", threads_scraper.scrape_post, ["post_id"], example="post_id=C1a2B3c4D5e"),
    _ep("threads", "posts", threads_scraper.scrape_posts, ["username"], LIMIT, example="username=zuck"),
    _ep("threads", "profile", threads_scraper.scrape_profile, ["username"], example="username=zuck"),
    _ep("threads", "search", threads_scraper.search_posts, [("query", "q")], LIMIT, example="query=python"),
    _ep("threads", "search_users", threads_scraper.search_users, [("query", "q")], LIMIT, example="query=python"),
    # TikTok
    _ep("tiktok", "profile", tiktok_scraper.scrape_profile, ["username"], example="username=charlidamelio"),
    _ep("tiktok", "video", tiktok_scraper.scrape_video, ["video_id"], example="video_id=7234567890123456789"),
    _ep("tiktok", "feed", tiktok_scraper.scrape_feed, ["username"], LIMIT, example="username=charlidamelio"),
    _ep("tiktok", "comments", tiktok_scraper.scrape_comments, ["video_id"], LIMIT,
        example="video_id=7234567890123456789"),
    _ep("tiktok", "followers", tiktok_scraper.scrape_followers, ["username"], PAGED, example="username=charlidamelio"),
    _ep("tiktok", "following", tiktok_scraper.scrape_following, ["username"], PAGED, example="username=charlidamelio"),
    _ep("tiktok", "hashtag", tiktok_scraper.scrape_hashtag, ["hashtag"], example="hashtag=fyp"),
    _ep("tiktok", "trending", tiktok_scraper.scrape_trending, [], LIMIT, example="limit=30"),
    _ep("tiktok", "search", tiktok_search.search_tiktok, [("query", "q")], {"type": str, "limit": int, "cursor": str},
        example="query=dance&type=videos"),
    _ep("tiktok", "search_users", tiktok_search.search_users, [("query", "q")], LIMIT, example="query=dance"),
    _ep("tiktok", "search_keywords", tiktok_search.search_keywords, [("keyword", "query", "q")], LIMIT,
        example="keyword=dance"),
    _ep("tiktok", "shop_product", tiktok_shop.scrape_product, ["product_id"], example="product_id=1729384756"),
    _ep("tiktok", "shop_reviews", tiktok_shop.scrape_reviews, ["product_id"],
        {"limit": int, "cursor": str, "filter": str}, example="product_id=1729384756&filter=positive"),
    _ep("tiktok", "shop_search", tiktok_shop.search_shop, [("query", "q")], PAGED, example="query=lipstick"),
    _ep("tiktok", "analytics", tiktok_analytics.scrape_analytics, ["username"], example="username=charlidamelio"),
    _ep("tiktok", "demographics", tiktok_analytics.scrape_demographics, ["username"], example="username=charlidamelio"),
    _ep("tiktok", "transcript", tiktok_analytics.scrape_transcript, ["video_id"], {"include_subtitles": bool},
        example="video_id=7234567890123456789&include_subtitles=true"),
    _ep("tiktok", "sound", tiktok_music.scrape_sound, ["sound_id"], example="sound_id=6705026542447102725"),
    _ep("tiktok", "song_details", tiktok_music.get_song_details, ["song_id"], example="song_id=6705026542447102725"),
    _ep("tiktok", "song_videos", tiktok_music.get_song_videos, ["song_id"], LIMIT, example="song_id=6705026542447102725"),
    _ep("tiktok", "trending_songs", tiktok_music.get_trending_songs, [], LIMIT, example="limit=20"),
    # Twitter
    _ep("twitter", "profile", twitter_scraper.scrape_profile, ["username"], example="username=nasa"),
    _ep("twitter", "feed", twitter_scraper.scrape_feed, ["username"], LIMIT, example="username=nasa&limit=20"),
    _ep("twitter", "search", twitter_scraper.search_tweets, [("query", "q")], {"limit": int, "filter": str},
        example="query=python&filter=live"),
    # YouTube
    _ep("youtube", "channel", youtube_scraper.scrape_channel, ["channel_id"], example="channel_id=@mkbhd"),
    _ep("youtube", "video", youtube_scraper.scrape_video, ["video_id"], example="video_id=dQw4w9WgXcQ"),
    _ep("youtube", "videos", youtube_scraper.scrape_videos, ["channel_id"], example="channel_id=@mkbhd"),
    _ep("youtube", "search", youtube_scraper.search_videos, [("query", "q")], example="query=python tutorial"),
    _ep("youtube", "comments", youtube_scraper.scrape_comments, ["video_id"], example="video_id=dQw4w9WgXcQ"),
    _ep("youtube", "playlist", youtube_scraper.scrape_playlist, ["playlist_id"], LIMIT,
        example="playlist_id=PLFgquLnL59alCl_2TQvOiD5Vgm1hCaGSI"),
    _ep("youtube", "search_hashtag", youtube_scraper.search_hashtag, ["hashtag"], LIMIT, example="hashtag=shorts"),
    _ep("youtube", "stats", youtube_scraper.scrape_channel_stats, ["channel_id"], example="channel_id=@mkbhd"),
    _ep("youtube", "shorts", youtube_shorts.scrape_shorts, ["channel_id"], LIMIT, example="channel_id=@mkbhd"),
    _ep("youtube", "shorts_paginated", youtube_shorts.scrape_shorts_paginated, ["channel_id"],
        {"limit": int, "continuation_token": str}, example="channel_id=@mkbhd&limit=20"),
    _ep("youtube", "transcript", youtube_transcript.scrape_transcript, [("url", "video_url", "video_id")],
        {"language": str}, example="url=https://www.youtube.com/watch?v=dQw4w9WgXcQ&language=en"),
    _ep("youtube", "trending_shorts", youtube_shorts.scrape_trending_shorts, [], {"country": str, "limit": int},
        example="country=US&limit=20"),
]

_BY_PATH: Dict[str, Endpoint] = {endpoint.path: endpoint for endpoint in ENDPOINTS}


def normalize_name(name: str) -> str:
    """``Search-Users`` and ``search_users`` address the same endpoint."""
    return (name or "").strip().lower().replace("-", "_")


def get_endpoint(platform: str, name: str) -> Optional[Endpoint]:
    """Look up an endpoint, None when the pair is unknown."""
    return _BY_PATH.get(f"{normalize_name(platform)}/{normalize_name(name)}")


def list_endpoints() -> List[Dict[str, object]]:
    """Summaries of every endpoint for the index route."""
    return [
        {
            "platform": endpoint.platform,
            "endpoint": endpoint.name,
            "path": f"/api/scrape/{endpoint.path}",
            "required": [group[0] for group in endpoint.required],
            "optional": sorted(endpoint.optional),
            "example": f"/api/scrape/{endpoint.path}?{endpoint.example}" if endpoint.example else None,
        }
        for endpoint in ENDPOINTS
    ]
