"""Constants for the recommender module."""

from typing import Final


# Source identifiers, listed in merge precedence order
SOURCE_FOLLOWED_AUTHORS: Final = "followed_authors"
SOURCE_CATEGORY_TAG: Final = "category_tag"
SOURCE_POPULAR: Final = "popular"
SOURCE_QUALITY_NEW: Final = "quality_new"

SOURCE_PRECEDENCE: Final[tuple[str, ...]] = (
    SOURCE_FOLLOWED_AUTHORS,
    SOURCE_CATEGORY_TAG,
    SOURCE_POPULAR,
    SOURCE_QUALITY_NEW,
)

# Labels shown to readers alongside a result
SOURCE_LABEL_PERSONALIZED: Final = "あなたの好みから"
SOURCE_LABEL_ADAPTIVE: Final = "あなたの興味と人気作品から"
SOURCE_LABEL_POPULAR: Final = "人気作品から"
SOURCE_LABEL_GUEST: Final = "人気作品"

# User-facing failure messages
RECOMMENDATIONS_UNAVAILABLE: Final = "推薦作品の取得に失敗しました"
MORE_RECOMMENDATIONS_UNAVAILABLE: Final = "追加推薦の取得に失敗しました"

# Cache key names
CACHE_KEY_GUEST: Final = "guest-recommendations"
CACHE_KEY_POPULAR: Final = "popular-works"
CACHE_KEY_QUALITY_NEW: Final = "quality-new-works-ctr"
CACHE_KEY_POPULARITY_FALLBACK: Final = "popular-works-fallback"
CACHE_KEY_QUALITY_SCORES: Final = "work-quality-scores"

# Quality score curve
CTR_SATURATION: Final = 0.15
CTR_LOG_BASE_PERCENT: Final = 15.0

# Behavior score normalisers (value that earns the full 10 points)
VIEWS_FOR_FULL_SCORE: Final = 1000
LIKES_FOR_FULL_SCORE: Final = 100
COMMENTS_FOR_FULL_SCORE: Final = 20

CATEGORY_MATCH_BONUS: Final = 2.0
TAG_MATCH_BONUS: Final = 1.5
FRESHNESS_BONUS: Final = 1.0
FOLLOWED_AUTHOR_BONUS: Final = 1.0

MAX_SCORE: Final = 10.0
MIN_SCORE: Final = 0.0

# Preference derivation
PREFERENCE_WINDOW_DAYS: Final = 30
MAX_PREFERRED_CATEGORIES: Final = 5
MAX_PREFERRED_TAGS: Final = 10
REPEAT_VIEW_BONUS_PER_VIEW: Final = 2
REPEAT_VIEW_BONUS_MAX_VIEWS: Final = 3

# Challenge sourcing
CHALLENGE_CATEGORY_MIN_VIEWS: Final = 10
CHALLENGE_AUTHOR_MIN_VIEWS: Final = 15
CHALLENGE_TRENDING_MIN_LIKES: Final = 5
CHALLENGE_TRENDING_DAYS: Final = 7

# Quality-filtered new works
NEW_WORK_MIN_VIEWS: Final = 1
NEW_WORK_FETCH_MULTIPLIER: Final = 3
