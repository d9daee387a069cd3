import re
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Tuple

STOP_WORDS = {
    "the", "a", "an", "is", "are", "was", "were", "be", "been", "being",
    "have", "has", "had", "do", "does", "did", "will", "would", "could",
    "should", "may", "might", "shall", "can", "to", "of", "in", "for",
    "on", "with", "at", "by", "from", "as", "into", "through", "during",
    "before", "after", "above", "below", "between", "out", "off", "over",
    "under", "again", "further", "then", "once", "here", "there", "when",
    "where", "why", "how", "all", "both", "each", "few", "more", "most",
    "other", "some", "such", "no", "nor", "not", "only", "own", "same",
    "so", "than", "too", "very", "just", "because", "but", "and", "or",
    "if", "about", "it", "its", "i", "my", "me", "we", "our", "you",
    "your", "they", "their", "them", "this", "that", "these", "those",
    "what", "which", "who", "whom", "his", "her", "him", "she", "he",
}

TOPIC_CLUSTERS: Dict[str, List[str]] = {
    "fitness": ["workout", "gym", "exercise", "train", "cardio", "muscle", "strength", "health", "run", "lift", "gains", "body"],
    "tech": ["code", "software", "app", "startup", "ai", "build", "developer", "programming", "data", "api"],
    "food": ["cook", "recipe", "eat", "restaurant", "meal", "kitchen", "chef", "bake", "taste", "flavor", "hungry"],
    "gaming": ["game", "play", "stream", "console", "pc", "rpg", "fps", "esports", "controller", "level"],
    "music": ["song", "album", "artist", "beat", "listen", "concert", "genre", "playlist", "band", "producer"],
    "fashion": ["outfit", "style", "wear", "brand", "look", "trend", "dress", "designer", "wardrobe"],
    "art": ["paint", "draw", "create", "gallery", "visual", "color", "design", "sculpture", "canvas"],
    "crypto": ["bitcoin", "blockchain", "token", "defi", "web3", "wallet", "nft", "mining"],
    "finance": ["money", "invest", "stock", "market", "save", "budget", "wealth", "portfolio"],
    "travel": ["trip", "explore", "destination", "flight", "hotel", "adventure", "country", "city"],
    "photography": ["photo", "camera", "shot", "lens", "portrait", "exposure", "edit"],
    "yoga": ["meditation", "mindful", "stretch", "breath", "practice", "zen", "calm", "peace"],
    "comedy": ["funny", "joke", "laugh", "hilarious", "humor", "comedy", "standup"],
}

FEED_RELEVANCE_THRESHOLD = 0.2


def engagement_score(likes: int, comments: int, views: int = 0) -> float:
    return likes + comments * 2.5 + views * 0.01


def engagement_velocity(likes: int, comments: int, views: int, age_hours: float) -> float:
    # brand new posts count as six minutes old
    return engagement_score(likes, comments, views) / max(age_hours, 0.1)


def _words(text: str) -> List[str]:
    cleaned = re.sub(r"[^a-z0-9\s]", "", text.lower())
    return [w for w in cleaned.split() if len(w) > 3 and w not in STOP_WORDS]


def extract_trending_topics(posts: Iterable[Tuple[str, float]], limit: int = 10) -> List[str]:
    """
    `posts` yields (content, engagement velocity). Bigrams and long single
    words seen at least twice are ranked by the velocity they accumulated.
    """
    counts: Dict[str, int] = defaultdict(int)
    weight: Dict[str, float] = defaultdict(float)
    for content, velocity in posts:
        words = _words(content)
        for first, second in zip(words, words[1:]):
            bigram = f"{first} {second}"
            counts[bigram] += 1
            weight[bigram] += velocity
        for word in words:
            if len(word) > 5:
                counts[word] += 1
                weight[word] += velocity
    ranked = sorted((t for t, c in counts.items() if c >= 2), key=lambda t: weight[t], reverse=True)
    return ranked[:limit]


def score_niche_relevance(content: str, niche: Optional[str]) -> float:
    """0..1 relevance of a post to a bot's niche; no niche means everything is mildly relevant."""
    if not niche:
        return 0.5
    lowered = content.lower()
    tokens = [t for t in re.split(r"[\s,/]+", niche.lower()) if t]
    if not tokens:
        return 0.5

    matches = sum(1 for token in tokens if token in lowered)
    if matches:
        return 0.6 + (matches / len(tokens)) * 0.4

    cluster_score = 0.0
    for token in tokens:
        cluster = TOPIC_CLUSTERS.get(token)
        if not cluster:
            continue
        hits = sum(1 for word in cluster if word in lowered)
        if hits:
            cluster_score = max(cluster_score, 0.3 + min(0.3, hits * 0.1))
    if cluster_score:
        return cluster_score

    return 0.35 if len(content) < 50 else 0.25
