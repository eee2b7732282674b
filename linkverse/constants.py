"""Centralized constants for categories, collections and table names.

This module provides a single source of truth for the category taxonomy and
the static lookup tables used by enrichment and collection suggestion.
"""

from typing import Dict, FrozenSet, Tuple

# =============================================================================
# CATEGORY TAXONOMY
# =============================================================================

CATEGORY_TAGS: Tuple[str, ...] = (
    'social_media',
    'video',
    'development',
    'news',
    'shopping',
    'education',
    'productivity',
    'design',
    'business',
    'entertainment',
    'research',
    'documentation',
    'portfolio',
    'blog',
    'other',
)

CATEGORY_LABELS: Dict[str, str] = {
    'social_media': 'Social Media',
    'video': 'Videos',
    'development': 'Development',
    'news': 'News',
    'shopping': 'Shopping',
    'education': 'Education',
    'productivity': 'Productivity',
    'design': 'Design',
    'business': 'Business',
    'entertainment': 'Entertainment',
    'research': 'Research',
    'documentation': 'Documentation',
    'portfolio': 'Portfolio',
    'blog': 'Blog',
    'other': 'Other',
}

# =============================================================================
# COLLECTION SUGGESTION KEYWORDS
# =============================================================================

# A collection whose lower-cased name contains any of these keywords (or the
# category tag itself) is suggested for links of that category.
CATEGORY_COLLECTION_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    'development': ('coding', 'dev', 'development', 'tech', 'programming'),
    'design': ('design', 'ui', 'ux', 'creative', 'graphics'),
    'business': ('business', 'work', 'professional', 'corporate'),
    'education': ('learning', 'education', 'courses', 'tutorials'),
    'entertainment': ('entertainment', 'fun', 'games', 'movies'),
    'news': ('news', 'articles', 'current', 'updates'),
    'shopping': ('shopping', 'products', 'buy', 'store'),
    'research': ('research', 'study', 'academic', 'papers'),
    'documentation': ('docs', 'documentation', 'guides', 'reference'),
    'productivity': ('productivity', 'tools', 'utilities', 'apps'),
    'social_media': ('social', 'media', 'networking', 'community'),
    'video': ('videos', 'youtube', 'streaming', 'media'),
    'portfolio': ('portfolio', 'showcase', 'personal', 'work'),
    'blog': ('blog', 'articles', 'writing', 'content'),
}

# =============================================================================
# DOMAIN FALLBACK TABLE (used when enrichment is off or fails)
# =============================================================================

DOMAIN_CATEGORY_MAP: Dict[str, str] = {
    'youtube.com': 'video',
    'vimeo.com': 'video',
    'twitch.tv': 'video',
    'facebook.com': 'social_media',
    'twitter.com': 'social_media',
    'x.com': 'social_media',
    'instagram.com': 'social_media',
    'linkedin.com': 'social_media',
    'github.com': 'development',
    'gitlab.com': 'development',
    'stackoverflow.com': 'development',
    'developer.mozilla.org': 'documentation',
    'readthedocs.io': 'documentation',
    'amazon.com': 'shopping',
    'ebay.com': 'shopping',
    'medium.com': 'blog',
    'dev.to': 'blog',
    'substack.com': 'blog',
    'dribbble.com': 'design',
    'behance.net': 'design',
    'figma.com': 'design',
    'arxiv.org': 'research',
}

# =============================================================================
# COLLECTION DEFAULTS
# =============================================================================

COLLECTION_COLORS: Tuple[str, ...] = (
    '#4f8ff7',  # Blue
    '#f76f4f',  # Red
    '#4ff76f',  # Green
    '#f7cf4f',  # Yellow
    '#cf4ff7',  # Purple
    '#4ff7f7',  # Cyan
    '#f74f8f',  # Pink
    '#8ff74f',  # Lime
    '#f78f4f',  # Orange
    '#4f4ff7',  # Indigo
)

COLLECTION_ICONS: FrozenSet[str] = frozenset([
    'Folder', 'Star', 'Heart', 'Bookmark', 'Tag',
    'Archive', 'Box', 'Briefcase', 'Calendar', 'Camera',
])

# =============================================================================
# ENRICHMENT LIMITS
# =============================================================================

MAX_TAGS = 5
MAX_TAG_LENGTH = 32

# =============================================================================
# BAAS TABLES
# =============================================================================

TABLE_LINKS = 'links'
TABLE_COLLECTIONS = 'collections'
TABLE_PROFILES = 'profiles'
