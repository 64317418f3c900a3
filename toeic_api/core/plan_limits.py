"""
Plan catalog and permission sets.

Single source of truth for the built-in plans, used to seed the
subscription_plans table and as the fallback when it is empty or unreadable.
None means unlimited for a limit.
"""
import copy
from typing import Dict, List, Optional

# Usage-limited resources
RESOURCE_DAILY_PRACTICE = "daily_practice"
RESOURCE_DAILY_AI_CHAT = "daily_ai_chat"
RESOURCE_VOCABULARY_WORDS = "vocabulary_words"

SUPPORTED_RESOURCES: List[str] = [
    RESOURCE_DAILY_PRACTICE,
    RESOURCE_DAILY_AI_CHAT,
    RESOURCE_VOCABULARY_WORDS,
]

# Plan column holding the limit for each resource
RESOURCE_LIMIT_FIELDS: Dict[str, str] = {
    RESOURCE_DAILY_PRACTICE: "daily_practice_limit",
    RESOURCE_DAILY_AI_CHAT: "daily_ai_chat_limit",
    RESOURCE_VOCABULARY_WORDS: "max_vocabulary_words",
}

TRIAL_DAILY_AI_CHAT = 20

DEFAULT_PLANS: List[Dict] = [
    {
        "id": "free",
        "name": "Free",
        "name_jp": "無料プラン",
        "price_cents": 0,
        "currency": "jpy",
        "interval": None,
        "trial_days": None,
        "features": {"aiPractice": False, "aiChat": False, "vocabulary": True, "exportData": False, "viewMistakes": True},
        "daily_practice_limit": None,
        "daily_ai_chat_limit": 0,
        "max_vocabulary_words": None,
        "is_popular": False,
        "sort_order": 1,
    },
    {
        "id": "trial",
        "name": "Free Trial",
        "name_jp": "無料体験",
        "price_cents": 0,
        "currency": "jpy",
        "interval": None,
        "trial_days": 3,
        "features": {"aiPractice": True, "aiChat": True, "vocabulary": True, "exportData": True, "viewMistakes": True},
        "daily_practice_limit": None,
        "daily_ai_chat_limit": TRIAL_DAILY_AI_CHAT,
        "max_vocabulary_words": None,
        "is_popular": False,
        "sort_order": 2,
    },
    {
        "id": "premium_monthly",
        "name": "Premium Monthly",
        "name_jp": "プレミアム月額",
        "price_cents": 300000,
        "currency": "jpy",
        "interval": "month",
        "trial_days": None,
        "features": {"aiPractice": True, "aiChat": True, "vocabulary": True, "exportData": True, "viewMistakes": True},
        "daily_practice_limit": None,
        "daily_ai_chat_limit": None,
        "max_vocabulary_words": None,
        "is_popular": True,
        "sort_order": 3,
    },
    {
        "id": "premium_yearly",
        "name": "Premium Yearly",
        "name_jp": "プレミアム年額",
        "price_cents": 3000000,
        "currency": "jpy",
        "interval": "year",
        "trial_days": None,
        "features": {"aiPractice": True, "aiChat": True, "vocabulary": True, "exportData": True, "viewMistakes": True},
        "daily_practice_limit": None,
        "daily_ai_chat_limit": None,
        "max_vocabulary_words": None,
        "is_popular": False,
        "sort_order": 4,
    },
]


def get_default_plan(plan_id: Optional[str]) -> Dict:
    """Return a copy of a built-in plan, falling back to free."""
    plan_id = (plan_id or "free").lower()
    for plan in DEFAULT_PLANS:
        if plan["id"] == plan_id:
            return copy.deepcopy(plan)
    return copy.deepcopy(DEFAULT_PLANS[0])


def build_permissions(features: Dict, limits: Dict[str, Optional[int]]) -> Dict:
    """Permission dict as returned by the subscription endpoints."""
    return {
        "aiPractice": bool(features.get("aiPractice")),
        "aiChat": bool(features.get("aiChat")),
        "vocabulary": bool(features.get("vocabulary", True)),
        "exportData": bool(features.get("exportData")),
        "viewMistakes": bool(features.get("viewMistakes", True)),
        "dailyPracticeLimit": limits.get(RESOURCE_DAILY_PRACTICE),
        "dailyAiChatLimit": limits.get(RESOURCE_DAILY_AI_CHAT),
        "maxVocabularyWords": limits.get(RESOURCE_VOCABULARY_WORDS),
    }


def plan_limits(plan: Dict) -> Dict[str, Optional[int]]:
    return {resource: plan.get(field) for resource, field in RESOURCE_LIMIT_FIELDS.items()}


def resource_allowed(permissions: Dict, resource_type: str) -> bool:
    """Whether the feature behind a resource is part of the permission set."""
    if resource_type == RESOURCE_DAILY_PRACTICE:
        return permissions["aiPractice"]
    if resource_type == RESOURCE_DAILY_AI_CHAT:
        return permissions["aiChat"]
    if resource_type == RESOURCE_VOCABULARY_WORDS:
        return permissions["vocabulary"]
    return False


def resource_limit(permissions: Dict, resource_type: str) -> Optional[int]:
    return {
        RESOURCE_DAILY_PRACTICE: permissions["dailyPracticeLimit"],
        RESOURCE_DAILY_AI_CHAT: permissions["dailyAiChatLimit"],
        RESOURCE_VOCABULARY_WORDS: permissions["maxVocabularyWords"],
    }.get(resource_type)
