from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from marketgap.tools.web_utils import is_valid_url


@dataclass(slots=True, frozen=True)
class CompetitorTarget:
    name: str
    pricing_url: str
    features_url: str
    backup_url: str = ""


DEFAULT_TARGETS: tuple[CompetitorTarget, ...] = (
    CompetitorTarget(
        name="Buffer",
        pricing_url="https://buffer.com/pricing",
        features_url="https://buffer.com/features",
        backup_url="https://buffer.com/all-features",
    ),
    CompetitorTarget(
        name="Later",
        pricing_url="https://later.com/pricing",
        features_url="https://later.com/features",
        backup_url="https://later.com/tools",
    ),
    CompetitorTarget(
        name="Notion",
        pricing_url="https://www.notion.so/pricing",
        features_url="https://www.notion.so/product",
        backup_url="https://www.notion.so/help",
    ),
)

GAP_KEYWORDS: dict[str, tuple[str, ...]] = {
    "free_tier": ("free plan", "free tier", "free forever", "$0/month", "always free"),
    "short_form": ("shorts", "reels", "tiktok", "short-form video", "vertical video"),
    "analytics": (
        "analytics dashboard",
        "creator analytics",
        "performance analytics",
        "audience insights",
    ),
}

NO_FREE_TIER = "no_free_tier"
NO_SHORT_FORM = "no_short_form_support"
NO_ANALYTICS = "no_creator_analytics"
MISSING_TARGET = "missing_target_feature"

GAP_LABELS = {
    NO_FREE_TIER: "No free tier detected",
    NO_SHORT_FORM: "No short-form video support found",
    NO_ANALYTICS: "No creator analytics dashboard found",
}


def _mentions_any(text: str, keywords: tuple[str, ...]) -> bool:
    return any(kw in text for kw in keywords)


def has_free_tier(text: str) -> bool:
    return _mentions_any(text.lower(), GAP_KEYWORDS["free_tier"])


def detect_pricing_gaps(text: str, keyword: str = "") -> list[str]:
    lowered = text.lower()
    gaps: list[str] = []
    if not _mentions_any(lowered, GAP_KEYWORDS["free_tier"]):
        gaps.append(NO_FREE_TIER)
    kw = keyword.strip().lower()
    if kw and kw not in lowered:
        gaps.append(MISSING_TARGET)
    return gaps


def detect_feature_gaps(text: str, keyword: str = "", *, keyword_found: bool = False) -> list[str]:
    lowered = text.lower()
    gaps: list[str] = []
    if not _mentions_any(lowered, GAP_KEYWORDS["short_form"]):
        gaps.append(NO_SHORT_FORM)
    if not _mentions_any(lowered, GAP_KEYWORDS["analytics"]):
        gaps.append(NO_ANALYTICS)
    kw = keyword.strip().lower()
    if kw and not keyword_found and kw not in lowered:
        gaps.append(MISSING_TARGET)
    return gaps


def detect_gaps(text: str, keyword: str = "") -> list[str]:
    """Apply every heuristic to a single page of text."""
    merged = detect_pricing_gaps(text, keyword) + detect_feature_gaps(text, keyword)
    return list(dict.fromkeys(merged))


def build_gap_notes(gaps: list[str], keyword: str = "") -> str:
    found: list[str] = []
    for gap in dict.fromkeys(gaps):
        if gap == MISSING_TARGET:
            if keyword:
                found.append(f'No "{keyword}" feature found')
        elif gap in GAP_LABELS:
            found.append(GAP_LABELS[gap])
    if not found:
        return "No major gaps detected on this competitor."
    return f"Gap(s) confirmed: {'; '.join(found)}."


def parse_competitor_targets(payload: Any, *, limit: int = 3) -> list[CompetitorTarget]:
    """Read reasoning output of the form {"competitors": [...]} into targets.

    Entries without a name or with invalid pricing/features URLs are dropped.
    """
    if not isinstance(payload, dict):
        return []
    raw = payload.get("competitors")
    if not isinstance(raw, list):
        return []
    targets: list[CompetitorTarget] = []
    seen: set[str] = set()
    for item in raw:
        if not isinstance(item, dict):
            continue
        name = str(item.get("name") or "").strip()
        pricing = str(item.get("pricingUrl") or item.get("pricing_url") or "").strip()
        features = str(item.get("featuresUrl") or item.get("features_url") or "").strip()
        backup = str(item.get("backup") or item.get("backup_url") or "").strip()
        if not name or name.lower() in seen:
            continue
        if not (is_valid_url(pricing) and is_valid_url(features)):
            continue
        seen.add(name.lower())
        targets.append(
            CompetitorTarget(
                name=name,
                pricing_url=pricing,
                features_url=features,
                backup_url=backup if is_valid_url(backup) else "",
            )
        )
        if len(targets) >= limit:
            break
    return targets
