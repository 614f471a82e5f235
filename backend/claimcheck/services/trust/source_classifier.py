"""
Source Trust Classifier.

WHAT THIS DOES:
Maps a source's origin (domain or full URL) to one of three trust tiers:
- high:   government, education, peer-reviewed / academic, international agencies
- medium: wire services, public broadcasters, newspapers of record, reference sites
- low:    everything else (blogs, forums, unknown or malformed domains)

RULES:
- Pure and deterministic: the tier depends on the host name alone, never on
  the claim being checked.
- Scheme, case, port, "www." and the path are ignored, so
  "HTTPS://www.CDC.gov/flu/index.html" and "cdc.gov" land in the same tier.
- Suffix patterns (".gov", ".ac.uk") match the end of the host. Named domains
  ("nature.com") match the domain itself and any of its subdomains, so
  "notnature.com" is NOT high trust.

Commercial interest is a separate flag, independent of tier: a shopping or
self-publishing site may be quoted for context but never counts as
independent corroboration (see verdict_aggregator).

USAGE:
    classify("https://www.nih.gov/news")        # "high"
    classify("en.wikipedia.org")                # "medium"
    classify("random-blog.net")                 # "low"
    sources = classify_sources(raw_sources)     # RawSource[] → Source[]
"""

import logging
import re
from typing import Optional
from urllib.parse import urlsplit

from claimcheck.models.schemas import RawSource, Source, Stance, TrustTier

logger = logging.getLogger(__name__)


# =============================================================================
# TIER TABLES
# =============================================================================
#
# Entries starting with "." are suffixes; everything else is a domain that
# matches itself and its subdomains.
#

HIGH_TRUST_DOMAINS: tuple[str, ...] = (
    # Education and government
    ".edu",
    ".gov",
    ".mil",
    ".gov.uk",
    ".ac.uk",
    ".gc.ca",
    ".gov.au",
    ".edu.au",
    ".europa.eu",
    # Peer-reviewed / academic
    "nature.com",
    "science.org",
    "sciencedirect.com",
    "scholar.google.com",
    "jstor.org",
    "springer.com",
    "wiley.com",
    "ieee.org",
    "acm.org",
    "arxiv.org",
    "researchgate.net",
    "semanticscholar.org",
    "thelancet.com",
    "nejm.org",
    "bmj.com",
    "plos.org",
    # International organizations
    "who.int",
    "un.org",
    "worldbank.org",
    "imf.org",
    "oecd.org",
    # Reference / computation / statistics
    "britannica.com",
    "wolframalpha.com",
    "wolfram.com",
    "statista.com",
)

MEDIUM_TRUST_DOMAINS: tuple[str, ...] = (
    # Reference (crowdsourced but cited)
    "wikipedia.org",
    "wiktionary.org",
    # Wire services
    "reuters.com",
    "apnews.com",
    "afp.com",
    # Public broadcasting
    "bbc.com",
    "bbc.co.uk",
    "npr.org",
    "pbs.org",
    # Newspapers of record
    "nytimes.com",
    "washingtonpost.com",
    "theguardian.com",
    "wsj.com",
    "ft.com",
    "economist.com",
    # Broadcast news
    "cnn.com",
    "cbsnews.com",
    "nbcnews.com",
    "abcnews.go.com",
    # Business / finance
    "forbes.com",
    "bloomberg.com",
    "cnbc.com",
    "marketwatch.com",
    # Tech
    "wired.com",
    "arstechnica.com",
    "theverge.com",
    "techcrunch.com",
    # Sports
    "espn.com",
    # Fact-checkers
    "snopes.com",
    "factcheck.org",
    "politifact.com",
)

# Sites whose content is shaped by selling something or by self-publishing.
# Flagged as commercial regardless of tier.
COMMERCIAL_DOMAINS: tuple[str, ...] = (
    "amazon.com",
    "ebay.com",
    "etsy.com",
    "walmart.com",
    "aliexpress.com",
    "shopify.com",
    "medium.com",
    "substack.com",
    "blogspot.com",
    "wordpress.com",
    "quora.com",
    "answers.com",
    "buzzfeed.com",
    "huffpost.com",
)

# Host tokens (split on "." and "-") that signal a storefront
COMMERCIAL_TOKENS = frozenset({"shop", "store", "deals", "coupon", "coupons", "buy"})

TIER_RANK: dict[str, int] = {"high": 0, "medium": 1, "low": 2}

_VALID_HOST = re.compile(r"^[a-z0-9-]+(\.[a-z0-9-]+)+$")
_FALLBACK_HOST = re.compile(r"^(?:[a-z][a-z0-9+.-]*://)?(?:www\.)?([^/\s?#:]+)")


# =============================================================================
# DOMAIN EXTRACTION
# =============================================================================

def extract_domain(value: Optional[str]) -> str:
    """
    Extract the bare host name from a domain or URL.

    Returns "" when nothing host-like can be found.

    Example:
        extract_domain("https://www.Nature.com/articles/x")  # "nature.com"
        extract_domain("cdc.gov/flu")                       # "cdc.gov"
        extract_domain("not a url")                         # ""
    """
    if not value or not isinstance(value, str):
        return ""

    candidate = value.strip().lower()
    if not candidate:
        return ""

    # urlsplit only finds the host after "//"
    if "://" not in candidate:
        candidate = "//" + candidate.lstrip("/")

    try:
        host = urlsplit(candidate).hostname or ""
    except ValueError:
        # Malformed URL (e.g. broken IPv6 brackets): take whatever precedes the path
        match = _FALLBACK_HOST.match(value.strip().lower())
        host = match.group(1) if match else ""

    host = host.rstrip(".")
    if host.startswith("www."):
        host = host[4:]

    return host if _VALID_HOST.match(host) else ""


def _matches(host: str, patterns: tuple[str, ...]) -> bool:
    for pattern in patterns:
        if pattern.startswith("."):
            if host.endswith(pattern):
                return True
        elif host == pattern or host.endswith("." + pattern):
            return True
    return False


# =============================================================================
# CLASSIFICATION
# =============================================================================

def classify(domain: Optional[str]) -> TrustTier:
    """
    Classify a domain (or URL) into a trust tier.

    Total function: unknown, empty or malformed input is "low".
    """
    host = extract_domain(domain)
    if not host:
        return "low"
    if _matches(host, HIGH_TRUST_DOMAINS):
        return "high"
    if _matches(host, MEDIUM_TRUST_DOMAINS):
        return "medium"
    return "low"


def is_commercial(domain: Optional[str]) -> bool:
    """True when the host is a known storefront / self-publishing platform."""
    host = extract_domain(domain)
    if not host:
        return False
    if _matches(host, COMMERCIAL_DOMAINS):
        return True
    tokens = re.split(r"[.-]", host)
    return any(token in COMMERCIAL_TOKENS for token in tokens)


def classify_source(raw: RawSource, default_stance: Stance = "neutral") -> Source:
    """
    Derive a classified Source from a RawSource. The raw source is not modified.

    The domain is taken from `raw.domain` when present, otherwise from the URL.
    """
    origin = raw.domain or raw.url
    host = extract_domain(origin)

    return Source(
        url=raw.url,
        title=raw.title,
        snippet=raw.snippet,
        domain=host or raw.domain,
        quality=classify(origin),
        stance=raw.stance or default_stance,
        commercial=raw.commercial or is_commercial(origin),
    )


def classify_sources(raw_sources: list[RawSource], default_stance: Stance = "neutral") -> list[Source]:
    """Classify a list of raw sources, preserving order."""
    return [classify_source(raw, default_stance) for raw in raw_sources]


def sort_sources_by_quality(sources: list[Source]) -> list[Source]:
    """Return sources ordered high → medium → low (stable, original list untouched)."""
    return sorted(sources, key=lambda s: TIER_RANK[s.quality])
