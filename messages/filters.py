"""Sensitive content filtering for chat messages.

Contact details (emails, phone numbers, social profile links) and a list of
sensitive words are replaced before a message is stored, so users cannot take
a conversation off the platform.
"""
import re

REPLACEMENT = "{--- not Allowed ---}"

SENSITIVE_PATTERNS = {
    'email': re.compile(r'[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}'),
    'phone': re.compile(r'(?:\+?\d{1,3}[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}'),
    'social_media': re.compile(
        r'(?:https?://)?(?:www\.)?'
        r'(?:facebook|twitter|instagram|linkedin|tiktok|snapchat)\.com/[\w\-.]+',
        re.IGNORECASE
    ),
}

SENSITIVE_WORDS = [
    'password',
    'secret',
    'credit card',
    'ssn',
    'social security',
    'حساب',
    'كلمة السر',
    'الرقم السري',
    'البطاقة الالإئتمانية',
    'المعلومات الشخصية',
    'المعلومات السرية',
    'الكود السري',
    'sex',
    'gender',
    '@',
    'ات',
    'جيميل',
    'هوتميل',
]

# Whole-word matches only
_WORD_PATTERNS = [
    re.compile(rf'\b{re.escape(word)}\b', re.IGNORECASE)
    for word in SENSITIVE_WORDS
]

def filter_sensitive_content(content: str) -> str:
    """Return ``content`` with sensitive fragments replaced."""
    filtered = content
    for pattern in SENSITIVE_PATTERNS.values():
        filtered = pattern.sub(REPLACEMENT, filtered)
    for pattern in _WORD_PATTERNS:
        filtered = pattern.sub(REPLACEMENT, filtered)
    return filtered

def contains_sensitive_content(content: str) -> bool:
    return filter_sensitive_content(content) != content
