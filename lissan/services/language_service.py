"""
Language Service
Script-based language detection and the per-language system prompts
"""

import re

# Ethiopic block (U+1200 - U+137F)
AMHARIC_PATTERN = re.compile(r'[\u1200-\u137F]')

SUPPORTED_LANGUAGES = ('am', 'en')

SYSTEM_PROMPTS = {
    'en': """You are a helpful AI assistant that can communicate in both English and Amharic. 
You have access to company documents and can answer questions based on them. 
Be professional, accurate, and helpful. If you don't know something, say so clearly.
When responding in Amharic, use proper Ethiopian Amharic script and grammar.""",

    'am': """አንተ በእንግሊዝኛና በአማርኛ መወያየት የምትችል ጠቃሚ AI ረዳት ነህ።
የኩባንያ ሰነዶች ላይ መሰረት አድርገህ ጥያቄዎችን መመለስ ትችላለህ።
ሙያዊ፣ ትክክለኛና ጠቃሚ ሁን። የማታውቀውን ነገር ግልጽ በማድረግ ተናገር።
በአማርኛ ስትመልስ ትክክለኛ የአማርኛ ሰዋስው እና ፊደል ተጠቀም።"""
}


def has_amharic(text: str) -> bool:
    return bool(text) and AMHARIC_PATTERN.search(text) is not None


def detect_language(text: str) -> str:
    """Return 'am' if the text contains any Ethiopic code point, otherwise 'en'."""
    return 'am' if has_amharic(text) else 'en'


def resolve_language(text: str, language: str = None) -> str:
    """Use the declared language when given, else fall back to detection.

    'auto' counts as undeclared: a message always gets a concrete tag.
    """
    if language and language != 'auto':
        return language
    return detect_language(text)


def get_system_prompt(language: str) -> str:
    return SYSTEM_PROMPTS['am'] if language == 'am' else SYSTEM_PROMPTS['en']
