"""
Prompt categorisation

Scores every category by its keywords: +1 when the keyword occurs anywhere
in the prompt and +1 per whole-word occurrence. The best positive score wins,
otherwise the first category is used.
"""
from __future__ import annotations

import re
from collections.abc import Sequence

from app.models import Category


def score(prompt: str, keywords: Sequence[str]) -> int:
    text = prompt.lower()
    total = 0
    for keyword in keywords:
        kw = keyword.lower().strip()
        if not kw or kw not in text:
            continue
        total += 1
        total += len(re.findall(rf"\b{re.escape(kw)}\b", text))
    return total


def analyze_prompt_for_category(prompt: str, categories: Sequence[Category]) -> Category | None:
    """
    Best matching category for a prompt

    Returns:
        the winning category, the first category when nothing matches, or
        None for an empty prompt or an empty category list
    """
    if not prompt or not prompt.strip() or not categories:
        return None
    best: Category | None = None
    best_score = 0
    for category in categories:
        s = score(prompt, category.keywords or [])
        if s > best_score:
            best, best_score = category, s
    return best or categories[0]
