"""Token-overlap relevance scoring used to refine an active result set."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

from .models import Product
from .utils import tokenize


@dataclass(frozen=True)
class ScoredProduct:
    """Product paired with the number of refinement tokens found in its name."""
    product: Product
    score: int


def score_product(product: Product, phrase_tokens: Sequence[str]) -> ScoredProduct:
    """Count phrase tokens (repeats included) that are members of the name's token set."""
    name_tokens = set(tokenize(product.name))
    score = sum(1 for token in phrase_tokens if token in name_tokens)
    return ScoredProduct(product=product, score=score)


def score_products(products: Sequence[Product], phrase: str) -> List[Product]:
    """Purpose: Filter and rank candidates by token overlap with a refinement phrase.
    Inputs/Outputs: Inputs are the candidate products and the refinement phrase; output
        is a new list holding only products with score > 0, best score first.
    Side Effects / State: None; inputs are never mutated.
    Dependencies: tokenize and score_product.
    Failure Modes: Empty phrase, empty products, or a phrase with zero tokens returns
        the products unchanged (as a new list in the same order).
    If Removed: Refinement in SEARCH_MODE has no way to narrow the result set.
    Testing Notes: Equal scores keep input order; re-scoring the output with the same
        phrase returns the same list.
    """
    if not phrase or not products:
        return list(products)
    phrase_tokens = tokenize(phrase)
    if not phrase_tokens:
        return list(products)

    scored = [score_product(product, phrase_tokens) for product in products]
    matched = [item for item in scored if item.score > 0]
    # sorted() is stable, so ties keep catalog/previous-relevance order.
    ranked = sorted(matched, key=lambda item: item.score, reverse=True)
    return [item.product for item in ranked]
