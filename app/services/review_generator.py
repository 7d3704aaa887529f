import json
import logging
from pathlib import Path

from app.services.providers import ProviderError, TextProvider

logger = logging.getLogger(__name__)

_PROMPT_DIR = Path(__file__).parent.parent / "prompts"
_PROMPT_TEMPLATES = {
    "detailed": (_PROMPT_DIR / "review_detailed.txt").read_text(encoding="utf-8"),
    "concise": (_PROMPT_DIR / "review_concise.txt").read_text(encoding="utf-8"),
}


class ReviewParseError(ProviderError):
    pass


class ReviewFormatError(ProviderError):
    pass


def build_prompt(ingredients, style: str = "detailed") -> str:
    template = _PROMPT_TEMPLATES[style]
    payload = json.dumps(ingredients, ensure_ascii=False, separators=(",", ":"), default=str)
    return template.format(ingredients=payload).strip()


def _reject_constant(name: str):
    raise ValueError(f"{name} is not valid JSON")


def _to_text(item) -> str:
    if isinstance(item, str):
        return item
    if isinstance(item, float) and item.is_integer() and abs(item) < 1e21:
        return str(int(item))
    if isinstance(item, (dict, list)):
        return json.dumps(item, ensure_ascii=False, separators=(",", ":"))
    # bool and None become "true"/"false"/"null"
    return json.dumps(item)


def parse_review_text(text: str, provider_name: str = "Provider") -> list[str]:
    """
    Parse provider output as a JSON array of review strings.

    Args:
        text: Raw text returned by the provider.
        provider_name: Used in error messages only.

    Returns:
        Every array element as a string. Numbers, booleans and null are
        rendered the way JSON writes them; nested arrays and objects as
        compact JSON.

    Raises:
        ReviewParseError: The text is not valid JSON (``NaN`` and ``Infinity``
            included). The message carries the raw text.
        ReviewFormatError: The JSON value is not an array.
    """
    try:
        parsed = json.loads(str(text).strip(), parse_constant=_reject_constant)
    except ValueError as e:
        raise ReviewParseError(f"Failed to parse {provider_name} response: {text}") from e

    if not isinstance(parsed, list):
        raise ReviewFormatError(f"{provider_name} response is not a JSON array.")

    return [_to_text(item) for item in parsed]


def generate_review_from_ingredients(
    provider: TextProvider,
    ingredients: list[str],
    style: str = "detailed",
) -> list[str]:
    """Ask the provider for short review bullets about an ingredient list."""
    prompt = build_prompt(ingredients, style)
    text = provider.generate(prompt)
    reviews = parse_review_text(text, provider.name)
    logger.info("Generated %d review items via %s", len(reviews), provider.name)
    return reviews
