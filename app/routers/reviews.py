import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from app.config import Settings, settings
from app.models.review import ReviewRequest, ReviewResult
from app.services.firestore_client import ProductNotFoundError, fetch_ingredients, save_review
from app.services.providers import TextProvider
from app.services.review_generator import generate_review_from_ingredients

logger = logging.getLogger(__name__)
router = APIRouter(tags=["reviews"])

REVIEW_PATHS = ("/generateAiReview", "/.netlify/functions/generateAiReview")
MISSING_IDS_MESSAGE = "productId1 and productId2 are required"


def get_settings() -> Settings:
    return settings


def get_db(request: Request):
    return request.app.state.db


def get_provider(request: Request) -> TextProvider:
    return request.app.state.provider


def _cors_headers(cfg: Settings) -> dict[str, str]:
    if not cfg.cors_enabled:
        return {}
    return {
        "Access-Control-Allow-Origin": cfg.cors_allow_origin,
        "Access-Control-Allow-Headers": "Content-Type",
        "Access-Control-Allow-Methods": "POST, OPTIONS",
    }


async def _parse_body(request: Request, headers: dict[str, str]) -> ReviewRequest:
    raw = await request.body()
    if not raw.strip():
        return ReviewRequest()
    try:
        return ReviewRequest.model_validate_json(raw)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=MISSING_IDS_MESSAGE, headers=headers) from exc


async def _run_pair(func, first: tuple, second: tuple):
    """Run two blocking calls in worker threads; the first failure wins."""
    return await asyncio.gather(
        asyncio.to_thread(func, *first),
        asyncio.to_thread(func, *second),
    )


async def _generate_reviews(
    product_ids: tuple[str, str],
    db,
    provider: TextProvider,
    cfg: Settings,
) -> tuple[list[str], list[str]]:
    id1, id2 = product_ids
    collection = cfg.products_collection

    ingredients1, ingredients2 = await _run_pair(
        fetch_ingredients,
        (db, collection, id1, cfg.missing_product_policy),
        (db, collection, id2, cfg.missing_product_policy),
    )
    review1, review2 = await _run_pair(
        generate_review_from_ingredients,
        (provider, ingredients1, cfg.prompt_style),
        (provider, ingredients2, cfg.prompt_style),
    )
    await _run_pair(
        save_review,
        (db, collection, id1, review1, cfg.write_mode),
        (db, collection, id2, review2, cfg.write_mode),
    )
    return review1, review2


async def generate_ai_review(
    request: Request,
    db=Depends(get_db),
    provider: TextProvider = Depends(get_provider),
    cfg: Settings = Depends(get_settings),
):
    """
    Generate AI review bullets for two products and store them in Firestore.

    1. Validate that both product IDs are present.
    2. Fetch both ingredient lists in parallel.
    3. Ask the configured provider for both reviews in parallel.
    4. Write both reviews back to their documents in parallel.
    """
    headers = _cors_headers(cfg)
    body = await _parse_body(request, headers)
    if not body.is_complete():
        raise HTTPException(status_code=400, detail=MISSING_IDS_MESSAGE, headers=headers)

    product_ids = (body.product_id_1, body.product_id_2)
    try:
        review1, review2 = await _generate_reviews(product_ids, db, provider, cfg)
    except ProductNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc), headers=headers) from exc
    except Exception as exc:
        logger.exception("AI review generation failed for %s and %s", *product_ids)
        raise HTTPException(status_code=500, detail=str(exc), headers=headers) from exc

    if cfg.response_keys == "field_name":
        keys = ("productId1", "productId2")
    else:
        keys = product_ids
    result: ReviewResult = {keys[0]: review1, keys[1]: review2}
    return JSONResponse(content=result, headers=headers)


async def review_preflight(cfg: Settings = Depends(get_settings)):
    if not cfg.cors_enabled:
        raise HTTPException(status_code=405, detail="Method Not Allowed")
    return Response(status_code=204, headers=_cors_headers(cfg))


async def method_not_allowed(cfg: Settings = Depends(get_settings)):
    raise HTTPException(status_code=405, detail="Method Not Allowed", headers=_cors_headers(cfg))


for path in REVIEW_PATHS:
    router.add_api_route(path, generate_ai_review, methods=["POST"])
    router.add_api_route(path, review_preflight, methods=["OPTIONS"], include_in_schema=False)
    router.add_api_route(
        path,
        method_not_allowed,
        methods=["GET", "PUT", "PATCH", "DELETE"],
        include_in_schema=False,
    )
