import logging

import firebase_admin
from firebase_admin import credentials, firestore

from app.config import Settings

logger = logging.getLogger(__name__)

REVIEW_FIELD = "ai_review"
INGREDIENTS_FIELD = "ingredients"


class FirestoreConfigError(Exception):
    pass


class ProductNotFoundError(Exception):
    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product '{product_id}' not found")


def init_firestore(settings: Settings):
    """
    Initialize the default Firebase app from service-account settings and
    return a Firestore client. Called once at process start.
    """
    try:
        firebase_admin.get_app()
    except ValueError:
        missing = [
            name
            for name, value in (
                ("FIREBASE_PROJECT_ID", settings.firebase_project_id),
                ("FIREBASE_CLIENT_EMAIL", settings.firebase_client_email),
                ("FIREBASE_PRIVATE_KEY", settings.firebase_private_key),
            )
            if not value
        ]
        if missing:
            raise FirestoreConfigError(f"Missing {', '.join(missing)}")

        cred = credentials.Certificate(
            {
                "type": "service_account",
                "project_id": settings.firebase_project_id,
                "client_email": settings.firebase_client_email,
                "private_key": settings.firebase_private_key_pem,
                "token_uri": "https://oauth2.googleapis.com/token",
            }
        )
        firebase_admin.initialize_app(cred)
        logger.info("Firebase app initialized for project %s", settings.firebase_project_id)
    return firestore.client()


def fetch_ingredients(
    db,
    collection: str,
    product_id: str,
    missing_policy: str = "empty_ingredients",
):
    """
    Read a product's ingredient list.

    The stored value is returned as-is. A document without an ``ingredients``
    field (or with an empty one) yields an empty list. A missing
    document yields an empty list under the ``empty_ingredients`` policy and
    raises ``ProductNotFoundError`` under ``not_found``.
    """
    snapshot = db.collection(collection).document(product_id).get()
    if not snapshot.exists:
        if missing_policy == "not_found":
            raise ProductNotFoundError(product_id)
        logger.warning("Product %s not found, using empty ingredient list", product_id)
        return []

    data = snapshot.to_dict() or {}
    return data.get(INGREDIENTS_FIELD) or []


def save_review(
    db,
    collection: str,
    product_id: str,
    reviews: list[str],
    mode: str = "merge",
) -> None:
    """
    Store generated reviews on the product document.

    ``merge`` creates the document when needed. ``update`` raises
    ``google.api_core.exceptions.NotFound`` when it does not exist.
    """
    doc_ref = db.collection(collection).document(product_id)
    if mode == "update":
        doc_ref.update({REVIEW_FIELD: reviews})
    else:
        doc_ref.set({REVIEW_FIELD: reviews}, merge=True)
    logger.info("Saved %d review items to %s/%s (%s)", len(reviews), collection, product_id, mode)
