import logging

from fastapi import APIRouter, Depends

from ..auth_utils import CurrentUser, current_user
from ..deps import get_store
from ..seasons import all_users
from ..store import DocumentStore


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/user", tags=["user"])


@router.get("/all")
def list_all_users(
    user: CurrentUser = Depends(current_user),
    store: DocumentStore = Depends(get_store),
):
    logger.info("User %s (%s) accessing all users", user.email, user.uid)
    return all_users(store)
