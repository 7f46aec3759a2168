from fastapi import APIRouter

from db import SessionDep
from responses import parse_id, send_result
from schemas import ItemCreate, ItemUpdate
from services import ServicesDep

router = APIRouter(prefix="/api/items", tags=["items"])


@router.get("")
def list_items(session: SessionDep, services: ServicesDep):
    """
    The ration item catalogue, ordered by name.
    """
    return send_result(services.items.get_all_items(session))


@router.get("/{item_id}")
def get_item(item_id: str, session: SessionDep, services: ServicesDep):
    """
    Get a single item by ID.
    """
    return send_result(services.items.get_item_by_id(session, parse_id(item_id, "item")))


@router.post("")
def create_item(item_in: ItemCreate, session: SessionDep, services: ServicesDep):
    return send_result(services.items.create_item(session, item_in), status_code=201)


@router.put("/{item_id}")
def update_item(item_id: str, item_in: ItemUpdate, session: SessionDep, services: ServicesDep):
    result = services.items.update_item(session, parse_id(item_id, "item"), item_in)
    return send_result(result)


@router.delete("/{item_id}")
def delete_item(item_id: str, session: SessionDep, services: ServicesDep):
    return send_result(services.items.delete_item(session, parse_id(item_id, "item")))
