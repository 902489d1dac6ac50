"""
api/routes/addresses.py -- Address book routes.

Routes:
  POST   /api/addresses                 -- add an address for the caller
  GET    /api/addresses                 -- every address (admin)
  GET    /api/addresses/{address_id}    -- one address (owner or admin)
  GET    /api/users/addresses           -- caller's addresses
  PUT    /api/addresses/{address_id}    -- replace (owner or admin)
  DELETE /api/addresses/{address_id}    -- delete (owner or admin)
"""

from fastapi import APIRouter, Depends, Request

from api.models import AddressIn, AddressOut, MessageResponse
from auth.dependencies import get_current_user, require_admin
from auth.models import Principal
from shop.addresses import AddressService

router = APIRouter()


@router.post("/addresses", response_model=AddressOut, status_code=201)
def create_address(request: Request, body: AddressIn, user: Principal = Depends(get_current_user)) -> dict:
    addresses: AddressService = request.app.state.addresses
    return addresses.create(user, body.model_dump())


@router.get("/addresses", response_model=list[AddressOut])
def list_addresses(request: Request, admin: Principal = Depends(require_admin)) -> list[dict]:
    addresses: AddressService = request.app.state.addresses
    return addresses.list_all()


@router.get("/addresses/{address_id}", response_model=AddressOut)
def get_address(request: Request, address_id: int, user: Principal = Depends(get_current_user)) -> dict:
    addresses: AddressService = request.app.state.addresses
    return addresses.get(user, address_id)


@router.get("/users/addresses", response_model=list[AddressOut])
def user_addresses(request: Request, user: Principal = Depends(get_current_user)) -> list[dict]:
    addresses: AddressService = request.app.state.addresses
    return addresses.list_for(user)


@router.put("/addresses/{address_id}", response_model=AddressOut)
def update_address(
    request: Request,
    address_id: int,
    body: AddressIn,
    user: Principal = Depends(get_current_user),
) -> dict:
    addresses: AddressService = request.app.state.addresses
    return addresses.update(user, address_id, body.model_dump())


@router.delete("/addresses/{address_id}", response_model=MessageResponse)
def delete_address(request: Request, address_id: int, user: Principal = Depends(get_current_user)) -> MessageResponse:
    addresses: AddressService = request.app.state.addresses
    return MessageResponse(message=addresses.delete(user, address_id))
