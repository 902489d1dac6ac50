"""
shop/addresses.py -- Shipping address book.

Addresses belong to one user. Owners can read, edit and delete their own;
admins can do the same for anyone. Not cached: address reads are rare and
per-user.
"""

from __future__ import annotations

import logging
from dataclasses import asdict

from auth.models import Principal
from core.errors import ForbiddenError, NotFoundError
from shop.models import Address
from shop.store import ShopStore

logger = logging.getLogger("storefront.addresses")

_ADDRESS_FIELDS = ("street", "building_name", "city", "state", "country", "pincode")


def address_dict(address: Address) -> dict:
    data = asdict(address)
    data["address_id"] = data.pop("id")
    return data


class AddressService:
    def __init__(self, store: ShopStore) -> None:
        self.store = store

    def create(self, principal: Principal, data: dict) -> dict:
        address_id = self.store.create_address(
            Address(user_id=principal.user_id, **{k: data[k] for k in _ADDRESS_FIELDS})
        )
        logger.info("Address %d added for %s", address_id, principal.username)
        return address_dict(self.store.get_address(address_id))

    def list_all(self) -> list[dict]:
        return [address_dict(a) for a in self.store.list_addresses()]

    def list_for(self, principal: Principal) -> list[dict]:
        return [address_dict(a) for a in self.store.list_addresses(user_id=principal.user_id)]

    def get(self, principal: Principal, address_id: int) -> dict:
        return address_dict(self._require_owned(principal, address_id))

    def update(self, principal: Principal, address_id: int, data: dict) -> dict:
        self._require_owned(principal, address_id)
        self.store.update_address(address_id, **{k: data[k] for k in _ADDRESS_FIELDS})
        return address_dict(self.store.get_address(address_id))

    def delete(self, principal: Principal, address_id: int) -> str:
        self._require_owned(principal, address_id)
        self.store.delete_address(address_id)
        return f"Address deleted successfully with addressId: {address_id}"

    def _require_owned(self, principal: Principal, address_id: int) -> Address:
        address = self.store.get_address(address_id)
        if address is None:
            raise NotFoundError.of("Address", "addressId", address_id)
        if address.user_id != principal.user_id and not principal.is_admin:
            raise ForbiddenError("You can only access your own addresses")
        return address
