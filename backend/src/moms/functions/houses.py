from __future__ import annotations

import logging
from typing import Any, Dict, List

from sqlmodel import select

from moms.auth.credentials import hash_password
from moms.core.config import get_settings
from moms.models.billing import Bill
from moms.models.identity import Credential, Role, User, UserStatus
from moms.models.orders import Order
from moms.models.organization import Agency, AgencyStatus, House, HouseMemberPhone
from moms.utils.phone import is_valid_phone, normalize_phone, phone_to_identifier

from .menu import cutoff_times_arg
from .registry import CallContext, FunctionError, dump_all, enum_arg, function, get_or_404, require_fields

logger = logging.getLogger(__name__)


def _valid_phone(raw: Any, key: str) -> str:
    phone = normalize_phone(str(raw))
    if not is_valid_phone(phone):
        raise FunctionError("invalid-argument", f"{key} is not a valid phone number")
    return phone


def _phone_arg(data: Dict[str, Any], key: str) -> str:
    require_fields(data, key)
    return _valid_phone(data[key], key)


def _member_phones_arg(raw: Any) -> List[str]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise FunctionError("invalid-argument", "memberPhones must be a list")
    phones: List[str] = []
    for entry in raw:
        phone = _valid_phone(entry, "memberPhones")
        if phone not in phones:
            phones.append(phone)
    return phones


def _require_agency_owner(ctx: CallContext, agency: Agency) -> User:
    caller = ctx.require_agency_actor(agency.id)
    if caller.role == Role.agency_helper:
        raise FunctionError("permission-denied", "Only the agency owner can do this")
    return caller


# -------------------- agencies --------------------
@function("createAgency")
def create_agency(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "name")
    ctx.require_caller(Role.system_admin)
    owner_id = data.get("ownerId")
    if owner_id:
        get_or_404(ctx.db, User, owner_id, "Owner")
    agency = Agency(
        name=str(data["name"]).strip(),
        owner_id=owner_id,
        cutoff_times=cutoff_times_arg(data.get("cutoffTimes")),
    )
    ctx.db.add(agency)
    ctx.db.commit()
    ctx.db.refresh(agency)
    return {"agency": agency.to_dict()}


@function("updateAgency")
def update_agency(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    """Rename, replace the cutoff map, or (system admin only) hand the agency to another owner."""
    require_fields(data, "agencyId")
    agency = get_or_404(ctx.db, Agency, data["agencyId"], "Agency")
    caller = _require_agency_owner(ctx, agency)
    if "name" in data:
        name = str(data["name"] or "").strip()
        if not name:
            raise FunctionError("invalid-argument", "name must not be empty")
        agency.name = name
    if "cutoffTimes" in data:
        agency.cutoff_times = cutoff_times_arg(data["cutoffTimes"])
    if "ownerId" in data:
        if caller.role != Role.system_admin:
            raise FunctionError("permission-denied", "Only a system admin can change the owner")
        get_or_404(ctx.db, User, data["ownerId"], "Owner")
        agency.owner_id = data["ownerId"]
    ctx.db.add(agency)
    ctx.db.commit()
    ctx.db.refresh(agency)
    return {"agency": agency.to_dict()}


@function("updateAgencyStatus")
def update_agency_status(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "agencyId")
    ctx.require_caller(Role.system_admin)
    agency = get_or_404(ctx.db, Agency, data["agencyId"], "Agency")
    agency.status = enum_arg(AgencyStatus, data, "status")
    ctx.db.add(agency)
    ctx.db.commit()
    ctx.db.refresh(agency)
    return {"agency": agency.to_dict()}


@function("listAgencies")
def list_agencies(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    ctx.require_caller(Role.system_admin)
    return {"agencies": dump_all(ctx.db.exec(select(Agency).order_by(Agency.name)).all())}


# -------------------- agency helpers --------------------
@function("addAgencyHelper")
def add_agency_helper(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    """Create a sign-in for a helper; helpers cannot self-register."""
    require_fields(data, "agencyId", "name", "password")
    agency = get_or_404(ctx.db, Agency, data["agencyId"], "Agency")
    _require_agency_owner(ctx, agency)
    phone = _phone_arg(data, "phone")
    password = str(data["password"])
    settings = get_settings()
    if len(password) < settings.min_password_length:
        raise FunctionError(
            "invalid-argument", f"Password should be at least {settings.min_password_length} characters"
        )
    identifier = phone_to_identifier(phone, settings.credential_domain)
    if ctx.db.exec(select(Credential).where(Credential.identifier == identifier)).first():
        raise FunctionError("already-exists", "This phone number is already registered")

    credential = Credential(identifier=identifier, password_hash=hash_password(password))
    ctx.db.add(credential)
    ctx.db.flush()
    helper = User(
        id=credential.uid,
        phone=phone,
        name=str(data["name"]).strip(),
        role=Role.agency_helper,
        agency_id=agency.id,
    )
    ctx.db.add(helper)
    ctx.db.commit()
    ctx.db.refresh(helper)
    logger.info("agency helper added agency=%s uid=%s", agency.id, helper.id)
    return {"helper": helper.to_dict()}


@function("removeAgencyHelper")
def remove_agency_helper(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "agencyId", "helperId")
    agency = get_or_404(ctx.db, Agency, data["agencyId"], "Agency")
    _require_agency_owner(ctx, agency)
    helper = get_or_404(ctx.db, User, data["helperId"], "Helper")
    if helper.role != Role.agency_helper or helper.agency_id != agency.id:
        raise FunctionError("not-found", "Helper not found")
    # the account stays but can no longer act for the agency
    helper.agency_id = None
    helper.status = UserStatus.suspended
    ctx.db.add(helper)
    ctx.db.commit()
    logger.info("agency helper removed agency=%s uid=%s", agency.id, helper.id)
    return {"removed": helper.id}


@function("getAgencyHelpers")
def get_agency_helpers(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "agencyId")
    ctx.require_agency_actor(data["agencyId"])
    helpers = ctx.db.exec(
        select(User)
        .where(User.agency_id == data["agencyId"], User.role == Role.agency_helper)
        .order_by(User.name)
    ).all()
    return {"helpers": dump_all(helpers)}


# -------------------- houses --------------------
@function("createHouse")
def create_house(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "agencyId", "name")
    agency = get_or_404(ctx.db, Agency, data["agencyId"], "Agency")
    ctx.require_agency_actor(agency.id)
    admin_phone = _phone_arg(data, "houseAdminPhone") if data.get("houseAdminPhone") else None
    house = House(
        agency_id=agency.id,
        name=str(data["name"]).strip(),
        house_admin_phone=admin_phone,
        small_house_id=data.get("smallHouseId"),
    )
    house.members = [HouseMemberPhone(phone=p) for p in _member_phones_arg(data.get("memberPhones"))]
    ctx.db.add(house)
    ctx.db.commit()
    ctx.db.refresh(house)
    return {"house": house.to_dict()}


@function("getAgencyHouses")
def get_agency_houses(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "agencyId")
    ctx.require_agency_actor(data["agencyId"])
    houses = ctx.db.exec(select(House).where(House.agency_id == data["agencyId"]).order_by(House.name)).all()
    return {"houses": dump_all(houses)}


def _require_house_manager(ctx: CallContext, house: House) -> User:
    caller = ctx.require_caller(Role.house_admin, Role.agency_owner, Role.agency_helper)
    if caller.role == Role.house_admin and caller.house_id != house.id:
        raise FunctionError("permission-denied", "Not the admin of this house")
    if caller.role in (Role.agency_owner, Role.agency_helper) and caller.agency_id != house.agency_id:
        raise FunctionError("permission-denied", "House belongs to another agency")
    return caller


@function("updateHouse")
def update_house(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "houseId")
    house = get_or_404(ctx.db, House, data["houseId"], "House")
    _require_house_manager(ctx, house)
    if "name" in data:
        name = str(data["name"] or "").strip()
        if not name:
            raise FunctionError("invalid-argument", "name must not be empty")
        house.name = name
    if "smallHouseId" in data:
        house.small_house_id = data["smallHouseId"] or None
        for user in ctx.db.exec(select(User).where(User.house_id == house.id)).all():
            user.small_house_id = house.small_house_id
            ctx.db.add(user)
    ctx.db.add(house)
    ctx.db.commit()
    ctx.db.refresh(house)
    return {"house": house.to_dict()}


@function("changeHouseAdmin")
def change_house_admin(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    """Move the admin phone; the previous admin stays on as a member."""
    require_fields(data, "houseId")
    house = get_or_404(ctx.db, House, data["houseId"], "House")
    ctx.require_agency_actor(house.agency_id)
    new_phone = _phone_arg(data, "newAdminPhone")
    old_phone = house.house_admin_phone
    if new_phone == old_phone:
        raise FunctionError("failed-precondition", "Phone is already the house admin")

    house.members = [row for row in house.members if row.phone != new_phone]
    if old_phone and old_phone not in house.member_phones:
        house.members.append(HouseMemberPhone(phone=old_phone))
    house.house_admin_phone = new_phone

    for user in ctx.db.exec(select(User).where(User.house_id == house.id)).all():
        if user.phone == new_phone:
            user.role = Role.house_admin
        elif user.role == Role.house_admin:
            user.role = Role.customer
        ctx.db.add(user)
    ctx.db.add(house)
    ctx.db.commit()
    ctx.db.refresh(house)
    logger.info("house admin changed house=%s", house.id)
    return {"house": house.to_dict()}


@function("deleteHouse")
def delete_house(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "houseId")
    house = get_or_404(ctx.db, House, data["houseId"], "House")
    ctx.require_agency_actor(house.agency_id)
    has_orders = ctx.db.exec(select(Order.id).where(Order.house_id == house.id)).first()
    has_bills = ctx.db.exec(select(Bill.id).where(Bill.house_id == house.id)).first()
    if has_orders or has_bills:
        raise FunctionError("failed-precondition", "House has order or billing history")
    for user in ctx.db.exec(select(User).where(User.house_id == house.id)).all():
        user.house_id = None
        user.small_house_id = None
        if user.role == Role.house_admin:
            user.role = Role.customer
        ctx.db.add(user)
    logger.info("deleting house id=%s agency=%s", house.id, house.agency_id)
    ctx.db.delete(house)
    ctx.db.commit()
    return {"deleted": data["houseId"]}


@function("addHouseMember")
def add_house_member(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "houseId")
    house = get_or_404(ctx.db, House, data["houseId"], "House")
    _require_house_manager(ctx, house)
    phone = _phone_arg(data, "phone")
    if phone in house.member_phones:
        raise FunctionError("already-exists", "Phone is already a member of this house")
    ctx.db.add(HouseMemberPhone(house_id=house.id, phone=phone))
    ctx.db.commit()
    ctx.db.refresh(house)
    return {"house": house.to_dict()}


@function("removeHouseMember")
def remove_house_member(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "houseId")
    house = get_or_404(ctx.db, House, data["houseId"], "House")
    _require_house_manager(ctx, house)
    phone = _phone_arg(data, "phone")
    row = ctx.db.exec(
        select(HouseMemberPhone).where(HouseMemberPhone.house_id == house.id, HouseMemberPhone.phone == phone)
    ).first()
    if row is None:
        raise FunctionError("not-found", "Phone is not a member of this house")
    ctx.db.delete(row)
    # registered users keep their account but lose the house link
    for user in ctx.db.exec(select(User).where(User.house_id == house.id, User.phone == phone)).all():
        user.house_id = None
        ctx.db.add(user)
    ctx.db.commit()
    ctx.db.refresh(house)
    return {"house": house.to_dict()}


@function("getHouseMembers")
def get_house_members(ctx: CallContext, data: Dict[str, Any]) -> Dict[str, Any]:
    require_fields(data, "houseId")
    house = get_or_404(ctx.db, House, data["houseId"], "House")
    ctx.require_house_access(house)
    registered = {
        user.phone: user
        for user in ctx.db.exec(select(User).where(User.house_id == house.id)).all()
    }
    phones = list(house.member_phones)
    if house.house_admin_phone and house.house_admin_phone not in phones:
        phones.insert(0, house.house_admin_phone)
    members = []
    for phone in phones:
        user = registered.get(phone)
        members.append({
            "phone": phone,
            "registered": user is not None,
            "userId": user.id if user else None,
            "name": user.name if user else None,
            "isAdmin": phone == house.house_admin_phone,
        })
    return {"houseId": house.id, "members": members}
