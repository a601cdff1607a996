"""
Parcel Lifecycle & Assignment Manager.

Owns every state change of parcels, riders and users:

    pending → rider_assigned → in_transit → delivered | service_center_delivered

plus payment marking, rider cash-out, rider activation and user upsert.

Status flips that guard a one-time action (assignment, payment, cash-out)
are single conditional UPDATEs keyed on the pre-state; follow-up writes
(rider credit, payment record) only happen when that UPDATE reports a
changed row. All writes of one operation share the caller's session and
commit together.
"""

import logging
import random
import string
from datetime import datetime, timezone
from typing import Optional, Tuple

from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from parcel_backend.app.core.exceptions import (
    ConflictError,
    InvalidInputError,
    InvalidRiderError,
    InvalidStatusError,
    InvalidTransitionError,
    ResourceNotFoundError,
)
from parcel_backend.app.domain.lifecycle.earnings import calculate_rider_earning, is_same_district
from parcel_backend.app.models.enums import UserRole
from parcel_backend.app.models.parcel import Parcel
from parcel_backend.app.models.parcel_enums import (
    CashoutStatus,
    DeliveryStatus,
    PaymentStatus,
    DELIVERED_STATES,
    OPEN_ASSIGNMENT_STATES,
)
from parcel_backend.app.models.payment import PaymentRecord
from parcel_backend.app.models.rider import Rider
from parcel_backend.app.models.rider_enums import RiderStatus, WorkStatus
from parcel_backend.app.models.tracking_event import TrackingEvent
from parcel_backend.app.models.user import User

logger = logging.getLogger(__name__)

# Statuses a rider may request through advance()
ADVANCEABLE_STATUSES = (DeliveryStatus.IN_TRANSIT, DeliveryStatus.DELIVERED)

# Statuses an admin may set on a rider
SETTABLE_RIDER_STATUSES = (RiderStatus.ACTIVE, RiderStatus.CANCELLED, RiderStatus.DEACTIVATED)

_STATUS_RANK = {
    DeliveryStatus.PENDING: 0,
    DeliveryStatus.RIDER_ASSIGNED: 1,
    DeliveryStatus.IN_TRANSIT: 2,
    DeliveryStatus.DELIVERED: 3,
    DeliveryStatus.SERVICE_CENTER_DELIVERED: 3,
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def generate_tracking_id() -> str:
    suffix = "".join(random.choices(string.ascii_uppercase + string.digits, k=8))
    return f"PCL-{_now():%Y%m%d}-{suffix}"


class ParcelLifecycleManager:
    """
    Transition rules for the delivery workflow.

    Constructed per request around the request's session; the engine and
    session factory behind it are built once at startup.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def _find_parcel(self, parcel_id: int) -> Optional[Parcel]:
        result = await self.db.execute(
            select(Parcel)
            .where(Parcel.id == parcel_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_parcel(self, parcel_id: int) -> Parcel:
        parcel = await self._find_parcel(parcel_id)
        if not parcel:
            raise ResourceNotFoundError("Parcel", parcel_id)
        return parcel

    async def get_rider(self, rider_id: int) -> Rider:
        rider = await self.db.get(Rider, rider_id)
        if not rider:
            raise ResourceNotFoundError("Rider", rider_id)
        return rider

    async def get_rider_by_email(self, email: str) -> Optional[Rider]:
        result = await self.db.execute(select(Rider).where(Rider.email == email))
        return result.scalar_one_or_none()

    def _track(
        self,
        parcel: Parcel,
        status: str,
        message: str,
        actor_email: str,
        location: Optional[str] = None,
    ) -> TrackingEvent:
        event = TrackingEvent(
            tracking_id=parcel.tracking_id,
            parcel_id=parcel.id,
            status=status,
            message=message,
            location=location,
            updated_by=actor_email,
            timestamp=_now(),
        )
        self.db.add(event)
        return event

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def register_or_touch(self, email: str, payload: dict) -> Tuple[User, bool]:
        """
        Insert a user on first sight, otherwise only bump last_log_in.

        A role in the payload is ignored; new users always start as USER.

        Returns:
            (user, inserted)
        """
        email = email.lower()
        result = await self.db.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()

        if user is None:
            user = User(
                email=email,
                name=payload.get("name"),
                photo_url=payload.get("photo_url"),
                role=UserRole.USER,
                last_log_in=_now(),
            )
            self.db.add(user)
            try:
                await self.db.commit()
            except IntegrityError:
                # Lost an insert race for the same email; fall through to touch
                await self.db.rollback()
                result = await self.db.execute(select(User).where(User.email == email))
                user = result.scalar_one()
            else:
                await self.db.refresh(user)
                logger.info("Registered user %s", email)
                return user, True

        user.last_log_in = _now()
        await self.db.commit()
        await self.db.refresh(user)
        return user, False

    async def set_user_role(self, user_id: int, role: str) -> User:
        try:
            new_role = UserRole(role)
        except ValueError:
            raise InvalidInputError(f"Invalid role '{role}'")

        user = await self.db.get(User, user_id)
        if not user:
            raise ResourceNotFoundError("User", user_id)

        previous = user.role
        user.role = new_role
        await self.db.commit()
        await self.db.refresh(user)
        logger.info("User %s role changed %s -> %s", user.email, previous.value, new_role.value)
        return user

    # ------------------------------------------------------------------
    # Riders
    # ------------------------------------------------------------------

    async def apply_rider(self, email: str, payload: dict) -> Rider:
        """Record a rider application; the rider starts PENDING and IDLE."""
        email = email.lower()
        if await self.get_rider_by_email(email):
            raise ConflictError("A rider application already exists for this email", {"email": email})

        rider = Rider(
            **payload,
            email=email,
            status=RiderStatus.PENDING,
            work_status=WorkStatus.IDLE,
            total_earnings=0,
        )
        self.db.add(rider)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("A rider application already exists for this email", {"email": email})
        await self.db.refresh(rider)
        logger.info("Rider application %s received from %s", rider.id, email)
        return rider

    async def set_rider_status(self, rider_id: int, status: str) -> Rider:
        """
        Approve, cancel or deactivate a rider.

        Activation promotes the user with the rider's email to RIDER in the
        same commit. A missing user record makes the promotion a no-op.
        """
        allowed = [s.value for s in SETTABLE_RIDER_STATUSES]
        try:
            new_status = RiderStatus(status)
        except ValueError:
            raise InvalidStatusError(str(status), allowed)
        if new_status not in SETTABLE_RIDER_STATUSES:
            raise InvalidStatusError(new_status.value, allowed)

        rider = await self.get_rider(rider_id)
        rider.status = new_status

        if new_status == RiderStatus.ACTIVE:
            result = await self.db.execute(
                update(User)
                .where(User.email == rider.email)
                .values(role=UserRole.RIDER)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                logger.info("No user record for rider %s; role sync skipped", rider.email)

        await self.db.commit()
        await self.db.refresh(rider)
        logger.info("Rider %s status set to %s", rider.id, new_status.value)
        return rider

    async def _release_rider_if_idle(self, rider_id: int, finished_parcel_id: int) -> None:
        open_count = await self.db.scalar(
            select(func.count(Parcel.id)).where(
                Parcel.assigned_rider_id == rider_id,
                Parcel.delivery_status.in_(OPEN_ASSIGNMENT_STATES),
                Parcel.id != finished_parcel_id,
            )
        )
        if not open_count:
            await self.db.execute(
                update(Rider)
                .where(Rider.id == rider_id)
                .values(work_status=WorkStatus.IDLE)
                .execution_options(synchronize_session=False)
            )

    # ------------------------------------------------------------------
    # Parcels
    # ------------------------------------------------------------------

    async def create_parcel(self, created_by: str, payload: dict) -> Parcel:
        payload = dict(payload)
        tracking_id = payload.pop("tracking_id", None) or generate_tracking_id()

        existing = await self.db.scalar(select(Parcel.id).where(Parcel.tracking_id == tracking_id))
        if existing:
            raise ConflictError(f"Tracking ID '{tracking_id}' already exists", {"tracking_id": tracking_id})

        parcel = Parcel(
            **payload,
            tracking_id=tracking_id,
            created_by=created_by.lower(),
            payment_status=PaymentStatus.UNPAID,
            delivery_status=DeliveryStatus.PENDING,
            cashed_out_status=CashoutStatus.NOT_CASHED_OUT,
            creation_date=_now(),
        )
        self.db.add(parcel)
        await self.db.flush()

        self._track(parcel, DeliveryStatus.PENDING.value, "Parcel created", created_by.lower())
        await self.db.commit()
        await self.db.refresh(parcel)
        logger.info("Parcel %s (%s) created by %s", parcel.id, tracking_id, created_by)
        return parcel

    async def delete_parcel(self, parcel_id: int) -> None:
        """Delete a parcel that is still unpaid and unassigned."""
        result = await self.db.execute(
            delete(Parcel)
            .where(
                Parcel.id == parcel_id,
                Parcel.payment_status == PaymentStatus.UNPAID,
                Parcel.delivery_status == DeliveryStatus.PENDING,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            await self.get_parcel(parcel_id)
            raise ConflictError("Only unpaid parcels awaiting assignment can be deleted", {"parcel_id": parcel_id})

        await self.db.commit()
        logger.info("Parcel %s deleted", parcel_id)

    async def assign(self, parcel_id: int, rider_id: int, actor_email: str) -> Parcel:
        """
        Assign an active rider to a pending parcel.

        Raises:
            ResourceNotFoundError: parcel or rider missing
            InvalidRiderError: rider is not ACTIVE
            InvalidTransitionError: parcel is no longer PENDING
        """
        parcel = await self.get_parcel(parcel_id)
        rider = await self.get_rider(rider_id)

        if rider.status != RiderStatus.ACTIVE:
            raise InvalidRiderError(rider.id, rider.status.value)

        if parcel.delivery_status != DeliveryStatus.PENDING:
            raise InvalidTransitionError(
                f"Parcel can only be assigned while pending, current status: {parcel.delivery_status.value}",
                {"parcel_id": parcel_id, "delivery_status": parcel.delivery_status.value}
            )

        result = await self.db.execute(
            update(Parcel)
            .where(Parcel.id == parcel_id, Parcel.delivery_status == DeliveryStatus.PENDING)
            .values(
                delivery_status=DeliveryStatus.RIDER_ASSIGNED,
                assigned_rider_id=rider.id,
                assigned_rider_name=rider.name,
                assigned_rider_email=rider.email,
                assigned_at=_now(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            raise InvalidTransitionError("Parcel was assigned by another request", {"parcel_id": parcel_id})

        await self.db.execute(
            update(Rider)
            .where(Rider.id == rider.id)
            .values(work_status=WorkStatus.IN_DELIVERY)
            .execution_options(synchronize_session=False)
        )
        self._track(
            parcel,
            DeliveryStatus.RIDER_ASSIGNED.value,
            f"Assigned to rider {rider.name}",
            actor_email,
        )
        await self.db.commit()
        await self.db.refresh(parcel)

        logger.info("Parcel %s assigned to rider %s by %s", parcel_id, rider.id, actor_email)
        return parcel

    async def advance(
        self,
        parcel_id: int,
        new_status: str,
        actor_email: str,
        location: Optional[str] = None,
    ) -> Parcel:
        """
        Move an assigned parcel forward to in_transit or delivered.

        A delivered request between different districts ends at the
        receiving service center (service_center_delivered). Requesting the
        current status again changes nothing.
        """
        try:
            requested = DeliveryStatus(new_status)
        except ValueError:
            requested = None
        if requested not in ADVANCEABLE_STATUSES:
            raise InvalidTransitionError(
                f"Invalid status '{new_status}'",
                {"allowed": [s.value for s in ADVANCEABLE_STATUSES]}
            )

        parcel = await self.get_parcel(parcel_id)
        current = parcel.delivery_status

        if parcel.assigned_rider_id is None or current == DeliveryStatus.PENDING:
            raise InvalidTransitionError("A rider must be assigned first", {"parcel_id": parcel_id})

        target = requested
        if requested == DeliveryStatus.DELIVERED and not is_same_district(
            parcel.sender_district, parcel.receiver_district
        ):
            target = DeliveryStatus.SERVICE_CENTER_DELIVERED

        if target == current:
            return parcel

        if _STATUS_RANK[target] <= _STATUS_RANK[current]:
            raise InvalidTransitionError(
                f"Cannot move parcel from {current.value} to {target.value}",
                {"parcel_id": parcel_id, "delivery_status": current.value}
            )

        values = {"delivery_status": target}
        if target == DeliveryStatus.IN_TRANSIT:
            values["picked_at"] = _now()
        else:
            values["delivered_at"] = _now()

        result = await self.db.execute(
            update(Parcel)
            .where(Parcel.id == parcel_id, Parcel.delivery_status == current)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            raise InvalidTransitionError("Parcel status changed by another request", {"parcel_id": parcel_id})

        if target in DELIVERED_STATES:
            await self._release_rider_if_idle(parcel.assigned_rider_id, parcel.id)

        message = {
            DeliveryStatus.IN_TRANSIT: "Picked up by rider",
            DeliveryStatus.DELIVERED: "Delivered to receiver",
            DeliveryStatus.SERVICE_CENTER_DELIVERED: "Delivered to receiving service center",
        }[target]
        self._track(parcel, target.value, message, actor_email, location)

        await self.db.commit()
        await self.db.refresh(parcel)
        logger.info("Parcel %s moved %s -> %s by %s", parcel_id, current.value, target.value, actor_email)
        return parcel

    async def mark_paid(
        self,
        parcel_id: int,
        email: str,
        amount: float,
        payment_method: str,
        transaction_id: str,
    ) -> PaymentRecord:
        """
        Flip a parcel to PAID once and append the payment record.

        Raises:
            ResourceNotFoundError: parcel missing
            ConflictError: parcel already paid
        """
        result = await self.db.execute(
            update(Parcel)
            .where(Parcel.id == parcel_id, Parcel.payment_status == PaymentStatus.UNPAID)
            .values(payment_status=PaymentStatus.PAID)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            await self.get_parcel(parcel_id)
            raise ConflictError("Parcel is already paid", {"parcel_id": parcel_id})

        record = PaymentRecord(
            parcel_id=parcel_id,
            email=email.lower(),
            amount=amount,
            payment_method=payment_method,
            transaction_id=transaction_id,
            paid_at=_now(),
        )
        self.db.add(record)
        await self.db.commit()
        await self.db.refresh(record)
        logger.info("Parcel %s paid by %s (txn %s)", parcel_id, email, transaction_id)
        return record

    async def cash_out(self, parcel_id: int) -> Parcel:
        """
        Finalize the rider's earning for a delivered parcel.

        The cashed_out flip is a compare-and-set on NOT_CASHED_OUT; only the
        request that wins it credits the rider, so concurrent cash-outs pay
        once. A parcel without an assigned rider is cashed out without
        crediting anyone.

        Raises:
            ResourceNotFoundError: parcel missing
            ConflictError: already cashed out
            InvalidTransitionError: parcel not delivered yet
        """
        parcel = await self.get_parcel(parcel_id)
        earning = calculate_rider_earning(parcel.cost, parcel.sender_district, parcel.receiver_district)

        result = await self.db.execute(
            update(Parcel)
            .where(
                Parcel.id == parcel_id,
                Parcel.cashed_out_status == CashoutStatus.NOT_CASHED_OUT,
                Parcel.delivery_status.in_(DELIVERED_STATES),
            )
            .values(
                cashed_out_status=CashoutStatus.CASHED_OUT,
                cashed_out_at=_now(),
                rider_earning=earning,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            current = await self.get_parcel(parcel_id)
            if current.cashed_out_status == CashoutStatus.CASHED_OUT:
                raise ConflictError("Parcel is already cashed out", {"parcel_id": parcel_id})
            raise InvalidTransitionError(
                "Only delivered parcels can be cashed out",
                {"parcel_id": parcel_id, "delivery_status": current.delivery_status.value}
            )

        if parcel.assigned_rider_id is None:
            logger.warning("Parcel %s cashed out with no assigned rider; no earnings credited", parcel_id)
        else:
            credit = await self.db.execute(
                update(Rider)
                .where(Rider.id == parcel.assigned_rider_id)
                .values(total_earnings=Rider.total_earnings + earning)
                .execution_options(synchronize_session=False)
            )
            if credit.rowcount == 0:
                logger.warning(
                    "Rider %s for parcel %s no longer exists; earning %s not credited",
                    parcel.assigned_rider_id, parcel_id, earning
                )

        await self.db.commit()
        await self.db.refresh(parcel)
        logger.info("Parcel %s cashed out, earning %s", parcel_id, earning)
        return parcel

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------

    async def log_tracking_event(
        self,
        parcel: Parcel,
        status: str,
        message: str,
        actor_email: str,
        location: Optional[str] = None,
    ) -> TrackingEvent:
        """Append a free-form tracking entry for a parcel."""
        event = self._track(parcel, status, message, actor_email, location)
        await self.db.commit()
        await self.db.refresh(event)
        return event
