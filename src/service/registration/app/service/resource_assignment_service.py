"""
Block → granular assignment

Converts a registration's block hold(s) for an item type into one hold per
physical resource (or per class entry). Not transactional: a crash midway is
recovered by retrying, where already-created per-resource holds are reused and
the block qty check refuses inconsistent retries.
"""

from collections import Counter, defaultdict
from typing import Any, Optional

import attrs
from opentelemetry import trace

from src.platform.exception.exceptions import (
    ConsistencyError,
    NotFoundError,
    ResourceConflictError,
    StateConflictError,
    ValidationError,
)
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.registration_metrics import registration_metrics
from src.service.registration.app.dto import AssignmentResult
from src.service.registration.app.interface import (
    HoldFilter,
    IRegistrationRepo,
    IReservationHoldRepo,
    IResourceValidator,
)
from src.service.registration.app.service.hold_lifecycle_manager import (
    HoldLifecycleManager,
    pick_block_hold,
)
from src.service.registration.domain.entity.reservation_hold_entity import ReservationHold
from src.service.registration.domain.enum import (
    ACTIVE_HOLD_STATES,
    ErrorCode,
    ItemType,
    RegistrationStatus,
    ReleaseReason,
)
from src.service.registration.domain.value_object import HoldOwner, HoldScope


@attrs.frozen
class AssignmentPolicy:
    item_type: ItemType
    label: str  # error code stem: invalid_<label>_ids, duplicate_<label>s
    conflict_code: str
    exclusive_resource_ids: bool = True
    block_hold_per_resource_id: bool = False


STALL_ASSIGNMENT = AssignmentPolicy(
    item_type=ItemType.STALL, label='stall', conflict_code=ErrorCode.STALL_ALREADY_ASSIGNED
)
RV_ASSIGNMENT = AssignmentPolicy(
    item_type=ItemType.RV, label='rv_site', conflict_code=ErrorCode.RV_SITE_ALREADY_ASSIGNED
)
CLASS_ENTRY_ASSIGNMENT = AssignmentPolicy(
    item_type=ItemType.CLASS_ENTRY,
    label='event_line',
    conflict_code=ErrorCode.RESOURCE_ALREADY_ASSIGNED,
    exclusive_resource_ids=False,
    block_hold_per_resource_id=True,
)

_ASSIGNABLE_STATES = (RegistrationStatus.SUBMITTED, RegistrationStatus.CONFIRMED)


def parse_resource_ids(raw: Any, *, policy: AssignmentPolicy) -> list[str]:
    if not isinstance(raw, list) or not raw:
        raise ValidationError(
            f'{policy.label} ids must be a non-empty list', code=f'invalid_{policy.label}_ids'
        )
    ids: list[str] = []
    for value in raw:
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(
                f'{policy.label} ids must be non-empty strings', code=f'invalid_{policy.label}_ids'
            )
        ids.append(value.strip())
    if policy.exclusive_resource_ids and len(set(ids)) != len(ids):
        raise ValidationError(
            f'Duplicate {policy.label} ids in request', code=f'duplicate_{policy.label}s'
        )
    return ids


def group_holds_for_diagnostics(holds: list[ReservationHold]) -> dict[str, dict[str, int]]:
    """{line-or-resource: {state: qty}}; block holds without a line land under 'block'"""
    grouped: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
    for hold in holds:
        key = hold.event_line_id or hold.resource_id or 'block'
        grouped[key][str(hold.state)] += hold.qty
    return {key: dict(states) for key, states in grouped.items()}


class ResourceAssignmentService:
    def __init__(
        self,
        *,
        registration_repo: IRegistrationRepo,
        hold_repo: IReservationHoldRepo,
        hold_lifecycle_manager: HoldLifecycleManager,
    ) -> None:
        self.registration_repo = registration_repo
        self.hold_repo = hold_repo
        self.hold_lifecycle_manager = hold_lifecycle_manager
        self.tracer = trace.get_tracer(__name__)

    def _block_key(self, resource_id: str, policy: AssignmentPolicy) -> Optional[str]:
        return resource_id if policy.block_hold_per_resource_id else None

    @Logger.io
    async def assign(
        self,
        *,
        registration_id: str,
        resource_ids: Any,
        policy: AssignmentPolicy,
        validator: IResourceValidator,
    ) -> AssignmentResult:
        with self.tracer.start_as_current_span(
            'registration.assign_resources',
            attributes={'registration.id': registration_id, 'item_type': str(policy.item_type)},
        ):
            # ========== Step 1: Input shape ==========
            ids = parse_resource_ids(resource_ids, policy=policy)

            # ========== Step 2: Registration state ==========
            registration = await self.registration_repo.get_by_id(registration_id=registration_id)
            if registration is None:
                raise NotFoundError(
                    f'Registration {registration_id} not found',
                    code=ErrorCode.REGISTRATION_NOT_FOUND,
                )
            if registration.status not in _ASSIGNABLE_STATES:
                raise StateConflictError(
                    f'Registration is {registration.status}; assignment needs submitted or confirmed',
                    code=ErrorCode.INVALID_REGISTRATION_STATE,
                )

            # ========== Step 3: Resource validation ==========
            await validator.validate(
                resource_ids=list(dict.fromkeys(ids)), event_id=registration.event_id
            )

            owner = HoldOwner.registration(registration.id)
            scope = HoldScope.event(registration.event_id)
            owner_holds = await self.hold_lifecycle_manager.list_active_holds(
                owner=owner, scope=scope, item_type=policy.item_type
            )
            granular = [hold for hold in owner_holds if not hold.is_block]
            blocks = [hold for hold in owner_holds if hold.is_block]

            # ========== Step 4: Idempotency - reuse what the owner already holds ==========
            available: dict[str, list[ReservationHold]] = defaultdict(list)
            for hold in granular:
                available[hold.resource_id].append(hold)  # type: ignore[index]

            plan: list[tuple[str, Optional[ReservationHold]]] = []
            for rid in ids:
                reusable = available.get(rid)
                plan.append((rid, reusable.pop(0) if reusable else None))
            needed = [rid for rid, existing in plan if existing is None]
            # Per-resource holds this request does not name, left by an earlier run
            unreferenced_per_key = Counter(
                self._block_key(hold.resource_id, policy)  # type: ignore[arg-type]
                for leftover in available.values()
                for hold in leftover
            )

            # ========== Step 5: Cross-owner conflicts ==========
            if policy.exclusive_resource_ids:
                for rid in needed:
                    await self._ensure_not_held_by_other(
                        resource_id=rid, owner=owner, scope=scope, policy=policy
                    )

            # ========== Step 6: Locate and check block holds ==========
            requested_per_key = Counter(self._block_key(rid, policy) for rid in ids)
            keys_needing_creation = {self._block_key(rid, policy) for rid in needed}
            block_by_key: dict[Optional[str], ReservationHold] = {}
            for key in requested_per_key:
                candidates = (
                    [hold for hold in blocks if hold.event_line_id == key]
                    if policy.block_hold_per_resource_id
                    else blocks
                )
                block = pick_block_hold(candidates)
                if block is not None:
                    block_by_key[key] = block

            for key in keys_needing_creation:
                block = block_by_key.get(key)
                if block is None:
                    raise ConsistencyError(
                        f'No active {policy.item_type} block hold'
                        + (f' for line {key}' if key else '')
                        + f' on registration {registration.id}',
                        code=ErrorCode.BLOCK_HOLD_NOT_FOUND,
                        details={'existing_holds': group_holds_for_diagnostics(owner_holds)},
                    )
                assigned_elsewhere = unreferenced_per_key[key]
                if block.qty != requested_per_key[key] + assigned_elsewhere:
                    details = {'expected_qty': block.qty, 'requested_qty': requested_per_key[key]}
                    if assigned_elsewhere:
                        details['assigned_qty'] = assigned_elsewhere
                    suffix = (
                        f' with {assigned_elsewhere} already assigned' if assigned_elsewhere else ''
                    )
                    raise ValidationError(
                        f'Block hold covers {block.qty} {policy.item_type} but '
                        f'{requested_per_key[key]} ids were supplied{suffix}',
                        code=ErrorCode.QTY_MISMATCH,
                        details=details,
                    )

            # Blocks to close: ones feeding new holds, plus ones a crashed run left open
            blocks_to_release = [
                block
                for key, block in block_by_key.items()
                if key in keys_needing_creation
                or block.qty == requested_per_key[key] + unreferenced_per_key[key]
            ]

            # ========== Step 7: Create per-resource holds ==========
            resource_holds: list[ReservationHold] = []
            for rid, existing in plan:
                if existing is not None:
                    resource_holds.append(existing)
                    continue
                block = block_by_key[self._block_key(rid, policy)]
                try:
                    created = await self.hold_repo.create(
                        hold=block.split_for_resource(resource_id=rid)
                    )
                except ResourceConflictError as e:
                    # Lost a race against another owner at the store's uniqueness guard
                    raise ResourceConflictError(
                        f'{policy.item_type} {rid} is already assigned',
                        code=policy.conflict_code,
                        details={'resource_id': rid},
                    ) from e
                resource_holds.append(created)
                registration_metrics.holds_assigned.labels(item_type=str(policy.item_type)).inc()

            # ========== Step 8: Release consumed block holds ==========
            released: list[ReservationHold] = []
            for block in blocks_to_release:
                released.append(
                    await self.hold_lifecycle_manager.release_hold(
                        hold=block, reason=ReleaseReason.ASSIGNED
                    )
                )

            Logger.base.info(
                f'🧩 [ASSIGN] registration={registration.id} type={policy.item_type} '
                f'created={len(needed)} reused={len(ids) - len(needed)} released_blocks={len(released)}'
            )

            # ========== Step 9: Granular holds first, then released blocks ==========
            return AssignmentResult(
                resource_holds=tuple(resource_holds), released_block_holds=tuple(released)
            )

    async def _ensure_not_held_by_other(
        self, *, resource_id: str, owner: HoldOwner, scope: HoldScope, policy: AssignmentPolicy
    ) -> None:
        holders = await self.hold_repo.list_holds(
            hold_filter=HoldFilter(
                scope=scope,
                item_type=policy.item_type,
                states=ACTIVE_HOLD_STATES,
                resource_id=resource_id,
            ),
            limit=self.hold_lifecycle_manager.query_limit,
        )
        for hold in holders:
            if hold.owner != owner:
                raise ResourceConflictError(
                    f'{policy.item_type} {resource_id} is already assigned to another registration',
                    code=policy.conflict_code,
                    details={'resource_id': resource_id},
                )
