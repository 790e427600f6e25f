#!/usr/bin/env python3
"""
Database Seed Script
Populate a demo event for local development

Features:
1. Create Event - one open event with RV sites and stalls enabled
2. Create Event Lines - a few priced classes with capacities
3. Create Resources - stalls and RV sites tagged for the event
4. Provision Capacity - write the `cap:*` fields the engine reserves against

Notes:
- In production capacities are provisioned by the inventory owner, not this service
"""

import asyncio

import asyncpg

from src.platform.config.core_setting import settings
from src.platform.state.kvrocks_client import kvrocks_client
from src.service.registration.domain.enum import CapacityKind
from src.service.registration.driven_adapter.state.kvrocks_capacity_counter_impl import (
    capacity_key,
    counter_field,
)


EVENT_ID = 'evt_demo_spring_show'
SEAT_CAPACITY = 200
RV_CAPACITY = 20
STALL_CAPACITY = 40

EVENT_LINES = [
    # (line id, class id, name, fee, capacity)
    ('line_halter_open', 'cls_halter_open', 'Halter Open', 3500, 30),
    ('line_trail_youth', 'cls_trail_youth', 'Trail Youth', 2500, 20),
    ('line_barrels', 'cls_barrels', 'Barrel Racing', 4000, 40),
]


async def seed_postgres() -> None:
    dsn = settings.DATABASE_URL_ASYNC.replace('postgresql+asyncpg://', 'postgresql://')
    conn = await asyncpg.connect(dsn)
    try:
        async with conn.transaction():
            await conn.execute(
                """
                INSERT INTO event (id, name, status, currency, rv_enabled, rv_unit_amount,
                                   stall_enabled, stall_unit_amount)
                VALUES ($1, 'Spring Show', 'open', $2, TRUE, 5000, TRUE, 7500)
                ON CONFLICT (id) DO NOTHING
                """,
                EVENT_ID,
                settings.DEFAULT_CURRENCY,
            )
            await conn.executemany(
                """
                INSERT INTO event_line (id, event_id, class_id, name, fee_amount, capacity)
                VALUES ($1, $2, $3, $4, $5, $6)
                ON CONFLICT (id) DO NOTHING
                """,
                [(line_id, EVENT_ID, class_id, name, fee, cap) for line_id, class_id, name, fee, cap in EVENT_LINES],
            )
            resources = [
                (f'stall_{i:02d}', 'stall', f'Stall {i}', [f'event:{EVENT_ID}'])
                for i in range(1, STALL_CAPACITY + 1)
            ] + [
                (f'rv_{i:02d}', 'rv', f'RV Site {i}', [f'event:{EVENT_ID}'])
                for i in range(1, RV_CAPACITY + 1)
            ]
            await conn.executemany(
                """
                INSERT INTO resource (id, resource_type, name, tags)
                VALUES ($1, $2, $3, $4)
                ON CONFLICT (id) DO NOTHING
                """,
                resources,
            )
        print(f'   ✅ Event {EVENT_ID} with {len(EVENT_LINES)} lines and {len(resources)} resources')
    finally:
        await conn.close()


async def provision_capacity() -> None:
    client = await kvrocks_client.initialize()
    caps = {
        counter_field('cap', CapacityKind.SEAT, None): SEAT_CAPACITY,
        counter_field('cap', CapacityKind.RV, None): RV_CAPACITY,
        counter_field('cap', CapacityKind.STALL, None): STALL_CAPACITY,
    }
    for line_id, _, _, _, capacity in EVENT_LINES:
        caps[counter_field('cap', CapacityKind.CLASS_LINE, line_id)] = capacity
    await client.hset(capacity_key(EVENT_ID), mapping=caps)
    await kvrocks_client.disconnect()
    print(f'   ✅ Provisioned {len(caps)} capacity counters')


async def main() -> None:
    print('🌱 Seeding demo data...')
    await seed_postgres()
    await provision_capacity()
    print('✅ Seed completed!')


if __name__ == '__main__':
    asyncio.run(main())
