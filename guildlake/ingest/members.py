"""Member join, leave and update ingestion."""
from __future__ import annotations

import logging
from typing import Any

from ..rules import context as rule_context
from ..store.models import EventType
from ..util import join_ids
from . import normalize
from .base import IngestHandler
from .persistence import RoleSyncService

log = logging.getLogger(f"guildlake.{__name__}")


class MemberEventHandler(IngestHandler):
    async def handle_join(self, member: Any) -> int:
        profile = normalize.member_profile(member)
        async with self.store.transaction() as tx:
            member_id = await tx.members.upsert_full(profile)
            event_id = await tx.events.insert(
                member_id, None, EventType.MEMBER_JOIN, profile.joined_at
            )
            await RoleSyncService(tx).sync_roles(member_id, profile.roles)
        log.info("Member joined: %s (%s)", profile.name, profile.ext_id)

        row = await self.store.members.find_by_id(member_id)
        self.publish(
            rule_context.for_member_event(
                EventType.MEMBER_JOIN, event_id, row, created_at=profile.joined_at
            )
        )
        return event_id

    async def handle_leave(self, user: Any) -> int | None:
        """Record the leave, close voice sessions, then deactivate.

        The member is deactivated before the context is published so no rule
        can grant currency to someone who already left.
        """
        member_id = await self.store.members.find_id_by_ext_id(user.id)
        if member_id is None:
            log.info("Unknown member left: %s", user.id)
            return None
        now = self.clock()
        async with self.store.transaction() as tx:
            event_id = await tx.events.insert(member_id, None, EventType.MEMBER_LEAVE, now)
            closed = await tx.voice.close_all_for_member(member_id, now)
            row = await tx.members.find_by_id(member_id)
            await tx.members.deactivate(user.id)
        log.info(
            "Member left: %s (%s), %d voice sessions closed",
            getattr(user, "name", None),
            user.id,
            closed,
        )
        self.publish(
            rule_context.for_member_event(EventType.MEMBER_LEAVE, event_id, row, created_at=now)
        )
        return event_id

    async def handle_update(self, member: Any) -> int | None:
        """Refresh the profile and record a role-change event when roles differ.

        Returns the role-change event id, or None when roles are unchanged.
        """
        profile = normalize.member_profile(member)
        current = profile.role_ext_ids
        event_id = None
        now = self.clock()
        async with self.store.transaction() as tx:
            member_id = await tx.members.upsert_full(profile)
            stored = set(await tx.member_roles.find_role_ext_ids(member_id))
            added = current - stored
            removed = stored - current
            if added or removed:
                event_id = await tx.events.insert(
                    member_id, None, EventType.MEMBER_ROLE_CHANGE, now
                )
                added_str, removed_str = join_ids(added), join_ids(removed)
                await tx.role_changes.insert(event_id, added_str, removed_str)
            await RoleSyncService(tx).sync_roles(member_id, profile.roles)

        if event_id is None:
            return None
        log.info(
            "Role change for %s: added [%s] removed [%s]",
            profile.name,
            added_str,
            removed_str,
        )
        row = await self.store.members.find_by_id(member_id)
        self.publish(
            rule_context.for_role_change(event_id, row, added_str, removed_str, created_at=now)
        )
        return event_id
