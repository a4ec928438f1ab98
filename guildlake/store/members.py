"""Members, roles and the member_roles junction."""
from __future__ import annotations

from typing import Iterable

from ..util import rows_from_tag
from .base import Dao, SoftDeleteMixin
from .models import MemberProfile, MemberRow, from_record


class MemberDao(SoftDeleteMixin, Dao):
    table = "members"

    async def upsert(self, ext_id: int, name: str, is_bot: bool, *, activate: bool = True) -> int:
        """Insert or refresh the minimal identity of a member.

        ``activate`` is the active flag for a first sighting and the only way
        an existing inactive member is reactivated. History replays pass False
        so an author who has left is never recorded as active.
        """
        return await self.db.fetchval(
            """
            INSERT INTO members (ext_id, name, is_bot, is_active)
            VALUES ($1, $2, $3, $4)
            ON CONFLICT (ext_id) DO UPDATE SET
                name = EXCLUDED.name,
                is_bot = EXCLUDED.is_bot,
                is_active = members.is_active OR $4,
                updated_at = now()
            RETURNING id
            """,
            ext_id,
            name,
            is_bot,
            activate,
        )

    async def upsert_full(self, profile: MemberProfile) -> int:
        """Refresh every profile field and mark the member active."""
        return await self.db.fetchval(
            """
            INSERT INTO members (
                ext_id, name, global_name, nickname, avatar_hash, is_bot,
                joined_at, premium_since, pending, is_active
            )
            VALUES ($1,$2,$3,$4,$5,$6,$7,$8,$9, TRUE)
            ON CONFLICT (ext_id) DO UPDATE SET
                name = EXCLUDED.name,
                global_name = EXCLUDED.global_name,
                nickname = EXCLUDED.nickname,
                avatar_hash = EXCLUDED.avatar_hash,
                is_bot = EXCLUDED.is_bot,
                joined_at = EXCLUDED.joined_at,
                premium_since = EXCLUDED.premium_since,
                pending = EXCLUDED.pending,
                is_active = TRUE,
                updated_at = now()
            RETURNING id
            """,
            profile.ext_id,
            profile.name,
            profile.global_name,
            profile.nickname,
            profile.avatar_hash,
            profile.is_bot,
            profile.joined_at,
            profile.premium_since,
            profile.pending,
        )

    async def activate(self, ext_id: int) -> int:
        tag = await self.db.execute(
            "UPDATE members SET is_active = TRUE, updated_at = now() WHERE ext_id = $1",
            ext_id,
        )
        return rows_from_tag(tag)

    async def deactivate(self, ext_id: int) -> int:
        return await self.mark_inactive(ext_id)

    async def deactivate_all(self) -> int:
        tag = await self.db.execute(
            "UPDATE members SET is_active = FALSE, updated_at = now() WHERE is_active = TRUE"
        )
        return rows_from_tag(tag)

    async def find_id_by_ext_id(self, ext_id: int) -> int | None:
        return await self.db.fetchval("SELECT id FROM members WHERE ext_id = $1", ext_id)

    async def find_by_id(self, member_id: int) -> MemberRow | None:
        row = await self.db.fetchrow(
            """
            SELECT id, ext_id, name, is_bot, is_active, joined_at, premium_since,
                   p_currency, s_currency
            FROM members WHERE id = $1
            """,
            member_id,
        )
        return from_record(MemberRow, row)

    async def add_currency(self, member_id: int, p_delta: int, s_delta: int) -> int:
        """Atomically shift both counters; no read-modify-write."""
        tag = await self.db.execute(
            """
            UPDATE members
            SET p_currency = p_currency + $2, s_currency = s_currency + $3, updated_at = now()
            WHERE id = $1
            """,
            member_id,
            p_delta,
            s_delta,
        )
        return rows_from_tag(tag)


class RoleDao(SoftDeleteMixin, Dao):
    table = "roles"

    async def upsert(self, ext_id: int, name: str, position: int | None = None) -> int:
        return await self.db.fetchval(
            """
            INSERT INTO roles (ext_id, name, position, is_active)
            VALUES ($1, $2, $3, TRUE)
            ON CONFLICT (ext_id) DO UPDATE SET
                name = EXCLUDED.name,
                position = EXCLUDED.position,
                is_active = TRUE,
                updated_at = now()
            RETURNING id
            """,
            ext_id,
            name,
            position,
        )


class MemberRoleDao(Dao):
    async def replace(self, member_id: int, role_ids: Iterable[int]) -> None:
        """Swap the member's whole role set for ``role_ids``."""
        await self.db.execute("DELETE FROM member_roles WHERE member_id = $1", member_id)
        rows = [(member_id, role_id) for role_id in role_ids]
        if rows:
            await self.db.executemany(
                "INSERT INTO member_roles (member_id, role_id) VALUES ($1, $2) ON CONFLICT DO NOTHING",
                rows,
            )

    async def find_role_ext_ids(self, member_id: int) -> list[int]:
        rows = await self.db.fetch(
            """
            SELECT r.ext_id FROM member_roles mr
            JOIN roles r ON r.id = mr.role_id
            WHERE mr.member_id = $1
            """,
            member_id,
        )
        return [r["ext_id"] for r in rows]

    async def has_role(self, member_id: int, role_ext_id: int) -> bool:
        count = await self.db.fetchval(
            """
            SELECT COUNT(*) FROM member_roles mr
            JOIN roles r ON r.id = mr.role_id
            WHERE mr.member_id = $1 AND r.ext_id = $2
            """,
            member_id,
            role_ext_id,
        )
        return bool(count)


class RoleChangeDao(Dao):
    async def insert(self, event_id: int, roles_added: str, roles_removed: str) -> int:
        return await self.db.fetchval(
            """
            INSERT INTO member_role_changes (event_id, roles_added, roles_removed)
            VALUES ($1, $2, $3)
            RETURNING id
            """,
            event_id,
            roles_added,
            roles_removed,
        )
