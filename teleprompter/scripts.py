"""
Base script content per step: the default script table, overridden per dialer list id.
"""

import json
import logging
from typing import Optional

from .data_api import DataStore, SCRIPTS_TABLE, LIST_ID_CONFIG_TABLE

logger = logging.getLogger(__name__)


class ScriptRepository:
    def __init__(self, store: DataStore):
        self.store = store

    async def get_base_content(self, step_name: str, list_id: Optional[str] = None) -> str:
        """List-id override if one exists, otherwise the default script"""
        if list_id:
            records = await self.store.get(LIST_ID_CONFIG_TABLE, where={"list_id": list_id, "step_name": step_name})
            if records and records[0].get("content"):
                return records[0]["content"]

        records = await self.store.get(SCRIPTS_TABLE, where={"step_name": step_name})
        if records:
            return records[0].get("content") or ""
        return ""

    async def save_base_content(
        self,
        step_name: str,
        content: str,
        title: Optional[str] = None,
        list_id: Optional[str] = None,
    ):
        if list_id:
            existing = await self.store.get(LIST_ID_CONFIG_TABLE, where={"list_id": list_id, "step_name": step_name})
            existing_name = existing[0].get("name") if existing else None
            record_id = await self.store.upsert(LIST_ID_CONFIG_TABLE, {
                "list_id": list_id,
                "step_name": step_name,
                "title": title or existing_name or step_name,
                "content": content,
                "name": existing_name or list_id,
            })
        else:
            record_id = await self.store.upsert(SCRIPTS_TABLE, {
                "step_name": step_name,
                "title": title or step_name,
                "content": content,
                "button_config": json.dumps([]),
            })
        logger.info(f"[Scripts] Updated base content for {step_name}" + (f" (list {list_id})" if list_id else ""))
        return record_id
