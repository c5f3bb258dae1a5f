from __future__ import annotations

import random
from enum import Enum
from typing import List, Optional

from loguru import logger

from .schemas import QuestionSet
from .services.gateway import AIGateway
from .services.manager import QuestionSetManager
from .services.practice import PracticeSession
from .services.storage import SetStore


class View(str, Enum):
    DASHBOARD = "dashboard"
    SET_DETAILS = "set_details"
    PRACTICE = "practice"


class Shell:
    """Top-level screen state: which view is showing and for which set."""

    def __init__(self, store: SetStore, gateway: AIGateway, rng: random.Random | None = None) -> None:
        self.store = store
        self.gateway = gateway
        self.rng = rng
        self.manager = QuestionSetManager(
            store, gateway, on_update=self._on_set_updated, on_delete=self._on_set_deleted
        )
        self.view = View.DASHBOARD
        self.active_set: Optional[QuestionSet] = None
        self.practice: Optional[PracticeSession] = None
        self.sets: List[QuestionSet] = []
        self.refresh()

    def refresh(self) -> List[QuestionSet]:
        self.sets = self.store.list_sets()
        return self.sets

    def find_set(self, set_id: str) -> Optional[QuestionSet]:
        return next((s for s in self.sets if s.id == set_id), None)

    # ---------- navigation ----------
    def open_set(self, set_id: str) -> Optional[QuestionSet]:
        found = self.find_set(set_id) or next((s for s in self.refresh() if s.id == set_id), None)
        if found is None:
            return None
        self._drop_practice()
        self.active_set = found
        self.view = View.SET_DETAILS
        return found

    def back_to_dashboard(self) -> None:
        self._drop_practice()
        self.active_set = None
        self.view = View.DASHBOARD
        self.refresh()

    def start_practice(self) -> Optional[PracticeSession]:
        if self.active_set is None:
            return None
        self._drop_practice()
        session = PracticeSession(
            self.active_set.questions,
            self.gateway,
            set_id=self.active_set.id,
            set_title=self.active_set.title,
            rng=self.rng,
        )
        session.start()
        self.practice = session
        self.view = View.PRACTICE
        logger.info(f"[shell] practice {session.id} on set {self.active_set.id} ({session.phase.value})")
        return session

    def exit_practice(self) -> None:
        self._drop_practice()
        self.view = View.SET_DETAILS if self.active_set is not None else View.DASHBOARD

    def _drop_practice(self) -> None:
        if self.practice is not None:
            self.practice.exit()
            self.practice = None

    # ---------- manager notifications ----------
    def _on_set_updated(self, updated: QuestionSet) -> None:
        if self.active_set is not None and self.active_set.id == updated.id:
            self.active_set = updated
        self.refresh()

    def _on_set_deleted(self, set_id: str) -> None:
        if self.active_set is not None and self.active_set.id == set_id:
            self._drop_practice()
            self.active_set = None
            self.view = View.DASHBOARD
        self.refresh()
