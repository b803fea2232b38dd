"""Session controller: owns the live QuizSession and its async helpers.

Every mutation happens on the event loop that runs the route handlers, so
session calls never interleave. Two background activities feed the session:
the once-per-second timer task and enrichment fetch tasks. Both re-check the
session generation before touching state, so results that arrive after a
restart are dropped.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Set

from bank import LoadFailure, QuestionLoader
from enrichment import EnrichmentFetcher
from models import Attempt, Phase
from session import QuizSession, quiz_rules

logger = logging.getLogger(__name__)


class SessionController:
    def __init__(
        self,
        loader: QuestionLoader,
        fetcher: EnrichmentFetcher,
        *,
        time_budget_s: int = 300,
        max_tab_warnings: int = 3,
        tick_seconds: float = 1.0,
        question_count: int = 10,
    ) -> None:
        self.loader = loader
        self.fetcher = fetcher
        self.time_budget_s = time_budget_s
        self.max_tab_warnings = max_tab_warnings
        self.tick_seconds = tick_seconds
        self.question_count = question_count

        self.live = False
        self._generation = 0
        self.session = self._new_session()
        self._timer: Optional[asyncio.Task] = None
        self._enrichment_tasks: Set[asyncio.Task] = set()

    @property
    def generation(self) -> int:
        return self._generation

    def _new_session(self) -> QuizSession:
        return QuizSession(
            self._generation,
            time_budget_s=self.time_budget_s,
            max_tab_warnings=self.max_tab_warnings,
            request_enrichment=self._request_enrichment,
        )

    # --- Lifecycle ----------------------------------------------------------------

    async def open(self) -> None:
        self.live = True
        await self.restart()

    async def close(self) -> None:
        self.live = False
        timer = self._timer
        self._stop_timer()
        pending = list(self._enrichment_tasks)
        if timer is not None:
            pending.append(timer)
        for t in pending:
            t.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def restart(self) -> QuizSession:
        """Replace the session wholesale and load a fresh batch of questions."""
        self._stop_timer()
        self._generation += 1
        session = self._new_session()
        self.session = session
        logger.info("session %s: loading questions", session.generation)

        try:
            questions = await self.loader.load()
        except LoadFailure as e:
            if session is self.session:
                logger.warning("session %s: load failed: %s", session.generation, e)
                session.fail_load(str(e))
            return session
        except Exception:
            logger.exception("session %s: question loader crashed", session.generation)
            if session is self.session:
                session.fail_load("The questions could not be loaded.")
            return session

        # a newer restart may have replaced this session while we were loading
        if session is self.session:
            session.load(questions)
            logger.info("session %s: %s questions loaded", session.generation, len(questions))
        return session

    # --- Operations relayed from the presentation --------------------------------

    def start(self) -> None:
        self.session.start()
        self._start_timer()

    def submit_answer(self, text: str) -> Attempt:
        return self.session.submit_answer(text)

    def skip(self) -> Attempt:
        try:
            return self.session.skip()
        finally:
            self._sync_timer()

    def advance(self) -> None:
        try:
            self.session.advance()
        finally:
            self._sync_timer()

    def retreat(self) -> None:
        self.session.retreat()

    def exit(self) -> None:
        try:
            self.session.exit()
        finally:
            self._sync_timer()

    def enter_review(self, position: int) -> Attempt:
        return self.session.enter_review(position)

    def exit_review(self) -> None:
        self.session.exit_review()

    def rules(self) -> List[str]:
        count = self.session.total_questions or self.question_count
        return quiz_rules(count, self.time_budget_s, self.max_tab_warnings)

    # --- Driver notifications -----------------------------------------------------

    def report_visibility_lost(self) -> bool:
        if not self.live:
            return False
        try:
            return self.session.report_visibility_lost()
        finally:
            self._sync_timer()

    # --- Timer --------------------------------------------------------------------

    def _start_timer(self) -> None:
        self._stop_timer()
        self._timer = asyncio.get_running_loop().create_task(
            self._run_timer(self.session.generation)
        )

    def _stop_timer(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None and not timer.done():
            timer.cancel()

    def _sync_timer(self) -> None:
        if self.session.phase != Phase.ACTIVE:
            self._stop_timer()

    async def _run_timer(self, generation: int) -> None:
        while True:
            await asyncio.sleep(self.tick_seconds)
            if generation != self.session.generation or not self.session.is_active:
                return
            self.session.tick()
            if not self.session.is_active:
                # Completed by the clock; the task ends itself
                self._timer = None
                return

    # --- Enrichment ---------------------------------------------------------------

    def _request_enrichment(self, generation: int, position: int, candidates: List[str]) -> None:
        task = asyncio.get_running_loop().create_task(
            self._enrich(generation, position, candidates)
        )
        self._enrichment_tasks.add(task)
        task.add_done_callback(self._enrichment_tasks.discard)

    async def _enrich(self, generation: int, position: int, candidates: List[str]) -> None:
        try:
            text = await self.fetcher.fetch(candidates)
        except Exception:
            logger.exception("enrichment task failed for question %s", position + 1)
            if generation == self.session.generation:
                self.session.enrichment_failed(position)
            return

        if generation != self.session.generation:
            logger.info(
                "dropping enrichment for question %s from stale session %s",
                position + 1,
                generation,
            )
            return
        self.session.attach_enrichment(position, text)

    async def wait_for_enrichment(self) -> None:
        """Wait until every in-flight enrichment fetch has settled."""
        while self._enrichment_tasks:
            await asyncio.gather(*list(self._enrichment_tasks), return_exceptions=True)
