"""
Notification evaluation runner.

Wraps the rule engine with the operational concerns around it: one database session per
user, a per-user time budget, bounded concurrency for the all-users sweep, and hand-off
of created notifications to the live-update notifier.
"""
import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pillar.domain.common.types import utcnow
from pillar.domain.notifications.models import EvaluationResult, SweepResult
from pillar.domain.notifications.rule_engine import NotificationRuleEngine
from pillar.infra.db.repositories.task_repo import TaskRepository
from pillar.services.delivery_service import DeliveryDispatcher
from pillar.services.live_updates import LiveUpdateNotifier
from pillar.settings import settings

logger = logging.getLogger(__name__)


class NotificationRunner:
    """Runs evaluations for one user or for every user with pending work."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        *,
        dispatcher_factory: Callable[[AsyncSession], DeliveryDispatcher] = DeliveryDispatcher.from_settings,
        notifier: Optional[LiveUpdateNotifier] = None,
        timeout: Optional[float] = None,
        concurrency: Optional[int] = None,
        catch_up_minutes: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.dispatcher_factory = dispatcher_factory
        self.notifier = notifier
        self.timeout = timeout if timeout is not None else settings.evaluation_timeout_seconds
        self.concurrency = max(1, concurrency or settings.sweep_concurrency)
        self.catch_up_minutes = (
            catch_up_minutes if catch_up_minutes is not None else settings.reminder_catch_up_minutes
        )

    async def run_for_user(self, user_id: str, now: Optional[datetime] = None) -> EvaluationResult:
        """
        Evaluate one user within the time budget.

        On timeout the remaining passes are abandoned and the partial result is returned
        with timed_out set; notifications already created stay.
        """
        now = now or utcnow()
        result = EvaluationResult(user_id=user_id)
        async with self.session_factory() as session:
            engine = NotificationRuleEngine(
                session,
                self.dispatcher_factory(session),
                catch_up_minutes=self.catch_up_minutes,
            )
            try:
                await asyncio.wait_for(engine.evaluate(user_id, now, result), timeout=self.timeout)
            except asyncio.TimeoutError:
                result.timed_out = True
                logger.warning(
                    "Evaluation for user %s timed out after %ss (%s created so far)",
                    user_id,
                    self.timeout,
                    result.total,
                )
        await self._publish(result)
        return result

    async def _publish(self, result: EvaluationResult) -> None:
        if self.notifier is None or not result.created:
            return
        try:
            await self.notifier.publish_created(result.user_id, result.created)
        except Exception as e:
            logger.warning("Live update publish failed for user %s: %s", result.user_id, e)

    async def list_sweep_users(self) -> list[str]:
        async with self.session_factory() as session:
            return await TaskRepository(session).list_active_user_ids()

    async def run_sweep(self, now: Optional[datetime] = None) -> SweepResult:
        """Evaluate every user with pending work. One user's failure never affects another's."""
        now = now or utcnow()
        sweep = SweepResult()
        user_ids = await self.list_sweep_users()
        semaphore = asyncio.Semaphore(self.concurrency)

        async def _run(user_id: str) -> None:
            async with semaphore:
                try:
                    sweep.add(await self.run_for_user(user_id, now))
                except Exception:
                    sweep.failed_users.append(user_id)
                    logger.exception("Evaluation failed for user %s", user_id)

        await asyncio.gather(*(_run(user_id) for user_id in user_ids))

        if sweep.total or sweep.failed_users or sweep.timed_out_users:
            logger.info(
                "Notification sweep over %s users: %s reminders, %s overdue, %s daily summaries, "
                "%s timed out, %s failed",
                len(user_ids),
                sweep.reminders,
                sweep.overdue,
                sweep.daily_summaries,
                len(sweep.timed_out_users),
                len(sweep.failed_users),
            )
        return sweep
