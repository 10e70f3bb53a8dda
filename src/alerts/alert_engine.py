import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.alerts.database import AlertModel
from src.alerts.notification_channels import SlackClient
from src.core.database import insert_ignore
from src.core.models import AlertType, AlertSeverity
from src.core.utils import utcnow

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = timedelta(hours=24)

# Severities pushed to Slack; everything else is stored only
PUSH_SEVERITIES = {AlertSeverity.CRITICAL.value, AlertSeverity.HIGH.value}


class AlertEngine:
    """
    Alert sink for the pipeline.

    Decides nothing about *when* an alert is warranted; callers do that.
    It owns de-duplication and delivery:
      * at most one alert per (complex, type) inside `dedup_window`
        (pass `dedup_window=None` for append-only alerts such as discovery);
      * a `dedup_key` makes the alert permanently unique, inserted with
        ON CONFLICT DO NOTHING;
      * critical/high alerts are pushed to Slack when a notifier is configured.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        notifier: Optional[SlackClient] = None,
        default_window: timedelta = DEFAULT_WINDOW,
    ):
        self.session_factory = session_factory
        self.notifier = notifier
        self.default_window = default_window

    async def raise_alert(
        self,
        complex_id: Optional[int],
        alert_type: AlertType,
        title: str,
        message: Optional[str] = None,
        severity: AlertSeverity = AlertSeverity.INFO,
        data: Optional[Dict[str, Any]] = None,
        listing_id: Optional[int] = None,
        dedup_key: Optional[str] = None,
        dedup_window: Optional[timedelta] = DEFAULT_WINDOW,
        session: Optional[AsyncSession] = None,
    ) -> Optional[AlertModel]:
        """
        Store an alert unless it is a duplicate. Returns the stored alert or None.

        When `session` is given the alert joins the caller's transaction: nothing
        is committed or delivered here, call `deliver()` after committing.
        """
        if session is not None:
            return await self._store(
                session, complex_id, alert_type, title, message, severity,
                data, listing_id, dedup_key, dedup_window,
            )

        async with self.session_factory() as own_session:
            alert = await self._store(
                own_session, complex_id, alert_type, title, message, severity,
                data, listing_id, dedup_key, dedup_window,
            )
            await own_session.commit()

        if alert is not None:
            await self.deliver(alert)
        return alert

    async def _store(
        self,
        session: AsyncSession,
        complex_id: Optional[int],
        alert_type: AlertType,
        title: str,
        message: Optional[str],
        severity: AlertSeverity,
        data: Optional[Dict[str, Any]],
        listing_id: Optional[int],
        dedup_key: Optional[str],
        dedup_window: Optional[timedelta],
    ) -> Optional[AlertModel]:
        alert_type = AlertType(alert_type)
        severity = AlertSeverity(severity)

        if dedup_window is not None and complex_id is not None:
            if await self.recent_exists(session, complex_id, alert_type, dedup_window):
                logger.debug(f"Suppressed duplicate {alert_type.value} alert for complex {complex_id}")
                return None

        values = dict(
            complex_id=complex_id,
            listing_id=listing_id,
            alert_type=alert_type.value,
            severity=severity.value,
            title=title,
            message=message,
            data=data or {},
            dedup_key=dedup_key,
            is_read=False,
            created_at=utcnow(),
        )

        if dedup_key is None:
            alert = AlertModel(**values)
            session.add(alert)
            await session.flush()
            return alert

        stmt = insert_ignore(session, AlertModel).values(**values).returning(AlertModel.id)
        alert_id = (await session.execute(stmt)).scalar_one_or_none()
        if alert_id is None:
            logger.debug(f"Alert with key {dedup_key} already exists")
            return None
        return await session.get(AlertModel, alert_id)

    async def recent_exists(
        self,
        session: AsyncSession,
        complex_id: int,
        alert_type: AlertType,
        window: timedelta,
    ) -> bool:
        since = utcnow() - window
        stmt = select(func.count(AlertModel.id)).where(
            AlertModel.complex_id == complex_id,
            AlertModel.alert_type == AlertType(alert_type).value,
            AlertModel.created_at > since,
        )
        return (await session.execute(stmt)).scalar_one() > 0

    async def deliver(self, alert: AlertModel) -> bool:
        if self.notifier is None or alert.severity not in PUSH_SEVERITIES:
            return False
        return await self.notifier.send_alert(alert.severity, alert.title, alert.message)

    async def list_alerts(
        self,
        unread_only: bool = False,
        complex_id: Optional[int] = None,
        alert_type: Optional[AlertType] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[AlertModel]:
        async with self.session_factory() as session:
            stmt = select(AlertModel)
            if unread_only:
                stmt = stmt.where(AlertModel.is_read.is_(False))
            if complex_id is not None:
                stmt = stmt.where(AlertModel.complex_id == complex_id)
            if alert_type is not None:
                stmt = stmt.where(AlertModel.alert_type == AlertType(alert_type).value)
            stmt = stmt.order_by(AlertModel.created_at.desc(), AlertModel.id.desc()).limit(limit).offset(offset)
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def count_alerts(
        self, complex_id: int, alert_type: Optional[AlertType] = None
    ) -> int:
        async with self.session_factory() as session:
            stmt = select(func.count(AlertModel.id)).where(AlertModel.complex_id == complex_id)
            if alert_type is not None:
                stmt = stmt.where(AlertModel.alert_type == AlertType(alert_type).value)
            return (await session.execute(stmt)).scalar_one()

    async def mark_read(self, alert_id: int) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(
                update(AlertModel).where(AlertModel.id == alert_id).values(is_read=True)
            )
            await session.commit()
            return result.rowcount > 0

    async def mark_all_read(self, complex_id: Optional[int] = None) -> int:
        async with self.session_factory() as session:
            stmt = update(AlertModel).where(AlertModel.is_read.is_(False))
            if complex_id is not None:
                stmt = stmt.where(AlertModel.complex_id == complex_id)
            result = await session.execute(stmt.values(is_read=True))
            await session.commit()
            logger.info(f"Marked {result.rowcount} alerts as read")
            return result.rowcount
