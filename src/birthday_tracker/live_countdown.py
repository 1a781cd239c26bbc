from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from telegram.error import BadRequest
from telegram.ext import CallbackContext, Job, JobQueue

from birthday_tracker.countdown import CountdownParts, countdown_parts, format_countdown
from birthday_tracker.date_logic import now_in

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class CountdownJobData:
    chat_id: int
    message_id: int
    record_name: str
    timezone: str
    target: datetime
    expires_at: datetime


def countdown_job_name(chat_id: int) -> str:
    return f"countdown-{chat_id}"


def render_countdown_text(record_name: str, target: datetime, parts: CountdownParts) -> str:
    if parts.has_passed:
        return f"🎉 {record_name}'s birthday is here!\nDate: {target.date().isoformat()}"
    return (
        f"⏳ {record_name}'s birthday\n"
        f"Date: {target.date().isoformat()}\n"
        f"Countdown: {format_countdown(parts)}"
    )


def stop_live_countdown(job_queue: JobQueue, chat_id: int) -> int:
    jobs = job_queue.get_jobs_by_name(countdown_job_name(chat_id))
    for job in jobs:
        job.schedule_removal()
    if jobs:
        LOGGER.info("Stopped live countdown in chat %s", chat_id)
    return len(jobs)


def start_live_countdown(
    job_queue: JobQueue,
    *,
    chat_id: int,
    message_id: int,
    record_name: str,
    timezone: str,
    target: datetime,
    now: datetime,
    refresh_seconds: int,
    max_minutes: int,
) -> Job:
    """Schedule a repeating job that keeps a countdown message up to date.

    The returned job is the cancellation handle. One countdown runs per
    chat; starting another replaces it.
    """
    stop_live_countdown(job_queue, chat_id)
    data = CountdownJobData(
        chat_id=chat_id,
        message_id=message_id,
        record_name=record_name,
        timezone=timezone,
        target=target,
        expires_at=now + timedelta(minutes=max_minutes),
    )
    job = job_queue.run_repeating(
        countdown_tick,
        interval=refresh_seconds,
        first=refresh_seconds,
        name=countdown_job_name(chat_id),
        data=data,
        chat_id=chat_id,
    )
    LOGGER.info("Started live countdown for %s in chat %s", record_name, chat_id)
    return job


async def countdown_tick(context: CallbackContext) -> None:
    job = context.job
    data: CountdownJobData = job.data
    now = now_in(data.timezone)
    parts = countdown_parts(data.target, now)

    try:
        await context.bot.edit_message_text(
            chat_id=data.chat_id,
            message_id=data.message_id,
            text=render_countdown_text(data.record_name, data.target, parts),
        )
    except BadRequest as exc:
        LOGGER.warning("Countdown message in chat %s can no longer be edited: %s", data.chat_id, exc)
        job.schedule_removal()
        return

    if parts.has_passed or now >= data.expires_at:
        job.schedule_removal()
