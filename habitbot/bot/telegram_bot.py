"""
HabitBot — Telegram Bot.

Telegram is the only user interface. Users log habits by sending short
messages ("30", "20 squats"), ask for totals ("how many squats this
week?"), set their timezone and manage daily reminders with commands.
The bot also owns the job queue that runs the periodic triggers.

Security: when ALLOWED_USER_IDS is set, everyone else is silently ignored.
"""

from __future__ import annotations

import logging
from functools import wraps
from typing import TYPE_CHECKING, Any, Callable, Coroutine
from zoneinfo import ZoneInfo

from apscheduler.triggers.cron import CronTrigger
from telegram import Update
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from habitbot.config import settings
from habitbot.core.calendar_math import MinuteOfDay, resolve_timezone
from habitbot.core.errors import InvalidCountError, UnknownTimezoneError

if TYPE_CHECKING:
    from habitbot.core.habit_service import HabitService
    from habitbot.core.scheduler import HabitJobs
    from habitbot.core.stats import StatsService
    from habitbot.data.db import HabitDB
    from habitbot.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)

HELP_TEXT = (
    "Send a number to log your default habit (e.g. \"30\"), or a count and a "
    "habit (e.g. \"20 squats\").\n"
    "Ask \"how many squats today?\" or \"pushups stats this week\" for totals.\n\n"
    "/timezone Europe/Berlin — set your timezone\n"
    "/remind 09:00 09:30 pushups — daily reminder inside a window\n"
    "/reminders — list your reminders\n"
    "/stopreminder 3 — stop reminder #3"
)

USAGE_HINT = 'Please send a number to log your habit (e.g., "30").'


# ---------------------------------------------------------------------------
# Security: silent-ignore decorator
# ---------------------------------------------------------------------------


def authorized_only(
    func: Callable[..., Coroutine[Any, Any, None]],
) -> Callable[..., Coroutine[Any, Any, None]]:
    """Decorator that silently ignores users outside ALLOWED_USER_IDS.

    An empty allow-list lets everyone in.
    """

    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        user = update.effective_user
        allowed = settings.ALLOWED_USER_IDS
        if user is None or (allowed and user.id not in allowed):
            uid = user.id if user else "unknown"
            logger.warning("Unauthorized access attempt from user_id=%s", uid)
            return  # Silent ignore
        return await func(update, context)

    return wrapper


def _contact(update: Update) -> str:
    return str(update.effective_user.id)


def _display_name(update: Update) -> str | None:
    return getattr(update.effective_user, "first_name", None) or None


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    store: HabitDB = context.bot_data["store"]
    store.upsert_user_by_contact(_contact(update), _display_name(update))
    name = _display_name(update) or "there"
    await update.message.reply_text(f"Hi {name}! Let's track some habits.\n\n{HELP_TEXT}")


@authorized_only
async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await update.message.reply_text(HELP_TEXT)


@authorized_only
async def cmd_timezone(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """/timezone <IANA name> — set the user's timezone."""
    store: HabitDB = context.bot_data["store"]
    args = context.args or []
    if not args:
        user = store.upsert_user_by_contact(_contact(update), _display_name(update))
        await update.message.reply_text(
            f"Your timezone is {user.timezone}. Change it with e.g. /timezone Europe/Berlin"
        )
        return

    name = args[0]
    try:
        resolve_timezone(name)
    except UnknownTimezoneError:
        await update.message.reply_text(
            f"I don't know the timezone '{name}'. Use an IANA name like America/New_York."
        )
        return

    store.upsert_user_by_contact(_contact(update), _display_name(update), name)
    await update.message.reply_text(f"Timezone set to {name}.")


def _parse_remind_args(args: list[str]) -> tuple[MinuteOfDay | None, MinuteOfDay | None, str | None]:
    """Split /remind arguments into (start, end, habit).

    Accepts "HH:MM HH:MM [habit...]" or just "[habit...]". Raises ValueError
    on a malformed or reversed window.
    """
    start = end = None
    rest = list(args)
    if rest and ":" in rest[0]:
        if len(rest) < 2:
            raise ValueError("A window needs both a start and an end time.")
        start, end = MinuteOfDay.parse(rest[0]), MinuteOfDay.parse(rest[1])
        if start > end:
            raise ValueError("The window start must not be after its end.")
        rest = rest[2:]
    habit = " ".join(rest).strip().lower() or None
    return start, end, habit


@authorized_only
async def cmd_remind(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """/remind [HH:MM HH:MM] [habit] — create a daily reminder."""
    store: HabitDB = context.bot_data["store"]
    try:
        start, end, habit = _parse_remind_args(context.args or [])
    except ValueError as exc:
        await update.message.reply_text(
            f"{exc}\nUsage: /remind 09:00 09:30 pushups"
        )
        return

    user = store.upsert_user_by_contact(_contact(update), _display_name(update))
    reminder = store.add_reminder(user.id, habit=habit, window_start=start, window_end=end)
    await update.message.reply_text(
        f"Reminder set: {reminder.describe()}, in {user.timezone} time."
    )


@authorized_only
async def cmd_reminders(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    store: HabitDB = context.bot_data["store"]
    user = store.upsert_user_by_contact(_contact(update), _display_name(update))
    reminders = store.list_reminders(user.id)
    if not reminders:
        await update.message.reply_text("You have no active reminders. Add one with /remind.")
        return
    lines = [r.describe() for r in reminders]
    await update.message.reply_text("Your reminders:\n" + "\n".join(lines))


@authorized_only
async def cmd_stopreminder(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    store: HabitDB = context.bot_data["store"]
    args = context.args or []
    if not args or not args[0].lstrip("#").isdigit():
        await update.message.reply_text("Usage: /stopreminder <id>")
        return

    reminder_id = int(args[0].lstrip("#"))
    user = store.upsert_user_by_contact(_contact(update), _display_name(update))
    if store.deactivate_reminder(reminder_id, user.id):
        await update.message.reply_text(f"Reminder #{reminder_id} stopped.")
    else:
        await update.message.reply_text(f"No active reminder #{reminder_id} found.")


# ---------------------------------------------------------------------------
# Free text: log habits and answer stats questions
# ---------------------------------------------------------------------------


@authorized_only
async def handle_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    from habitbot.core.intent_parser import parse_intent

    text = update.message.text or ""
    contact = _contact(update)
    logger.info("Incoming message from %s: %r", contact, text)

    intent = await parse_intent(
        text,
        default_habit=settings.DEFAULT_HABIT,
        llm=context.bot_data.get("llm"),
    )

    if intent.intent == "LOG_HABIT" and intent.count and intent.habit:
        habits: HabitService = context.bot_data["habits"]
        try:
            result = habits.log_habit(
                contact,
                intent.habit,
                intent.count,
                source="TELEGRAM",
                display_name=_display_name(update),
            )
        except InvalidCountError:
            await update.message.reply_text("The count must be a positive number.")
            return
        except Exception as exc:
            logger.error("Failed to log habit for %s: %s", contact, exc)
            await update.message.reply_text("Sorry, we could not log that right now.")
            return
        await update.message.reply_text(
            f"Logged {result.log.count} {result.log.habit}. Today total: {result.today_total}."
        )
    elif intent.intent == "GET_STATS" and intent.habit:
        store: HabitDB = context.bot_data["store"]
        stats: StatsService = context.bot_data["stats"]
        user = store.upsert_user_by_contact(contact, _display_name(update))
        try:
            if intent.period == "week":
                total = stats.total_for_week(user.id, intent.habit, user.timezone)
            else:
                total = stats.total_for_day(user.id, intent.habit, user.timezone)
        except UnknownTimezoneError:
            await update.message.reply_text(
                f"Your timezone '{user.timezone}' is not valid. Fix it with /timezone."
            )
            return
        period_label = "this week" if intent.period == "week" else "today"
        await update.message.reply_text(
            f"You have logged {total} {intent.habit} {period_label}."
        )
    elif intent.intent == "SET_REMINDER":
        await update.message.reply_text(
            "To set a daily reminder, use /remind 09:00 09:30 pushups"
        )
    else:
        await update.message.reply_text(USAGE_HINT)


# ---------------------------------------------------------------------------
# App builder
# ---------------------------------------------------------------------------


def build_app(
    store: HabitDB | None = None,
    notifier: NotificationPort | None = None,
) -> Application:
    """Build and configure the Telegram Application with all handlers.

    Args:
        store: Storage implementation. Defaults to HabitDB at DATABASE_PATH.
        notifier: Notification port implementation. Defaults to TelegramNotifier
                  (created from the bot instance after app is built).
    """
    from habitbot.core.habit_service import HabitService
    from habitbot.core.llm import LLMClient
    from habitbot.core.scheduler import HabitJobs
    from habitbot.core.stats import StatsService

    app = ApplicationBuilder().token(settings.TELEGRAM_BOT_TOKEN).build()

    if store is None:
        from habitbot.data.db import HabitDB
        store = HabitDB(settings.DATABASE_PATH)

    if notifier is None:
        from habitbot.adapters.telegram_notifier import TelegramNotifier
        notifier = TelegramNotifier(app.bot)

    # Components are built once and shared by every handler and job
    stats = StatsService(store)
    app.bot_data["store"] = store
    app.bot_data["stats"] = stats
    app.bot_data["habits"] = HabitService(store, stats, default_habit=settings.DEFAULT_HABIT)
    app.bot_data["llm"] = LLMClient.from_settings()
    jobs = HabitJobs(store, stats, notifier, prefilter_timezone=settings.TIMEZONE)
    app.bot_data["jobs"] = jobs

    app.add_handler(CommandHandler("start", cmd_start))
    app.add_handler(CommandHandler("help", cmd_help))
    app.add_handler(CommandHandler("timezone", cmd_timezone))
    app.add_handler(CommandHandler("remind", cmd_remind))
    app.add_handler(CommandHandler("reminders", cmd_reminders))
    app.add_handler(CommandHandler("stopreminder", cmd_stopreminder))
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_text))

    _setup_habit_jobs(app, jobs)

    logger.info("Telegram bot application built with %d handlers", len(app.handlers[0]))
    return app


def _setup_habit_jobs(app: Application, jobs: HabitJobs) -> None:
    """Register the reminder and summary triggers on the job queue.

    Each job runs with max_instances=1, so ticks of one trigger never overlap.
    """
    from habitbot.core.scheduler import (
        DAILY_SUMMARY_TRIGGER,
        REMINDER_TRIGGER,
        WEEKLY_SUMMARY_TRIGGER,
    )

    tz = ZoneInfo(settings.TIMEZONE)
    schedules = {
        REMINDER_TRIGGER: settings.REMINDER_CRON,
        DAILY_SUMMARY_TRIGGER: settings.DAILY_SUMMARY_CRON,
        WEEKLY_SUMMARY_TRIGGER: settings.WEEKLY_SUMMARY_CRON,
    }

    for name, expression in schedules.items():
        app.job_queue.run_custom(
            _make_job_callback(jobs, name),
            job_kwargs={
                "trigger": CronTrigger.from_crontab(expression, timezone=tz),
                "max_instances": 1,
                "coalesce": True,
                "misfire_grace_time": 300,
            },
            name=name,
        )
        logger.info("Trigger %s scheduled with '%s' (%s)", name, expression, settings.TIMEZONE)


def _make_job_callback(
    jobs: HabitJobs, trigger: str,
) -> Callable[[ContextTypes.DEFAULT_TYPE], Coroutine[Any, Any, None]]:
    async def _callback(context: ContextTypes.DEFAULT_TYPE) -> None:
        await jobs.run(trigger)

    return _callback


def main() -> None:
    """Entry point: build the app and start polling."""
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("Starting HabitBot...")
    app = build_app()
    app.run_polling()


if __name__ == "__main__":
    main()
