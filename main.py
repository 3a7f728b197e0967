"""
HabitBot — Entry Point.

Single entry point: `python main.py` starts the Telegram bot and its
reminder and summary triggers.
"""

from habitbot.bot.telegram_bot import main

if __name__ == "__main__":
    main()
