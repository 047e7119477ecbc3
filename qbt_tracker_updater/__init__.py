"""
qbt-tracker-updater: keeps the default tracker list of a qBittorrent WebUI
up to date on a cron schedule.
"""

__version__ = "1.0.0"
