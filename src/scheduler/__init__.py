"""Scheduler module for push notification jobs.

Schedule overview:
  - 04:00 daily          - Cleanup expired devices
  - :00 / :30 hourly     - Exchange rate update push (exchange-rate-update)
  - :00 / :30 hourly     - BTC price update push (btc-price-update)
  - every 5 minutes      - BTC price alert check (btc-price-alert)
  - caller-defined jobs  - Daily / cron pushes created through JobRegistry

Times are in the configured scheduler timezone (Asia/Shanghai by default).
"""
