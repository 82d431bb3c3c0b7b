"""
Entry point wiring all components.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

from slm_watcher.broker.fake_broker import FakeBroker
from slm_watcher.broker.kite_client import KiteClient
from slm_watcher.broker.models import WatcherJobInput
from slm_watcher.config.config import Settings
from slm_watcher.config.config_validator import MANUAL_CANCEL_HAZARD, validate_and_log
from slm_watcher.infra.logging_cfg import build_logger, log_event
from slm_watcher.jobqueue.watch_queue import WatchQueue, WatchQueueConfig
from slm_watcher.monitoring.alerting import AlertSeverity, configure_alerts
from slm_watcher.monitoring.metrics import WatcherMetrics, start_metrics_server
from slm_watcher.watcher.slm_watcher import SlmWatcher, WatcherConfig


def build_broker(cfg: Settings):
    """FakeBroker primed with the out-of-range scenario in mock mode, otherwise Kite."""
    constants = cfg.broker_constants()
    if cfg.mock_orders:
        broker = FakeBroker(constants=constants)
        for order_id in cfg.watch_order_ids:
            broker.prime_out_of_range(order_id)
        return broker
    return KiteClient(
        api_key=cfg.api_key,
        access_token=cfg.access_token,
        base_url=cfg.base_url,
        timeout=cfg.http_timeout,
        constants=constants,
    )


async def main() -> None:
    cfg = Settings.load()
    log = build_logger(
        "slm_watcher",
        level=getattr(logging, cfg.log_level, logging.INFO),
        file_path=cfg.log_file,
    )

    if not validate_and_log(cfg, log):
        log.error("Configuration validation failed, exiting")
        sys.exit(1)

    alert_manager = configure_alerts(
        webhook_url=cfg.alert_webhook_url,
        webhook_type=cfg.alert_webhook_type,
        min_severity=AlertSeverity.WARNING,
        enabled=cfg.alert_enabled,
    )
    if cfg.watch_manual_cancelled_orders:
        await alert_manager.alert_hazard_config("WATCH_MANUAL_CANCELLED_ORDERS", MANUAL_CANCEL_HAZARD)

    metrics = WatcherMetrics()
    start_metrics_server(metrics, cfg.metrics_port)

    broker = build_broker(cfg)
    queue = WatchQueue(config=WatchQueueConfig(
        poll_interval_sec=cfg.poll_interval_sec,
        max_jobs=cfg.max_jobs,
    ))
    watcher = SlmWatcher(
        broker=broker,
        queue=queue,
        config=WatcherConfig(watch_manual_cancelled_orders=cfg.watch_manual_cancelled_orders),
        alert_manager=alert_manager,
        metrics=metrics,
    )
    queue.set_runner(watcher)

    initial_job_data = {"orderTag": cfg.order_tag}
    for order_id in cfg.watch_order_ids:
        queue.add_job(WatcherJobInput(
            watched_order_id=order_id,
            account=cfg.account,
            initial_job_data=initial_job_data,
        ))

    log_event(log, "startup", order_ids=cfg.watch_order_ids, settings=cfg.dump())
    await alert_manager.alert_startup(cfg.watch_order_ids, mock=cfg.mock_orders)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows: fall back to KeyboardInterrupt
            pass

    try:
        await queue.run(stop_event)
    finally:
        await alert_manager.alert_shutdown("normal", pending_jobs=len(queue))
        await alert_manager.flush()
        await broker.close()
        log_event(log, "shutdown", pending_jobs=len(queue))


def cli() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    cli()
